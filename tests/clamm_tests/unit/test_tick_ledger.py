"""
Tick ledger tests: liquidity bookkeeping and next initialized tick search.
"""

import pytest

from clamm.core.constants import MAX_TICK, MAX_UINT128, MIN_TICK
from clamm.core.exceptions import ArithmeticOverflow, InsufficientLiquidity, PriceOutOfRange, ValidationError
from clamm.core.tick_ledger import TickInfo, TickLedger


@pytest.fixture
def ledger():
    return TickLedger()


@pytest.fixture
def populated():
    """Ledger with initialized ticks at -100, 0 and 250."""
    ledger = TickLedger()
    ledger.record_liquidity_change(-100, 10)
    ledger.record_liquidity_change(0, 10, upper=True)
    ledger.record_liquidity_change(250, 5)
    return ledger


class TestLiquidityChanges:
    def test_absent_tick_reads_as_zero(self, ledger):
        assert ledger.get(42) == TickInfo()
        assert 42 not in ledger

    def test_lower_boundary_adds_net(self, ledger):
        info = ledger.record_liquidity_change(100, 1000)
        assert info == TickInfo(liquidity_gross=1000, liquidity_net=1000, initialized=True)

    def test_upper_boundary_subtracts_net(self, ledger):
        info = ledger.record_liquidity_change(200, 1000, upper=True)
        assert info.liquidity_gross == 1000
        assert info.liquidity_net == -1000

    def test_shared_boundary(self, ledger):
        ledger.record_liquidity_change(100, 300)              # lower of one range
        info = ledger.record_liquidity_change(100, 500, upper=True)  # upper of another
        assert info.liquidity_gross == 800
        assert info.liquidity_net == -200

    def test_gross_underflow_rejected(self, ledger):
        ledger.record_liquidity_change(100, 10)
        with pytest.raises(InsufficientLiquidity):
            ledger.record_liquidity_change(100, -11)
        assert ledger.get(100).liquidity_gross == 10

    def test_gross_overflow_rejected(self, ledger):
        ledger.record_liquidity_change(100, MAX_UINT128)
        with pytest.raises(ArithmeticOverflow):
            ledger.record_liquidity_change(100, 1)

    def test_out_of_range_tick_rejected(self, ledger):
        with pytest.raises(PriceOutOfRange):
            ledger.record_liquidity_change(MAX_TICK + 1, 1)

    def test_preview_does_not_mutate(self, ledger):
        preview = ledger.preview_liquidity_change(100, 50)
        assert preview.liquidity_gross == 50
        assert ledger.get(100) == TickInfo()
        assert ledger.initialized_ticks() == []

    def test_get_returns_copy(self, ledger):
        ledger.record_liquidity_change(100, 50)
        info = ledger.get(100)
        info.liquidity_gross = 0
        assert ledger.get(100).liquidity_gross == 50


class TestInitializedFlag:
    def test_flag_kept_when_gross_returns_to_zero(self, ledger):
        ledger.record_liquidity_change(100, 50)
        info = ledger.record_liquidity_change(100, -50)
        assert info.liquidity_gross == 0
        assert info.initialized is True
        assert ledger.initialized_ticks() == [100]

    def test_flag_reset_when_configured(self):
        ledger = TickLedger(reset_initialized_on_zero=True)
        ledger.record_liquidity_change(100, 50)
        info = ledger.record_liquidity_change(100, -50)
        assert info.initialized is False
        assert ledger.initialized_ticks() == []
        assert 100 not in ledger

    def test_reinitialize_after_reset(self):
        ledger = TickLedger(reset_initialized_on_zero=True)
        ledger.record_liquidity_change(100, 50)
        ledger.record_liquidity_change(100, -50)
        ledger.record_liquidity_change(100, 20)
        assert ledger.initialized_ticks() == [100]

    def test_initialized_ticks_sorted(self, populated):
        assert populated.initialized_ticks() == [-100, 0, 250]


class TestFindNextInitializedTick:
    def test_lte_finds_nearest_below(self, populated):
        assert populated.find_next_initialized_tick(10, True, 2560) == (0, True)

    def test_lte_includes_start_tick(self, populated):
        assert populated.find_next_initialized_tick(0, True, 2560) == (0, True)

    def test_lte_from_just_below(self, populated):
        assert populated.find_next_initialized_tick(-1, True, 2560) == (-100, True)

    def test_gt_excludes_start_tick(self, populated):
        assert populated.find_next_initialized_tick(0, False, 2560) == (250, True)
        assert populated.find_next_initialized_tick(-100, False, 2560) == (0, True)

    def test_not_found_returns_window_boundary(self, populated):
        assert populated.find_next_initialized_tick(250, False, 2560) == (2810, False)
        assert populated.find_next_initialized_tick(-101, True, 50) == (-151, False)

    def test_window_excludes_far_ticks(self, populated):
        assert populated.find_next_initialized_tick(200, True, 100) == (100, False)
        assert populated.find_next_initialized_tick(200, True, 200) == (0, True)

    def test_boundary_clamped_to_global_range(self, ledger):
        assert ledger.find_next_initialized_tick(MAX_TICK - 10, False, 2560) == (MAX_TICK, False)
        assert ledger.find_next_initialized_tick(MIN_TICK + 5, True, 2560) == (MIN_TICK, False)

    def test_zero_gross_tick_still_found_when_flag_kept(self, populated):
        populated.record_liquidity_change(250, -5)
        assert populated.find_next_initialized_tick(0, False, 2560) == (250, True)
        assert populated.get(250).liquidity_net == 0

    def test_invalid_window(self, populated):
        with pytest.raises(ValidationError):
            populated.find_next_initialized_tick(0, True, 0)
