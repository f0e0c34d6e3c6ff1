"""
Swap step tests.

One fee rule applies on every path: the fee is withheld from the input and
reported separately from amount_in.
"""

import pytest

from clamm.core.constants import FEE_DENOMINATOR, FEE_PIPS, Q96
from clamm.core.liquidity_math import get_amount0_delta, get_amount1_delta
from clamm.core.swap_math import compute_swap_step, fee_on_amount_in
from clamm.core.tick_math import encode_price_sqrt

PRICE_ONE = encode_price_sqrt(1, 1)
PRICE_UP = encode_price_sqrt(101, 100)
PRICE_DOWN = encode_price_sqrt(99, 100)
PRICE_FAR_UP = encode_price_sqrt(1000, 100)
LIQUIDITY = 2 * 10**18


class TestFeeOnAmountIn:
    def test_fee_rate_on_gross_input(self):
        # 997000 principal + 3000 fee = 1_000_000 gross at 0.30%
        assert fee_on_amount_in(997_000, FEE_PIPS) == 3000

    def test_fee_rounds_up(self):
        assert fee_on_amount_in(1, FEE_PIPS) == 1

    def test_zero_input_has_no_fee(self):
        assert fee_on_amount_in(0, FEE_PIPS) == 0


class TestExactInput:
    """Positive amount_remaining."""

    def test_capped_at_target(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_UP, LIQUIDITY, 10**18, FEE_PIPS
        )
        assert sqrt_next == PRICE_UP
        assert amount_in == get_amount1_delta(PRICE_ONE, PRICE_UP, LIQUIDITY, True)
        assert amount_out == get_amount0_delta(PRICE_ONE, PRICE_UP, LIQUIDITY, False)
        assert fee == fee_on_amount_in(amount_in, FEE_PIPS)
        assert amount_in + fee < 10**18

    def test_fully_consumed_before_target(self):
        amount = 10**18
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_FAR_UP, LIQUIDITY, amount, FEE_PIPS
        )
        assert PRICE_ONE < sqrt_next < PRICE_FAR_UP
        assert amount_in + fee == amount
        assert fee >= amount * FEE_PIPS // FEE_DENOMINATOR
        assert amount_out > 0

    def test_zero_for_one_moves_price_down(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_DOWN, LIQUIDITY, 10**15, FEE_PIPS
        )
        assert PRICE_DOWN < sqrt_next < PRICE_ONE
        assert amount_in + fee == 10**15
        assert amount_out == get_amount1_delta(sqrt_next, PRICE_ONE, LIQUIDITY, False)

    def test_dust_input_is_all_fee(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_DOWN, LIQUIDITY, 1, FEE_PIPS
        )
        assert sqrt_next == PRICE_ONE
        assert (amount_in, amount_out, fee) == (0, 0, 1)

    def test_output_never_exceeds_input_value(self):
        """At price ~1 the output is below the input."""
        _, amount_in, amount_out, _ = compute_swap_step(
            PRICE_ONE, PRICE_DOWN, LIQUIDITY, 10**15, FEE_PIPS
        )
        assert amount_out < amount_in


class TestExactOutput:
    """Negative amount_remaining."""

    def test_capped_at_target(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_UP, LIQUIDITY, -(10**18), FEE_PIPS
        )
        assert sqrt_next == PRICE_UP
        assert amount_out == get_amount0_delta(PRICE_ONE, PRICE_UP, LIQUIDITY, False)
        assert amount_in == get_amount1_delta(PRICE_ONE, PRICE_UP, LIQUIDITY, True)
        assert fee == fee_on_amount_in(amount_in, FEE_PIPS)

    def test_partial_fill_delivers_exact_output(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_UP, LIQUIDITY, -1000, FEE_PIPS
        )
        assert PRICE_ONE < sqrt_next < PRICE_UP
        assert amount_out == 1000
        assert amount_in > 0
        assert fee == fee_on_amount_in(amount_in, FEE_PIPS)

    def test_zero_for_one_partial_fill(self):
        sqrt_next, amount_in, amount_out, fee = compute_swap_step(
            PRICE_ONE, PRICE_DOWN, LIQUIDITY, -(10**15), FEE_PIPS
        )
        assert PRICE_DOWN < sqrt_next < PRICE_ONE
        assert amount_out == 10**15
        assert amount_in > amount_out
        assert fee > 0


class TestEmptySegment:
    def test_zero_liquidity_jumps_to_target(self):
        assert compute_swap_step(PRICE_ONE, PRICE_UP, 0, 10**18, FEE_PIPS) == (PRICE_UP, 0, 0, 0)
        assert compute_swap_step(PRICE_ONE, PRICE_DOWN, 0, -(10**18), FEE_PIPS) == (PRICE_DOWN, 0, 0, 0)

    def test_target_equal_to_current_moves_nothing(self):
        assert compute_swap_step(Q96, Q96, LIQUIDITY, 10**18, FEE_PIPS) == (Q96, 0, 0, 0)


class TestFeeConsistency:
    """The effective fee rate is the same on every path."""

    @pytest.mark.parametrize(
        "target,amount",
        [(PRICE_UP, 10**18), (PRICE_FAR_UP, 10**18), (PRICE_UP, -(10**18)), (PRICE_UP, -1000)],
    )
    def test_fee_is_about_thirty_bips_of_gross_input(self, target, amount):
        _, amount_in, _, fee = compute_swap_step(PRICE_ONE, target, LIQUIDITY, amount, FEE_PIPS)
        gross = amount_in + fee
        assert fee * FEE_DENOMINATOR >= gross * FEE_PIPS
        assert fee * FEE_DENOMINATOR <= gross * FEE_PIPS + FEE_DENOMINATOR
