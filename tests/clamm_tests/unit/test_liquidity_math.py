"""
Liquidity Math - Precision and Rounding Tests.

Amounts the caller pays must round up and amounts the caller receives must
round down, so that repeated operations can never drain dust from the pool.
"""

import pytest

from clamm.core.constants import MAX_UINT128, MAX_UINT256, Q96
from clamm.core.exceptions import ArithmeticOverflow, InsufficientLiquidity
from clamm.core.liquidity_math import (
    add_delta,
    amounts_for_liquidity,
    div_rounding_up,
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
    liquidity_for_amounts,
    mul_div,
)
from clamm.core.tick_math import tick_to_sqrt_price

SQRT_LOWER = tick_to_sqrt_price(69080)
SQRT_CURRENT = tick_to_sqrt_price(69200)
SQRT_UPPER = tick_to_sqrt_price(69320)


class TestMulDiv:
    """Test full precision multiply-divide."""

    def test_rounds_down_by_default(self):
        assert mul_div(10, 10, 3) == 33

    def test_rounds_up_on_request(self):
        assert mul_div(10, 10, 3, round_up=True) == 34

    def test_exact_division_not_rounded(self):
        assert mul_div(10, 9, 3, round_up=True) == 30

    def test_intermediate_may_exceed_uint256(self):
        assert mul_div(MAX_UINT256, MAX_UINT256, MAX_UINT256) == MAX_UINT256

    def test_result_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            mul_div(MAX_UINT256, 2, 1)

    def test_division_by_zero(self):
        with pytest.raises(ArithmeticOverflow, match="Division by zero"):
            mul_div(1, 1, 0)

    def test_div_rounding_up(self):
        assert div_rounding_up(7, 2) == 4
        assert div_rounding_up(8, 2) == 4
        assert div_rounding_up(0, 5) == 0


class TestAddDelta:
    """Test signed liquidity arithmetic."""

    def test_add_and_remove(self):
        assert add_delta(5, 3) == 8
        assert add_delta(5, -5) == 0

    def test_underflow(self):
        with pytest.raises(InsufficientLiquidity):
            add_delta(5, -6)

    def test_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            add_delta(MAX_UINT128, 1)


class TestAmountDeltas:
    """Test token amounts between two prices."""

    def test_amount1_delta_exact(self):
        assert get_amount1_delta(Q96, 2 * Q96, 10**18, False) == 10**18
        assert get_amount1_delta(Q96, 2 * Q96, 10**18, True) == 10**18

    def test_amount0_delta_exact(self):
        # L * (1/1 - 1/2) = L / 2
        assert get_amount0_delta(Q96, 2 * Q96, 10**18, False) == 5 * 10**17
        assert get_amount0_delta(Q96, 2 * Q96, 10**18, True) == 5 * 10**17

    def test_order_independent(self):
        assert get_amount0_delta(SQRT_UPPER, SQRT_LOWER, 10**6, True) == get_amount0_delta(
            SQRT_LOWER, SQRT_UPPER, 10**6, True
        )
        assert get_amount1_delta(SQRT_UPPER, SQRT_LOWER, 10**6, False) == get_amount1_delta(
            SQRT_LOWER, SQRT_UPPER, 10**6, False
        )

    @pytest.mark.parametrize("liquidity", [1, 999, 10**6, 10**18 + 7])
    def test_round_up_exceeds_round_down_by_at_most_one(self, liquidity):
        up0 = get_amount0_delta(SQRT_LOWER, SQRT_UPPER, liquidity, True)
        down0 = get_amount0_delta(SQRT_LOWER, SQRT_UPPER, liquidity, False)
        up1 = get_amount1_delta(SQRT_LOWER, SQRT_UPPER, liquidity, True)
        down1 = get_amount1_delta(SQRT_LOWER, SQRT_UPPER, liquidity, False)
        assert 0 <= up0 - down0 <= 1
        assert 0 <= up1 - down1 <= 1

    def test_zero_price_rejected(self):
        with pytest.raises(ArithmeticOverflow):
            get_amount0_delta(0, Q96, 1, False)


class TestAmountsForLiquidity:
    """Test the three price regions of a range."""

    def test_below_range_is_all_token0(self):
        amount0, amount1 = amounts_for_liquidity(SQRT_LOWER - 1, 69080, 69320, 10**18)
        assert amount0 > 0
        assert amount1 == 0

    def test_at_lower_bound_is_all_token0(self):
        amount0, amount1 = amounts_for_liquidity(SQRT_LOWER, 69080, 69320, 10**18)
        assert amount0 == get_amount0_delta(SQRT_LOWER, SQRT_UPPER, 10**18, False)
        assert amount1 == 0

    def test_above_range_is_all_token1(self):
        amount0, amount1 = amounts_for_liquidity(SQRT_UPPER, 69080, 69320, 10**18)
        assert amount0 == 0
        assert amount1 == get_amount1_delta(SQRT_LOWER, SQRT_UPPER, 10**18, False)

    def test_in_range_needs_both(self):
        amount0, amount1 = amounts_for_liquidity(SQRT_CURRENT, 69080, 69320, 10**18)
        assert amount0 == get_amount0_delta(SQRT_CURRENT, SQRT_UPPER, 10**18, False)
        assert amount1 == get_amount1_delta(SQRT_LOWER, SQRT_CURRENT, 10**18, False)
        assert amount0 > 0 and amount1 > 0

    def test_mint_rounding_never_below_burn_rounding(self):
        paid = amounts_for_liquidity(SQRT_CURRENT, 69080, 69320, 123_456_789, round_up=True)
        returned = amounts_for_liquidity(SQRT_CURRENT, 69080, 69320, 123_456_789, round_up=False)
        assert paid[0] >= returned[0]
        assert paid[1] >= returned[1]


class TestLiquidityForAmounts:
    """Test the inverse conversion."""

    def test_funded_liquidity_never_costs_more_than_given(self):
        amount0, amount1 = 10**18, 10**21
        liquidity = liquidity_for_amounts(SQRT_CURRENT, SQRT_LOWER, SQRT_UPPER, amount0, amount1)
        assert liquidity > 0

        needed0, needed1 = amounts_for_liquidity(SQRT_CURRENT, 69080, 69320, liquidity, round_up=True)
        assert needed0 <= amount0
        assert needed1 <= amount1

    def test_below_range_uses_token0_only(self):
        liquidity = liquidity_for_amounts(SQRT_LOWER - 1, SQRT_LOWER, SQRT_UPPER, 10**18, 0)
        assert liquidity > 0

    def test_above_range_uses_token1_only(self):
        liquidity = liquidity_for_amounts(SQRT_UPPER, SQRT_LOWER, SQRT_UPPER, 0, 10**18)
        assert liquidity > 0

    def test_empty_interval(self):
        assert liquidity_for_amounts(SQRT_CURRENT, SQRT_LOWER, SQRT_LOWER, 10**18, 10**18) == 0


class TestNextSqrtPrice:
    """Test price movement by a token amount."""

    def test_zero_amount_keeps_price(self):
        assert get_next_sqrt_price_from_input(Q96, 10**18, 0, True) == Q96
        assert get_next_sqrt_price_from_input(Q96, 10**18, 0, False) == Q96

    def test_token1_in_moves_price_up(self):
        assert get_next_sqrt_price_from_input(Q96, 10**18, 10**18, False) == 2 * Q96

    def test_token0_in_moves_price_down(self):
        # L / sqrtP' = L / sqrtP + amount -> sqrtP' = 1/2 for amount == L
        assert get_next_sqrt_price_from_input(Q96, 10**18, 10**18, True) == Q96 // 2

    def test_token1_out_moves_price_down(self):
        assert get_next_sqrt_price_from_output(2 * Q96, 10**18, 10**18, True) == Q96

    def test_token0_out_moves_price_up(self):
        assert get_next_sqrt_price_from_output(Q96, 10**18, 5 * 10**17, False) == 2 * Q96

    def test_output_exceeding_reserves_rejected(self):
        with pytest.raises(InsufficientLiquidity):
            get_next_sqrt_price_from_output(Q96, 10**18, 10**18, True)
        with pytest.raises(InsufficientLiquidity):
            get_next_sqrt_price_from_output(Q96, 10**18, 10**18, False)

    def test_zero_liquidity_rejected(self):
        with pytest.raises(InsufficientLiquidity):
            get_next_sqrt_price_from_input(Q96, 0, 1, True)
