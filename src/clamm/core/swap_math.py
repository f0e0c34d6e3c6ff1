"""
Single swap step inside one constant-product segment.

The fee is withheld from the input before the step is sized and returned
separately from the principal amount_in, with one rounding rule on every path:

- exact input: the step is sized with ``remaining * (1e6 - fee) // 1e6``. When
  that reaches the target price the step takes exactly the delta to the target
  and the fee is ``ceil(amount_in * fee / (1e6 - fee))``; otherwise the whole
  remainder is consumed and the fee is what is left after amount_in.
- exact output: the output is capped at the delta to the target, amount_in is
  rounded up and the fee is ``ceil(amount_in * fee / (1e6 - fee))``.
"""

from __future__ import annotations

from .constants import FEE_DENOMINATOR
from .liquidity_math import (
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
    mul_div,
)


def fee_on_amount_in(amount_in: int, fee_pips: int) -> int:
    """Fee owed on a principal amount_in, rounded up."""
    return mul_div(amount_in, fee_pips, FEE_DENOMINATOR - fee_pips, round_up=True)


def compute_swap_step(
    sqrt_price_current_x96: int,
    sqrt_price_target_x96: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> tuple[int, int, int, int]:
    """
    Compute one swap step toward a target price.

    Direction is implied by the prices: a target below the current price
    swaps token0 for token1.

    Args:
        sqrt_price_current_x96: Price at the start of the step
        sqrt_price_target_x96: Price the step may not pass
        liquidity: Active liquidity for the segment
        amount_remaining: Positive for exact input, negative for exact output
        fee_pips: Fee in hundredths of a basis point

    Returns:
        (sqrt_price_next, amount_in, amount_out, fee_amount)
    """
    zero_for_one = sqrt_price_current_x96 >= sqrt_price_target_x96
    exact_input = amount_remaining >= 0

    # An empty segment moves straight to the target
    if liquidity == 0:
        return sqrt_price_target_x96, 0, 0, 0

    if exact_input:
        amount_remaining_less_fee = mul_div(
            amount_remaining, FEE_DENOMINATOR - fee_pips, FEE_DENOMINATOR
        )
        if zero_for_one:
            amount_in = get_amount0_delta(sqrt_price_target_x96, sqrt_price_current_x96, liquidity, True)
        else:
            amount_in = get_amount1_delta(sqrt_price_current_x96, sqrt_price_target_x96, liquidity, True)

        if amount_remaining_less_fee >= amount_in:
            sqrt_price_next = sqrt_price_target_x96
        else:
            sqrt_price_next = get_next_sqrt_price_from_input(
                sqrt_price_current_x96, liquidity, amount_remaining_less_fee, zero_for_one
            )
    else:
        if zero_for_one:
            amount_out = get_amount1_delta(sqrt_price_target_x96, sqrt_price_current_x96, liquidity, False)
        else:
            amount_out = get_amount0_delta(sqrt_price_current_x96, sqrt_price_target_x96, liquidity, False)

        if -amount_remaining >= amount_out:
            sqrt_price_next = sqrt_price_target_x96
        else:
            sqrt_price_next = get_next_sqrt_price_from_output(
                sqrt_price_current_x96, liquidity, -amount_remaining, zero_for_one
            )

    reached_target = sqrt_price_next == sqrt_price_target_x96

    # Recompute both legs for the price actually reached
    if zero_for_one:
        if not (reached_target and exact_input):
            amount_in = get_amount0_delta(sqrt_price_next, sqrt_price_current_x96, liquidity, True)
        if not (reached_target and not exact_input):
            amount_out = get_amount1_delta(sqrt_price_next, sqrt_price_current_x96, liquidity, False)
    else:
        if not (reached_target and exact_input):
            amount_in = get_amount1_delta(sqrt_price_current_x96, sqrt_price_next, liquidity, True)
        if not (reached_target and not exact_input):
            amount_out = get_amount0_delta(sqrt_price_current_x96, sqrt_price_next, liquidity, False)

    if not exact_input and amount_out > -amount_remaining:
        amount_out = -amount_remaining

    if exact_input and not reached_target:
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = fee_on_amount_in(amount_in, fee_pips)

    return sqrt_price_next, amount_in, amount_out, fee_amount
