"""
Liquidity and sqrt price math.

Converts between a liquidity amount and the token amounts it represents over a
price interval, and moves a sqrt price by a token amount at fixed liquidity.

Formulas (P = price, sqrt prices in Q64.96):
    amount0 = L * (sqrtPb - sqrtPa) / (sqrtPa * sqrtPb)
    amount1 = L * (sqrtPb - sqrtPa)

Python integers are unbounded, so products never wrap; results are checked
against the fixed-point widths and rejected with ArithmeticOverflow instead.
Rounding always favours the pool: amounts the caller pays round up, amounts
the caller receives round down.
"""

from __future__ import annotations

from typing import Tuple

from .constants import MAX_UINT128, MAX_UINT256, Q96
from .exceptions import ArithmeticOverflow, InsufficientLiquidity
from .tick_math import tick_to_sqrt_price

MAX_UINT160 = 2**160 - 1


# ==================== Fixed-Point Arithmetic ====================


def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Calculate (a * b) / denominator with full precision and controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        round_up: If True, round up (charging the caller)
                  If False, round down (paying the caller)

    Returns:
        Result of (a * b) / denominator

    Raises:
        ArithmeticOverflow: If denominator is zero or the result exceeds uint256
    """
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero", details={"a": a, "b": b})

    result, remainder = divmod(a * b, denominator)
    if round_up and remainder:
        result += 1

    if result > MAX_UINT256:
        raise ArithmeticOverflow(
            "mul_div result exceeds uint256",
            details={"a": a, "b": b, "denominator": denominator},
        )
    return result


def div_rounding_up(numerator: int, denominator: int) -> int:
    """numerator / denominator, rounded up."""
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero", details={"numerator": numerator})
    return -(-numerator // denominator)


def add_delta(liquidity: int, delta: int) -> int:
    """Apply a signed delta to an unsigned 128-bit liquidity value."""
    result = liquidity + delta
    if result < 0:
        raise InsufficientLiquidity(
            "Liquidity would become negative",
            details={"liquidity": liquidity, "delta": delta},
        )
    if result > MAX_UINT128:
        raise ArithmeticOverflow(
            "Liquidity exceeds uint128",
            details={"liquidity": liquidity, "delta": delta},
        )
    return result


def _check_sqrt_price_width(sqrt_price_x96: int) -> int:
    if sqrt_price_x96 <= 0 or sqrt_price_x96 > MAX_UINT160:
        raise ArithmeticOverflow(
            "Sqrt price outside uint160",
            details={"sqrt_price_x96": sqrt_price_x96},
        )
    return sqrt_price_x96


# ==================== Amount Deltas ====================


def get_amount0_delta(
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """Token0 amount for liquidity between two sqrt prices (order independent)."""
    if sqrt_price_a_x96 > sqrt_price_b_x96:
        sqrt_price_a_x96, sqrt_price_b_x96 = sqrt_price_b_x96, sqrt_price_a_x96
    if sqrt_price_a_x96 <= 0:
        raise ArithmeticOverflow(
            "Sqrt price must be positive",
            details={"sqrt_price_a_x96": sqrt_price_a_x96},
        )

    numerator1 = liquidity << 96
    numerator2 = sqrt_price_b_x96 - sqrt_price_a_x96

    if round_up:
        return div_rounding_up(
            mul_div(numerator1, numerator2, sqrt_price_b_x96, round_up=True),
            sqrt_price_a_x96,
        )
    return mul_div(numerator1, numerator2, sqrt_price_b_x96) // sqrt_price_a_x96


def get_amount1_delta(
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """Token1 amount for liquidity between two sqrt prices (order independent)."""
    if sqrt_price_a_x96 > sqrt_price_b_x96:
        sqrt_price_a_x96, sqrt_price_b_x96 = sqrt_price_b_x96, sqrt_price_a_x96

    return mul_div(liquidity, sqrt_price_b_x96 - sqrt_price_a_x96, Q96, round_up=round_up)


def amounts_for_liquidity(
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    round_up: bool = False,
) -> Tuple[int, int]:
    """
    Token amounts represented by liquidity on [tick_lower, tick_upper) at a price.

    Args:
        sqrt_price_x96: Current sqrt price (Q64.96)
        tick_lower: Lower tick of the range
        tick_upper: Upper tick of the range
        liquidity: Liquidity amount
        round_up: True when the caller pays (mint), False when the caller receives (burn)

    Returns:
        (amount0, amount1)
    """
    sqrt_price_a = tick_to_sqrt_price(tick_lower)
    sqrt_price_b = tick_to_sqrt_price(tick_upper)

    if sqrt_price_x96 <= sqrt_price_a:
        # Below range: all token0
        amount0 = get_amount0_delta(sqrt_price_a, sqrt_price_b, liquidity, round_up)
        amount1 = 0
    elif sqrt_price_x96 >= sqrt_price_b:
        # Above range: all token1
        amount0 = 0
        amount1 = get_amount1_delta(sqrt_price_a, sqrt_price_b, liquidity, round_up)
    else:
        amount0 = get_amount0_delta(sqrt_price_x96, sqrt_price_b, liquidity, round_up)
        amount1 = get_amount1_delta(sqrt_price_a, sqrt_price_x96, liquidity, round_up)

    return amount0, amount1


def liquidity_for_amounts(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    amount0: int,
    amount1: int,
) -> int:
    """Largest liquidity that amount0 and amount1 can fund on [sqrtPa, sqrtPb] at a price."""
    if sqrt_price_a_x96 > sqrt_price_b_x96:
        sqrt_price_a_x96, sqrt_price_b_x96 = sqrt_price_b_x96, sqrt_price_a_x96
    if sqrt_price_a_x96 == sqrt_price_b_x96:
        return 0

    def _for_amount0(sqrt_a: int, sqrt_b: int) -> int:
        intermediate = mul_div(sqrt_a, sqrt_b, Q96)
        return mul_div(amount0, intermediate, sqrt_b - sqrt_a)

    def _for_amount1(sqrt_a: int, sqrt_b: int) -> int:
        return mul_div(amount1, Q96, sqrt_b - sqrt_a)

    if sqrt_price_x96 <= sqrt_price_a_x96:
        liquidity = _for_amount0(sqrt_price_a_x96, sqrt_price_b_x96)
    elif sqrt_price_x96 < sqrt_price_b_x96:
        liquidity = min(
            _for_amount0(sqrt_price_x96, sqrt_price_b_x96),
            _for_amount1(sqrt_price_a_x96, sqrt_price_x96),
        )
    else:
        liquidity = _for_amount1(sqrt_price_a_x96, sqrt_price_b_x96)

    return min(liquidity, MAX_UINT128)


# ==================== Next Sqrt Price ====================


def get_next_sqrt_price_from_amount0_rounding_up(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """Sqrt price after adding (add=True) or removing token0, rounded up."""
    if amount == 0:
        return sqrt_price_x96

    numerator1 = liquidity << 96
    product = amount * sqrt_price_x96

    if add:
        return _check_sqrt_price_width(
            mul_div(numerator1, sqrt_price_x96, numerator1 + product, round_up=True)
        )

    if numerator1 <= product:
        raise InsufficientLiquidity(
            "Not enough liquidity to remove token0 amount",
            details={"liquidity": liquidity, "amount": amount},
        )
    return _check_sqrt_price_width(
        mul_div(numerator1, sqrt_price_x96, numerator1 - product, round_up=True)
    )


def get_next_sqrt_price_from_amount1_rounding_down(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """Sqrt price after adding (add=True) or removing token1, rounded down."""
    if add:
        return _check_sqrt_price_width(sqrt_price_x96 + (amount << 96) // liquidity)

    quotient = div_rounding_up(amount << 96, liquidity)
    if sqrt_price_x96 <= quotient:
        raise InsufficientLiquidity(
            "Not enough liquidity to remove token1 amount",
            details={"liquidity": liquidity, "amount": amount},
        )
    return sqrt_price_x96 - quotient


def get_next_sqrt_price_from_input(
    sqrt_price_x96: int,
    liquidity: int,
    amount_in: int,
    zero_for_one: bool,
) -> int:
    """Sqrt price after swapping amount_in into the pool.

    Rounds so that the price never moves further than the input pays for.
    """
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise InsufficientLiquidity(
            "Price and liquidity must be positive",
            details={"sqrt_price_x96": sqrt_price_x96, "liquidity": liquidity},
        )
    if zero_for_one:
        return get_next_sqrt_price_from_amount0_rounding_up(sqrt_price_x96, liquidity, amount_in, True)
    return get_next_sqrt_price_from_amount1_rounding_down(sqrt_price_x96, liquidity, amount_in, True)


def get_next_sqrt_price_from_output(
    sqrt_price_x96: int,
    liquidity: int,
    amount_out: int,
    zero_for_one: bool,
) -> int:
    """Sqrt price after taking amount_out out of the pool.

    Rounds so that the price always moves at least as far as the output requires.
    """
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise InsufficientLiquidity(
            "Price and liquidity must be positive",
            details={"sqrt_price_x96": sqrt_price_x96, "liquidity": liquidity},
        )
    if zero_for_one:
        return get_next_sqrt_price_from_amount1_rounding_down(sqrt_price_x96, liquidity, amount_out, False)
    return get_next_sqrt_price_from_amount0_rounding_up(sqrt_price_x96, liquidity, amount_out, False)
