"""
Tick <-> sqrt price conversion.

Prices are discretized as price(tick) = 1.0001^tick and stored as
sqrt(price) in Q64.96 fixed point. Both directions use integer arithmetic only:

- tick_to_sqrt_price multiplies Q128.128 powers of 1/sqrt(1.0001) selected by the
  bits of |tick|, inverts for positive ticks and rounds up to Q64.96.
- sqrt_price_to_tick takes log2 of the Q128.128 ratio to 14 fractional bits,
  converts to log base sqrt(1.0001) and resolves the remaining one-tick
  ambiguity with tick_to_sqrt_price.
"""

from __future__ import annotations

import math
from decimal import Decimal, localcontext

from .constants import MAX_SQRT_RATIO, MAX_TICK, MIN_SQRT_RATIO, MIN_TICK, Q96
from .exceptions import PriceOutOfRange, ValidationError

# Q128.128 values of 1/sqrt(1.0001)^(2^i), i = 1..19
_RATIO_FACTORS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)

# log_sqrt(1.0001)(2) in Q64.64 and the error bounds of the 14-bit log2
_LOG_SQRT10001_MULTIPLIER = 255738958999603826347141
_TICK_LOW_OFFSET = 3402992956809132418596140100660247210
_TICK_HIGH_OFFSET = 291339464771989622907027621153398088495


def check_tick(tick: int) -> None:
    """Raise PriceOutOfRange if tick is outside [MIN_TICK, MAX_TICK]."""
    if tick < MIN_TICK or tick > MAX_TICK:
        raise PriceOutOfRange(
            f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]",
            details={"tick": tick},
        )


def check_sqrt_price(sqrt_price_x96: int) -> None:
    """Raise PriceOutOfRange if a sqrt price is outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO]."""
    if sqrt_price_x96 < MIN_SQRT_RATIO or sqrt_price_x96 > MAX_SQRT_RATIO:
        raise PriceOutOfRange(
            f"Sqrt price {sqrt_price_x96} outside [{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO}]",
            details={"sqrt_price_x96": sqrt_price_x96},
        )


def tick_to_sqrt_price(tick: int) -> int:
    """
    Convert a tick to its sqrt price in Q64.96 format.

    sqrt_price = 1.0001^(tick/2) * 2^96, rounded up.

    Args:
        tick: Tick index in [MIN_TICK, MAX_TICK]

    Returns:
        Sqrt price (Q64.96)

    Raises:
        PriceOutOfRange: If the tick is outside the global bounds
    """
    check_tick(tick)
    abs_tick = abs(tick)

    ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001 if abs_tick & 0x1 else 1 << 128
    for bit, factor in _RATIO_FACTORS:
        if abs_tick & bit:
            ratio = (ratio * factor) >> 128

    if tick > 0:
        ratio = (2**256 - 1) // ratio

    # Q128.128 -> Q64.96, rounding up so the result converts back to the same tick
    return (ratio >> 32) + (1 if ratio & 0xFFFFFFFF else 0)


def sqrt_price_to_tick(sqrt_price_x96: int) -> int:
    """
    Convert a sqrt price to the greatest tick whose sqrt price is <= it.

    Args:
        sqrt_price_x96: Sqrt price (Q64.96) in [MIN_SQRT_RATIO, MAX_SQRT_RATIO]

    Returns:
        Tick index, clamped to [MIN_TICK, MAX_TICK]

    Raises:
        PriceOutOfRange: If the sqrt price is outside the global bounds
    """
    check_sqrt_price(sqrt_price_x96)
    if sqrt_price_x96 == MAX_SQRT_RATIO:
        return MAX_TICK

    ratio = sqrt_price_x96 << 32
    msb = ratio.bit_length() - 1

    # Normalise to 128 fractional bits
    if msb >= 128:
        r = ratio >> (msb - 127)
    else:
        r = ratio << (127 - msb)

    log_2 = (msb - 128) << 64
    for shift in range(63, 49, -1):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << shift
        r >>= f

    log_sqrt10001 = log_2 * _LOG_SQRT10001_MULTIPLIER

    tick_low = max((log_sqrt10001 - _TICK_LOW_OFFSET) >> 128, MIN_TICK)
    tick_high = min((log_sqrt10001 + _TICK_HIGH_OFFSET) >> 128, MAX_TICK)

    if tick_low == tick_high:
        return tick_low
    if tick_to_sqrt_price(tick_high) <= sqrt_price_x96:
        return tick_high
    return tick_low


# ==================== Display Helpers ====================


def tick_to_price(tick: int) -> float:
    """Convert tick to price (token1 per token0) for display."""
    check_tick(tick)
    return 1.0001 ** tick


def sqrt_price_to_price(sqrt_price_x96: int) -> float:
    """Convert a Q64.96 sqrt price to price (token1 per token0) for display."""
    return (sqrt_price_x96 / Q96) ** 2


def price_to_sqrt_price(price) -> int:
    """Convert a price to Q64.96 sqrt price, rounded down.

    Uses Decimal so that prices far from 1 keep full precision.
    """
    value = Decimal(str(price))
    if not value.is_finite() or value <= 0:
        raise ValidationError(
            "Price must be a positive finite number", details={"price": str(price)}
        )
    with localcontext() as ctx:
        ctx.prec = 80
        sqrt_price = value.sqrt() * Q96
    return int(sqrt_price)


def price_to_tick(price) -> int:
    """Convert a price to the tick at or below it."""
    sqrt_price_x96 = price_to_sqrt_price(price)
    sqrt_price_x96 = min(max(sqrt_price_x96, MIN_SQRT_RATIO), MAX_SQRT_RATIO)
    return sqrt_price_to_tick(sqrt_price_x96)


def encode_price_sqrt(amount1: int, amount0: int) -> int:
    """Q64.96 sqrt price of the reserve ratio amount1/amount0, rounded down."""
    if amount0 <= 0 or amount1 <= 0:
        raise ValidationError(
            "Reserve amounts must be positive",
            details={"amount0": amount0, "amount1": amount1},
        )
    return math.isqrt((amount1 << 192) // amount0)
