"""
Fixed-point and range constants for the concentrated liquidity engine.
"""

# Tick range
MIN_TICK = -887272
MAX_TICK = 887272

# sqrt prices at MIN_TICK and MAX_TICK (Q64.96)
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Fixed point scales
Q96 = 2**96
Q128 = 2**128

# Integer widths
MAX_UINT128 = 2**128 - 1
MAX_UINT256 = 2**256 - 1

# Swap fee in hundredths of a bip: 3000 / 1_000_000 = 0.30%
FEE_PIPS = 3000
FEE_DENOMINATOR = 1_000_000

# Default number of ticks scanned per step when looking for the next initialized tick
DEFAULT_TICK_SEARCH_WINDOW = 2560
