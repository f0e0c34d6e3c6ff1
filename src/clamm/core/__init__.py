"""
clamm core engine.

This package provides:
- TickMath: tick <-> sqrt price conversion
- LiquidityMath: amount deltas and next sqrt price
- TickLedger / PositionStore: sparse per-tick and per-position ledgers
- PoolEngine: mint, burn, swap and quote with all-or-nothing commits
- Custody / ShareLedger collaborators and the audit log
"""

from .audit import AuditLog, AuditRecord
from .collaborators import (
    Custody,
    LiquidityShareLedger,
    ShareLedger,
    TokenVault,
    TransferEvent,
)
from .config import PoolSettings
from .constants import (
    FEE_PIPS,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q96,
)
from .exceptions import (
    ArithmeticOverflow,
    ConfigurationError,
    InsufficientAllowance,
    InsufficientFunds,
    InsufficientLiquidity,
    InvalidPriceLimit,
    PoolError,
    PriceOutOfRange,
    ReentrancyError,
    SlippageExceeded,
    ValidationError,
)
from .pool import PoolEngine, PoolSnapshot, PoolState, PositionSnapshot, SwapResult
from .position_store import Position, PositionStore
from .tick_ledger import TickInfo, TickLedger
from .tick_math import sqrt_price_to_tick, tick_to_sqrt_price

__all__ = [
    # Audit
    "AuditLog",
    "AuditRecord",
    # Collaborators
    "Custody",
    "LiquidityShareLedger",
    "ShareLedger",
    "TokenVault",
    "TransferEvent",
    # Config
    "PoolSettings",
    # Constants
    "FEE_PIPS",
    "MAX_SQRT_RATIO",
    "MAX_TICK",
    "MIN_SQRT_RATIO",
    "MIN_TICK",
    "Q96",
    # Errors
    "ArithmeticOverflow",
    "ConfigurationError",
    "InsufficientAllowance",
    "InsufficientFunds",
    "InsufficientLiquidity",
    "InvalidPriceLimit",
    "PoolError",
    "PriceOutOfRange",
    "ReentrancyError",
    "SlippageExceeded",
    "ValidationError",
    # Pool
    "PoolEngine",
    "PoolSnapshot",
    "PoolState",
    "PositionSnapshot",
    "SwapResult",
    # Ledgers
    "Position",
    "PositionStore",
    "TickInfo",
    "TickLedger",
    # Tick math
    "sqrt_price_to_tick",
    "tick_to_sqrt_price",
]
