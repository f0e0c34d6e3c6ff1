"""
Exception hierarchy for the concentrated liquidity engine.

Every pool operation is all-or-nothing, so every error here is raised before
any state is committed and can be recovered from by resubmitting corrected
inputs.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class PoolError(Exception):
    """Base exception for all pool errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller can resubmit the operation
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Input Errors ====================


class ValidationError(PoolError):
    """Raised for malformed tick ranges, out-of-range ticks and zero amounts."""
    pass


class InvalidPriceLimit(ValidationError):
    """Raised when a swap price limit is outside the bounds or on the wrong side of the price."""

    def __init__(
        self,
        message: str = "invalid price limit",
        sqrt_price_limit: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.sqrt_price_limit = sqrt_price_limit


class SlippageExceeded(PoolError):
    """Raised when a mint would cost more than the caller's maximum amounts."""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        maximum: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.required = required
        self.maximum = maximum


# ==================== Balance Errors ====================


class InsufficientFunds(PoolError):
    """Raised by custody when an account cannot cover a debit."""
    pass


class InsufficientAllowance(InsufficientFunds):
    """Raised by custody when the pool is not approved for the debit amount."""
    pass


class InsufficientLiquidity(PoolError):
    """Raised when a burn exceeds holdings or a liquidity ledger would underflow."""
    pass


# ==================== Numeric Errors ====================


class ArithmeticOverflow(PoolError):
    """Raised when a fixed-point result exceeds its representable range."""
    pass


class PriceOutOfRange(PoolError):
    """Raised when a tick or sqrt price lies outside the global bounds."""
    pass


# ==================== Execution Errors ====================


class ReentrancyError(PoolError):
    """Raised when a pool entry point is called while another call is in progress."""
    pass


class ConfigurationError(PoolError):
    """Raised when pool settings are invalid."""
    recoverable = False

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents an error the caller can resubmit past.

    Args:
        exc: The exception to check

    Returns:
        True if the operation can be retried with corrected inputs
    """
    if isinstance(exc, PoolError):
        return exc.recoverable
    return False


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, PoolError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, SlippageExceeded):
        if exc.required is not None:
            context["required"] = exc.required
        if exc.maximum is not None:
            context["maximum"] = exc.maximum

    if isinstance(exc, InvalidPriceLimit) and exc.sqrt_price_limit is not None:
        context["sqrt_price_limit"] = exc.sqrt_price_limit

    return context
