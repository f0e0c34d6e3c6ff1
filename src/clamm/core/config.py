"""
Pool engine configuration.

Settings are read from CLAMM_* environment variables so that a deployment
can tune the tick search and logging without code changes:

    CLAMM_ENV                         development | production (default development)
    CLAMM_LOG_LEVEL                   DEBUG, INFO, WARNING, ERROR (default INFO)
    CLAMM_LOG_FILE                    optional JSON log file path
    CLAMM_AUDIT_FILE                  optional JSON-lines mirror of the audit log
    CLAMM_TICK_SEARCH_WINDOW          ticks scanned per swap step (default 2560)
    CLAMM_RESET_INITIALIZED_ON_ZERO   1 to clear a tick's initialized flag when
                                      its gross liquidity returns to zero
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import DEFAULT_TICK_SEARCH_WINDOW, MAX_TICK, MIN_TICK
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLAMM_"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _parse_bool(env_var: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{env_var} must be a boolean flag, got {raw!r}",
        details={"env_var": env_var, "value": raw},
    )


def _parse_int(env_var: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var, "value": raw},
        ) from exc


@dataclass(frozen=True)
class PoolSettings:
    """Tunable, non-economic settings of a pool engine."""

    tick_search_window: int = DEFAULT_TICK_SEARCH_WINDOW
    reset_initialized_on_zero: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None
    environment: str = "development"
    audit_file: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if any setting is out of range."""
        if not 1 <= self.tick_search_window <= MAX_TICK - MIN_TICK:
            raise ConfigurationError(
                f"tick_search_window must be between 1 and {MAX_TICK - MIN_TICK}",
                details={"tick_search_window": self.tick_search_window},
            )
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}",
                details={"log_level": self.log_level},
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PoolSettings":
        """Build settings from CLAMM_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ (used by tests)

        Returns:
            Validated settings
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        raw = env.get(f"{ENV_PREFIX}TICK_SEARCH_WINDOW")
        if raw is not None:
            kwargs["tick_search_window"] = _parse_int(f"{ENV_PREFIX}TICK_SEARCH_WINDOW", raw)

        raw = env.get(f"{ENV_PREFIX}RESET_INITIALIZED_ON_ZERO")
        if raw is not None:
            kwargs["reset_initialized_on_zero"] = _parse_bool(
                f"{ENV_PREFIX}RESET_INITIALIZED_ON_ZERO", raw
            )

        raw = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if raw:
            kwargs["log_level"] = raw.strip().upper()

        raw = env.get(f"{ENV_PREFIX}LOG_FILE", "").strip()
        if raw:
            kwargs["log_file"] = raw

        raw = env.get(f"{ENV_PREFIX}AUDIT_FILE", "").strip()
        if raw:
            kwargs["audit_file"] = raw

        raw = env.get(f"{ENV_PREFIX}ENV", "").strip()
        if raw:
            kwargs["environment"] = raw.lower()

        settings = cls(**kwargs)
        logger.debug(
            "Pool settings loaded",
            extra={
                "event": "config.loaded",
                "tick_search_window": settings.tick_search_window,
                "reset_initialized_on_zero": settings.reset_initialized_on_zero,
                "environment": settings.environment,
            },
        )
        return settings
