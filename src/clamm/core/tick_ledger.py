"""
Per-tick liquidity ledger.

Each tick referenced by a position boundary carries the gross liquidity that
references it and the net liquidity applied to the active liquidity when the
price crosses it upward. Ticks are stored sparsely; an absent tick reads the
same as a zero TickInfo.

Initialized ticks are additionally kept in a sorted list so the next
initialized tick in a search window is found with bisect instead of a linear
scan. The result is identical to scanning every tick in the window.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, replace

from .constants import MAX_TICK, MAX_UINT128, MIN_TICK
from .exceptions import ArithmeticOverflow, InsufficientLiquidity, ValidationError
from .tick_math import check_tick

logger = logging.getLogger(__name__)


@dataclass
class TickInfo:
    """Information stored for each referenced tick."""
    liquidity_gross: int = 0  # Total liquidity referencing this tick
    liquidity_net: int = 0    # Added to active liquidity when crossed upward
    initialized: bool = False


class TickLedger:
    """Sparse mapping of tick index to TickInfo with an ordered index of initialized ticks."""

    def __init__(self, reset_initialized_on_zero: bool = False) -> None:
        self.reset_initialized_on_zero = reset_initialized_on_zero
        self._ticks: dict[int, TickInfo] = {}
        self._initialized: list[int] = []

    def __len__(self) -> int:
        return len(self._ticks)

    def __contains__(self, tick: int) -> bool:
        return tick in self._ticks

    def get(self, tick: int) -> TickInfo:
        """Return a copy of the tick's info (zero value when absent)."""
        info = self._ticks.get(tick)
        return replace(info) if info is not None else TickInfo()

    def initialized_ticks(self) -> list[int]:
        """All initialized ticks in ascending order."""
        return list(self._initialized)

    def preview_liquidity_change(
        self,
        tick: int,
        liquidity_delta: int,
        upper: bool = False,
        current: TickInfo | None = None,
    ) -> TickInfo:
        """
        Compute a tick's info after a liquidity change without storing it.

        Args:
            tick: Boundary tick
            liquidity_delta: Signed liquidity change (positive on mint)
            upper: True when the tick is the upper boundary of the range
            current: Info to apply the change to (defaults to the stored info)

        Returns:
            The updated TickInfo

        Raises:
            InsufficientLiquidity: If gross liquidity would become negative
            ArithmeticOverflow: If gross liquidity would exceed uint128
        """
        check_tick(tick)
        info = replace(current) if current is not None else self.get(tick)

        gross_after = info.liquidity_gross + liquidity_delta
        if gross_after < 0:
            raise InsufficientLiquidity(
                f"Tick {tick} gross liquidity would become negative",
                details={"tick": tick, "liquidity_gross": info.liquidity_gross, "delta": liquidity_delta},
            )
        if gross_after > MAX_UINT128:
            raise ArithmeticOverflow(
                f"Tick {tick} gross liquidity exceeds uint128",
                details={"tick": tick, "liquidity_gross": info.liquidity_gross, "delta": liquidity_delta},
            )

        info.liquidity_gross = gross_after
        if upper:
            info.liquidity_net -= liquidity_delta
        else:
            info.liquidity_net += liquidity_delta

        if gross_after > 0:
            info.initialized = True
        elif self.reset_initialized_on_zero:
            info.initialized = False

        return info

    def record_liquidity_change(self, tick: int, liquidity_delta: int, upper: bool = False) -> TickInfo:
        """Apply a liquidity change to a boundary tick and return its new info."""
        info = self.preview_liquidity_change(tick, liquidity_delta, upper)
        self._store(tick, info)
        return replace(info)

    def _store(self, tick: int, info: TickInfo) -> None:
        was_initialized = tick in self._ticks and self._ticks[tick].initialized

        if info.liquidity_gross == 0 and info.liquidity_net == 0 and not info.initialized:
            self._ticks.pop(tick, None)
        else:
            self._ticks[tick] = info

        if info.initialized and not was_initialized:
            bisect.insort(self._initialized, tick)
        elif was_initialized and not info.initialized:
            index = bisect.bisect_left(self._initialized, tick)
            if index < len(self._initialized) and self._initialized[index] == tick:
                del self._initialized[index]

    def find_next_initialized_tick(
        self,
        from_tick: int,
        lte: bool,
        search_window: int,
    ) -> tuple[int, bool]:
        """
        Find the next initialized tick within a bounded window.

        Args:
            from_tick: Tick to search from
            lte: True to search at or below from_tick (price moving down),
                 False to search strictly above it (price moving up)
            search_window: Number of ticks to search

        Returns:
            (tick, found) - the nearest initialized tick, or the window
            boundary with found=False when the window holds none
        """
        if search_window < 1:
            raise ValidationError(
                "search_window must be positive",
                details={"search_window": search_window},
            )

        if lte:
            boundary = max(from_tick - search_window, MIN_TICK)
            index = bisect.bisect_right(self._initialized, from_tick)
            if index > 0 and self._initialized[index - 1] >= boundary:
                return self._initialized[index - 1], True
            return boundary, False

        boundary = min(from_tick + search_window, MAX_TICK)
        index = bisect.bisect_right(self._initialized, from_tick)
        if index < len(self._initialized) and self._initialized[index] <= boundary:
            return self._initialized[index], True
        return boundary, False
