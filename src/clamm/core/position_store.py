"""
Liquidity positions keyed by (owner, tick_lower, tick_upper).

Mints with the same key accumulate into one position; burns decrement it.
Positions that return to zero liquidity are dropped, which readers cannot
distinguish from a position that never existed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, Tuple

from .exceptions import ArithmeticOverflow, InsufficientLiquidity
from .constants import MAX_UINT128

PositionKey = Tuple[str, int, int]


@dataclass
class Position:
    """
    Liquidity position within a price range.

    Fee fields are part of the record but are not accrued in this version.
    """

    owner: str = ""

    # Range (in ticks)
    tick_lower: int = 0
    tick_upper: int = 0

    # Liquidity amount
    liquidity: int = 0

    # Fee tracking
    fee_growth_inside_0_last: int = 0
    fee_growth_inside_1_last: int = 0
    tokens_owed_0: int = 0
    tokens_owed_1: int = 0

    @property
    def key(self) -> PositionKey:
        return (self.owner, self.tick_lower, self.tick_upper)

    def is_in_range(self, current_tick: int) -> bool:
        """Check if current price is within position's range."""
        return self.tick_lower <= current_tick < self.tick_upper


class PositionStore:
    """Sparse position ledger."""

    def __init__(self) -> None:
        self._positions: dict[PositionKey, Position] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return (replace(p) for p in self._positions.values())

    def get(self, owner: str, tick_lower: int, tick_upper: int) -> Position:
        """Return a copy of the position (zero position when absent)."""
        position = self._positions.get((owner, tick_lower, tick_upper))
        if position is None:
            return Position(owner=owner, tick_lower=tick_lower, tick_upper=tick_upper)
        return replace(position)

    def preview_update(self, key: PositionKey, liquidity_delta: int) -> Position:
        """Compute the position after a liquidity change without storing it."""
        position = self.get(*key)
        liquidity_after = position.liquidity + liquidity_delta
        if liquidity_after < 0:
            raise InsufficientLiquidity(
                "Burn amount exceeds position liquidity",
                details={
                    "owner": key[0],
                    "tick_lower": key[1],
                    "tick_upper": key[2],
                    "liquidity": position.liquidity,
                    "requested": -liquidity_delta,
                },
            )
        if liquidity_after > MAX_UINT128:
            raise ArithmeticOverflow(
                "Position liquidity exceeds uint128",
                details={"owner": key[0], "liquidity": position.liquidity, "delta": liquidity_delta},
            )
        position.liquidity = liquidity_after
        return position

    def update(self, key: PositionKey, liquidity_delta: int) -> Position:
        """Apply a liquidity change to a position and return its new state."""
        position = self.preview_update(key, liquidity_delta)
        if position.liquidity == 0 and not (position.tokens_owed_0 or position.tokens_owed_1):
            self._positions.pop(key, None)
        else:
            self._positions[key] = position
        return replace(position)

    def positions_for(self, owner: str) -> list[Position]:
        """All open positions of an owner, ordered by range."""
        return sorted(
            (replace(p) for key, p in self._positions.items() if key[0] == owner),
            key=lambda p: (p.tick_lower, p.tick_upper),
        )
