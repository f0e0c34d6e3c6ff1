"""
Concentrated liquidity pool engine.

Liquidity providers commit capital to a tick range [tick_lower, tick_upper);
swaps trade against the liquidity active at the current price and move the
price across range boundaries, adjusting active liquidity at every crossed
tick.

Every entry point is all-or-nothing: amounts, tick changes and position
changes are computed on working copies, the caller is settled with custody
(payments in first, then payouts), and only then is the new state published.
A failed transfer reverses the transfers already made; the pool state is
never published for a failed call. Audit subscribers run after
the commit and cannot undo it.

Security features:
- Reentrancy protection (a call made from a custody callback is rejected)
- Rounding in the pool's favour on every amount
- Position and tick bounds checking
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any, Iterator

from .audit import AuditLog
from .collaborators import Custody, LiquidityShareLedger, ShareLedger
from .config import PoolSettings
from .constants import (
    FEE_PIPS,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MAX_UINT128,
    MAX_UINT256,
    MIN_SQRT_RATIO,
    MIN_TICK,
)
from .exceptions import (
    InsufficientLiquidity,
    InvalidPriceLimit,
    PoolError,
    ReentrancyError,
    SlippageExceeded,
    ValidationError,
    get_error_context,
)
from .liquidity_math import add_delta, amounts_for_liquidity
from .position_store import PositionStore
from .swap_math import compute_swap_step
from .tick_ledger import TickLedger
from .tick_math import check_sqrt_price, sqrt_price_to_tick, tick_to_sqrt_price

logger = logging.getLogger(__name__)

MAX_INT256 = 2**255 - 1


@dataclass
class PoolState:
    """Mutable pool state; replaced as a whole on every committed operation."""
    sqrt_price_x96: int
    tick: int
    liquidity: int = 0  # Active liquidity

    # Fee tracking (no per-position accrual in this version)
    fee_growth_global_0_x128: int = 0
    fee_growth_global_1_x128: int = 0
    protocol_fees_0: int = 0
    protocol_fees_1: int = 0


@dataclass(frozen=True)
class PoolSnapshot:
    liquidity: int
    sqrt_price_x96: int
    tick: int


@dataclass(frozen=True)
class PositionSnapshot:
    liquidity: int
    tokens_owed_0: int
    tokens_owed_1: int


@dataclass(frozen=True)
class SwapResult:
    """
    Outcome of a swap.

    amount0/amount1 are pool-side deltas: positive is paid by the caller,
    negative is paid to the caller.
    """
    amount0: int
    amount1: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    fee_amount: int
    crossed_ticks: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["crossed_ticks"] = list(self.crossed_ticks)
        return data


class PoolEngine:
    """
    Concentrated liquidity pool for one token pair with a fixed 0.30% fee.

    Price representation:
    - sqrt price in Q64.96 fixed point
    - tick = floor(log_1.0001(price))
    """

    def __init__(
        self,
        sqrt_price_x96: int,
        custody: Custody,
        shares: ShareLedger | None = None,
        token0: str = "token0",
        token1: str = "token1",
        settings: PoolSettings | None = None,
        audit_log: AuditLog | None = None,
    ) -> None:
        check_sqrt_price(sqrt_price_x96)

        self.settings = settings or PoolSettings.from_env()
        self.custody = custody
        self.shares = shares if shares is not None else LiquidityShareLedger()
        self.token0 = token0
        self.token1 = token1
        self.fee = FEE_PIPS
        self.audit_log = audit_log if audit_log is not None else AuditLog(path=self.settings.audit_file)

        self.ticks = TickLedger(reset_initialized_on_zero=self.settings.reset_initialized_on_zero)
        self.positions = PositionStore()
        self._state = PoolState(
            sqrt_price_x96=sqrt_price_x96,
            tick=sqrt_price_to_tick(sqrt_price_x96),
        )

        # Reentrancy guard
        self._lock = threading.RLock()
        self._in_progress = False

        logger.info(
            "Pool initialized",
            extra={
                "event": "clamm.initialize",
                "token0": token0,
                "token1": token1,
                "sqrt_price_x96": sqrt_price_x96,
                "tick": self._state.tick,
            },
        )

    # ==================== Queries ====================

    @property
    def state(self) -> PoolState:
        """Copy of the full pool state."""
        return replace(self._state)

    def get_pool_state(self) -> PoolSnapshot:
        return PoolSnapshot(
            liquidity=self._state.liquidity,
            sqrt_price_x96=self._state.sqrt_price_x96,
            tick=self._state.tick,
        )

    def get_position(self, owner: str, tick_lower: int, tick_upper: int) -> PositionSnapshot:
        position = self.positions.get(owner, tick_lower, tick_upper)
        return PositionSnapshot(
            liquidity=position.liquidity,
            tokens_owed_0=position.tokens_owed_0,
            tokens_owed_1=position.tokens_owed_1,
        )

    def balance_of(self, owner: str) -> int:
        """Liquidity share balance of owner."""
        return self.shares.balance_of(owner)

    # ==================== Liquidity ====================

    def mint(
        self,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        amount: int,
        amount0_max: int = MAX_UINT256,
        amount1_max: int = MAX_UINT256,
    ) -> tuple[int, int]:
        """
        Add liquidity to a position.

        Args:
            owner: Position owner; pays the token amounts
            tick_lower: Lower tick of range
            tick_upper: Upper tick of range
            amount: Liquidity to add
            amount0_max: Most token0 the owner will pay
            amount1_max: Most token1 the owner will pay

        Returns:
            (amount0, amount1) - tokens paid by the owner
        """
        with self._guard("mint"):
            try:
                self._validate_range(tick_lower, tick_upper)
                self._validate_liquidity(amount)

                state = replace(self._state)
                amount0, amount1 = amounts_for_liquidity(
                    state.sqrt_price_x96, tick_lower, tick_upper, amount, round_up=True
                )
                if amount0 > amount0_max:
                    raise SlippageExceeded(
                        f"token0 required {amount0} exceeds maximum {amount0_max}",
                        required=amount0,
                        maximum=amount0_max,
                    )
                if amount1 > amount1_max:
                    raise SlippageExceeded(
                        f"token1 required {amount1} exceeds maximum {amount1_max}",
                        required=amount1,
                        maximum=amount1_max,
                    )

                key = (owner, tick_lower, tick_upper)
                self.ticks.preview_liquidity_change(tick_lower, amount)
                self.ticks.preview_liquidity_change(tick_upper, amount, upper=True)
                position = self.positions.preview_update(key, amount)
                if tick_lower <= state.tick < tick_upper:
                    state.liquidity = add_delta(state.liquidity, amount)

                self._settle(owner, [("debit", self.token0, amount0), ("debit", self.token1, amount1)])
            except PoolError as e:
                self._log_failure("mint", owner, e)
                raise

            before = self._audit_view()
            self.ticks.record_liquidity_change(tick_lower, amount)
            self.ticks.record_liquidity_change(tick_upper, amount, upper=True)
            self.positions.update(key, amount)
            self._state = state
            self.shares.mint(owner, amount)

            details = {
                "tick_lower": tick_lower,
                "tick_upper": tick_upper,
                "amount": amount,
                "amount0": amount0,
                "amount1": amount1,
            }
            self.audit_log.append(
                "mint",
                owner,
                details,
                before={**before, "position_liquidity": position.liquidity - amount},
                after={**self._audit_view(), "position_liquidity": position.liquidity},
            )
            logger.info(
                "Position minted",
                extra={"event": "clamm.mint", "owner": owner, **details},
            )
            return amount0, amount1

    def burn(
        self,
        owner: str,
        tick_lower: int,
        tick_upper: int,
        amount: int,
    ) -> tuple[int, int]:
        """
        Remove liquidity from a position.

        Args:
            owner: Position owner; receives the token amounts
            tick_lower: Lower tick of range
            tick_upper: Upper tick of range
            amount: Liquidity to remove

        Returns:
            (amount0, amount1) - tokens returned
        """
        with self._guard("burn"):
            try:
                self._validate_range(tick_lower, tick_upper)
                self._validate_liquidity(amount)

                key = (owner, tick_lower, tick_upper)
                position = self.positions.preview_update(key, -amount)

                share_balance = self.shares.balance_of(owner)
                if share_balance < amount:
                    raise InsufficientLiquidity(
                        f"Share balance {share_balance} below burn amount {amount}",
                        details={"owner": owner, "balance": share_balance, "amount": amount},
                    )

                state = replace(self._state)
                amount0, amount1 = amounts_for_liquidity(
                    state.sqrt_price_x96, tick_lower, tick_upper, amount, round_up=False
                )

                self.ticks.preview_liquidity_change(tick_lower, -amount)
                self.ticks.preview_liquidity_change(tick_upper, -amount, upper=True)
                if tick_lower <= state.tick < tick_upper:
                    state.liquidity = add_delta(state.liquidity, -amount)

                self._settle(owner, [("credit", self.token0, amount0), ("credit", self.token1, amount1)])
            except PoolError as e:
                self._log_failure("burn", owner, e)
                raise

            before = self._audit_view()
            self.ticks.record_liquidity_change(tick_lower, -amount)
            self.ticks.record_liquidity_change(tick_upper, -amount, upper=True)
            self.positions.update(key, -amount)
            self._state = state
            self.shares.burn(owner, amount)

            details = {
                "tick_lower": tick_lower,
                "tick_upper": tick_upper,
                "amount": amount,
                "amount0": amount0,
                "amount1": amount1,
            }
            self.audit_log.append(
                "burn",
                owner,
                details,
                before={**before, "position_liquidity": position.liquidity + amount},
                after={**self._audit_view(), "position_liquidity": position.liquidity},
            )
            logger.info(
                "Position burned",
                extra={"event": "clamm.burn", "owner": owner, **details},
            )
            return amount0, amount1

    # ==================== Swapping ====================

    def swap(
        self,
        recipient: str,
        zero_for_one: bool,
        amount_specified: int,
        sqrt_price_limit: int | None = None,
    ) -> SwapResult:
        """
        Execute a swap through the pool.

        Args:
            recipient: Swap initiator; pays the input and receives the output
            zero_for_one: True for token0->token1, False for token1->token0
            amount_specified: Positive for exact input, negative for exact output
            sqrt_price_limit: Price the swap may not pass (default: the price bound)

        Returns:
            SwapResult with the pool-side amount deltas and the final price
        """
        with self._guard("swap"):
            try:
                state, result = self._run_swap(zero_for_one, amount_specified, sqrt_price_limit)
                self._settle(recipient, self._swap_transfers(result))
            except PoolError as e:
                self._log_failure("swap", recipient, e)
                raise

            before = self._audit_view()
            self._state = state

            details = {
                "zero_for_one": zero_for_one,
                "amount_specified": amount_specified,
                "amount0": result.amount0,
                "amount1": result.amount1,
                "fee_amount": result.fee_amount,
                "crossed_ticks": list(result.crossed_ticks),
            }
            self.audit_log.append("swap", recipient, details, before=before, after=self._audit_view())
            logger.info(
                "Swap executed",
                extra={
                    "event": "clamm.swap",
                    "recipient": recipient,
                    "direction": "0->1" if zero_for_one else "1->0",
                    "amount0": result.amount0,
                    "amount1": result.amount1,
                    "fee_amount": result.fee_amount,
                    "tick": result.tick,
                },
            )
            return result

    def quote(
        self,
        zero_for_one: bool,
        amount_specified: int,
        sqrt_price_limit: int | None = None,
    ) -> SwapResult:
        """Result the same swap would produce now, without settling or committing it."""
        with self._guard("quote"):
            _, result = self._run_swap(zero_for_one, amount_specified, sqrt_price_limit)
            return result

    def _run_swap(
        self,
        zero_for_one: bool,
        amount_specified: int,
        sqrt_price_limit: int | None,
    ) -> tuple[PoolState, SwapResult]:
        if amount_specified == 0:
            raise ValidationError("Amount must be non-zero")
        if abs(amount_specified) > MAX_INT256:
            raise ValidationError(
                "Amount exceeds int256",
                details={"amount_specified": amount_specified},
            )

        state = replace(self._state)

        # Set price limit if not provided
        if sqrt_price_limit is None:
            sqrt_price_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1

        if zero_for_one:
            valid_limit = MIN_SQRT_RATIO < sqrt_price_limit < state.sqrt_price_x96
        else:
            valid_limit = state.sqrt_price_x96 < sqrt_price_limit < MAX_SQRT_RATIO
        if not valid_limit:
            raise InvalidPriceLimit(
                sqrt_price_limit=sqrt_price_limit,
                details={
                    "sqrt_price_x96": state.sqrt_price_x96,
                    "zero_for_one": zero_for_one,
                },
            )

        exact_input = amount_specified > 0
        amount_remaining = amount_specified
        amount_calculated = 0
        fee_total = 0
        crossed: list[int] = []

        # Loop through ticks until amount is fulfilled or price limit reached
        while amount_remaining != 0 and state.sqrt_price_x96 != sqrt_price_limit:
            sqrt_price_start = state.sqrt_price_x96

            next_tick, initialized = self.ticks.find_next_initialized_tick(
                state.tick, zero_for_one, self.settings.tick_search_window
            )
            sqrt_price_next = tick_to_sqrt_price(next_tick)

            # Cap at price limit
            if zero_for_one:
                sqrt_price_target = max(sqrt_price_next, sqrt_price_limit)
            else:
                sqrt_price_target = min(sqrt_price_next, sqrt_price_limit)

            state.sqrt_price_x96, amount_in, amount_out, fee_amount = compute_swap_step(
                state.sqrt_price_x96,
                sqrt_price_target,
                state.liquidity,
                amount_remaining,
                self.fee,
            )

            if exact_input:
                amount_remaining -= amount_in + fee_amount
                amount_calculated -= amount_out
            else:
                amount_remaining += amount_out
                amount_calculated += amount_in + fee_amount
            fee_total += fee_amount

            if state.sqrt_price_x96 == sqrt_price_next:
                # Cross tick
                if initialized:
                    liquidity_net = self.ticks.get(next_tick).liquidity_net
                    if zero_for_one:
                        liquidity_net = -liquidity_net
                    state.liquidity = add_delta(state.liquidity, liquidity_net)
                    crossed.append(next_tick)
                state.tick = next_tick - 1 if zero_for_one else next_tick
            elif state.sqrt_price_x96 != sqrt_price_start:
                state.tick = sqrt_price_to_tick(state.sqrt_price_x96)

        if zero_for_one:
            state.protocol_fees_0 += fee_total
        else:
            state.protocol_fees_1 += fee_total

        # Calculate final amounts
        if zero_for_one == exact_input:
            amount0 = amount_specified - amount_remaining
            amount1 = amount_calculated
        else:
            amount0 = amount_calculated
            amount1 = amount_specified - amount_remaining

        result = SwapResult(
            amount0=amount0,
            amount1=amount1,
            sqrt_price_x96=state.sqrt_price_x96,
            tick=state.tick,
            liquidity=state.liquidity,
            fee_amount=fee_total,
            crossed_ticks=tuple(crossed),
        )
        return state, result

    # ==================== Helpers ====================

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Serialize entry points and reject reentrant calls from the same thread."""
        with self._lock:
            if self._in_progress:
                logger.warning(
                    "Reentrant %s rejected",
                    operation,
                    extra={"event": "clamm.reentrancy_rejected", "operation": operation},
                )
                raise ReentrancyError(
                    f"Pool is locked; reentrant {operation} rejected",
                    details={"operation": operation},
                )
            self._in_progress = True
            try:
                yield
            finally:
                self._in_progress = False

    def _validate_range(self, tick_lower: int, tick_upper: int) -> None:
        """Validate tick range."""
        if tick_lower >= tick_upper:
            raise ValidationError(
                "tick_lower must be less than tick_upper",
                details={"tick_lower": tick_lower, "tick_upper": tick_upper},
            )
        if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
            raise ValidationError(
                "Ticks out of range",
                details={"tick_lower": tick_lower, "tick_upper": tick_upper},
            )

    def _validate_liquidity(self, amount: int) -> None:
        if amount <= 0:
            raise ValidationError("Liquidity amount must be positive", details={"amount": amount})
        if amount > MAX_UINT128:
            raise ValidationError("Liquidity amount exceeds uint128", details={"amount": amount})

    def _swap_transfers(self, result: SwapResult) -> list[tuple[str, str, int]]:
        """Input debits first, then output credits."""
        amounts = ((self.token0, result.amount0), (self.token1, result.amount1))
        debits = [("debit", token, amount) for token, amount in amounts if amount > 0]
        credits = [("credit", token, -amount) for token, amount in amounts if amount < 0]
        return debits + credits

    def _settle(self, account: str, transfers: list[tuple[str, str, int]]) -> None:
        """
        Apply ("debit" | "credit", token, amount) custody transfers for account in order.

        If a transfer fails, the ones already applied are reversed, newest
        first, and the error is re-raised. A reversal custody refuses is logged
        and its error propagates instead.
        """
        applied: list[tuple[str, str, int]] = []
        try:
            for direction, token, amount in transfers:
                if amount == 0:
                    continue
                self._transfer(direction, account, token, amount)
                applied.append((direction, token, amount))
        except Exception:
            try:
                for direction, token, amount in reversed(applied):
                    self._transfer("credit" if direction == "debit" else "debit", account, token, amount)
            except Exception:
                logger.error(
                    "Could not reverse settlement for %s",
                    account,
                    extra={
                        "event": "clamm.settlement_unwind_failed",
                        "account": account,
                        "applied": [list(t) for t in applied],
                    },
                )
                raise
            raise

    def _transfer(self, direction: str, account: str, token: str, amount: int) -> None:
        if direction == "debit":
            self.custody.debit(account, token, amount)
        else:
            self.custody.credit(account, token, amount)

    def _audit_view(self) -> dict[str, int]:
        return {
            "liquidity": self._state.liquidity,
            "sqrt_price_x96": self._state.sqrt_price_x96,
            "tick": self._state.tick,
        }

    def _log_failure(self, operation: str, actor: str, exc: PoolError) -> None:
        logger.warning(
            "%s failed: %s",
            operation.capitalize(),
            exc,
            extra={"event": f"clamm.{operation}_failed", "actor": actor, **get_error_context(exc)},
        )
