"""
Collaborator interfaces used by the pool engine, with in-memory implementations.

The engine depends only on the Custody and ShareLedger protocols; TokenVault
and LiquidityShareLedger are the reference implementations used by the CLI
and the tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from .constants import MAX_UINT256
from .exceptions import (
    InsufficientAllowance,
    InsufficientFunds,
    InsufficientLiquidity,
    ValidationError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Custody(Protocol):
    """
    Asset custody for a pool.

    debit moves tokens from an account into the pool, credit moves them from
    the pool to an account.
    """

    def debit(self, account: str, token: str, amount: int) -> None:
        """Take amount of token from account. Raises InsufficientFunds/InsufficientAllowance."""
        ...

    def credit(self, account: str, token: str, amount: int) -> None:
        """Pay amount of token to account."""
        ...


@runtime_checkable
class ShareLedger(Protocol):
    """Liquidity share accounting: one share per unit of liquidity added."""

    def mint(self, owner: str, amount: int) -> None:
        ...

    def burn(self, owner: str, amount: int) -> None:
        ...

    def balance_of(self, owner: str) -> int:
        ...


@dataclass
class TransferEvent:
    """A custody movement."""
    token: str
    from_account: str
    to_account: str
    amount: int


TransferHook = Callable[[TransferEvent], None]


class TokenVault:
    """
    In-memory multi-token custody.

    Accounts hold balances per token and approve the pool to debit them.
    An allowance of MAX_UINT256 is treated as unlimited and never decremented.
    Transfer hooks run before every debit and credit, which lets tests model
    tokens that call back into the pool.
    """

    def __init__(self, pool_account: str = "pool") -> None:
        self.pool_account = pool_account
        self.balances: dict[str, dict[str, int]] = {}
        self.allowances: dict[str, dict[str, int]] = {}
        self.events: list[TransferEvent] = []
        self._hooks: list[TransferHook] = []

    # ==================== View Functions ====================

    def balance_of(self, account: str, token: str) -> int:
        """Get the token balance of an account."""
        return self.balances.get(token, {}).get(account, 0)

    def allowance(self, owner: str, token: str) -> int:
        """Get the amount of token the pool may debit from owner."""
        return self.allowances.get(token, {}).get(owner, 0)

    # ==================== State-Changing Functions ====================

    def fund(self, account: str, token: str, amount: int) -> None:
        """Create amount of token in an account (faucet for demos and tests)."""
        self._validate_amount(amount)
        token_balances = self.balances.setdefault(token, {})
        token_balances[account] = token_balances.get(account, 0) + amount

        logger.debug(
            "Account funded",
            extra={"event": "vault.fund", "token": token, "account": account, "amount": amount},
        )

    def approve(self, owner: str, token: str, amount: int) -> None:
        """Allow the pool to debit up to amount of token from owner."""
        self._validate_amount(amount)
        self.allowances.setdefault(token, {})[owner] = amount

    def add_transfer_hook(self, hook: TransferHook) -> None:
        self._hooks.append(hook)

    def remove_transfer_hook(self, hook: TransferHook) -> None:
        self._hooks.remove(hook)

    def debit(self, account: str, token: str, amount: int) -> None:
        """
        Move amount of token from account into the pool.

        Raises:
            InsufficientAllowance: If the pool is not approved for amount
            InsufficientFunds: If the account balance is below amount
        """
        self._validate_amount(amount)
        if amount == 0:
            return

        current_allowance = self.allowance(account, token)
        if current_allowance < amount:
            raise InsufficientAllowance(
                f"Insufficient {token} allowance ({current_allowance} < {amount})",
                details={"account": account, "token": token, "allowance": current_allowance, "amount": amount},
            )

        balance = self.balance_of(account, token)
        if balance < amount:
            raise InsufficientFunds(
                f"Insufficient {token} balance ({balance} < {amount})",
                details={"account": account, "token": token, "balance": balance, "amount": amount},
            )

        self._move(token, account, self.pool_account, amount)

        if current_allowance != MAX_UINT256:
            self.allowances[token][account] = current_allowance - amount

    def credit(self, account: str, token: str, amount: int) -> None:
        """Move amount of token from the pool to account."""
        self._validate_amount(amount)
        if amount == 0:
            return

        pool_balance = self.balance_of(self.pool_account, token)
        if pool_balance < amount:
            raise InsufficientFunds(
                f"Pool {token} balance too low to pay {amount}",
                details={"account": account, "token": token, "balance": pool_balance, "amount": amount},
            )

        self._move(token, self.pool_account, account, amount)

    # ==================== Helpers ====================

    def _move(self, token: str, from_account: str, to_account: str, amount: int) -> None:
        event = TransferEvent(token=token, from_account=from_account, to_account=to_account, amount=amount)

        # Hooks run before balances change; a hook that raises aborts the transfer
        for hook in list(self._hooks):
            hook(event)

        token_balances = self.balances.setdefault(token, {})
        token_balances[from_account] = token_balances.get(from_account, 0) - amount
        token_balances[to_account] = token_balances.get(to_account, 0) + amount
        self.events.append(event)

        logger.debug(
            "Vault transfer",
            extra={
                "event": "vault.transfer",
                "token": token,
                "from": from_account,
                "to": to_account,
                "amount": amount,
            },
        )

    def _validate_amount(self, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Amount cannot be negative", details={"amount": amount})
        if amount > MAX_UINT256:
            raise ValidationError("Amount exceeds uint256", details={"amount": amount})


class LiquidityShareLedger:
    """In-memory share ledger; the pool mints one share per unit of liquidity."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.total_supply = 0

    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner, 0)

    def mint(self, owner: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Share amount cannot be negative", details={"amount": amount})
        self.balances[owner] = self.balance_of(owner) + amount
        self.total_supply += amount

    def burn(self, owner: str, amount: int) -> None:
        """Burn shares. Raises InsufficientLiquidity beyond the owner's balance."""
        if amount < 0:
            raise ValidationError("Share amount cannot be negative", details={"amount": amount})
        balance = self.balance_of(owner)
        if balance < amount:
            raise InsufficientLiquidity(
                f"Share burn exceeds balance ({amount} > {balance})",
                details={"owner": owner, "balance": balance, "amount": amount},
            )
        remaining = balance - amount
        if remaining:
            self.balances[owner] = remaining
        else:
            self.balances.pop(owner, None)
        self.total_supply -= amount
