"""In-memory fungible balance ledger.

The governance core treats balances as a trusted external service with a
single contract: a balance change either happens exactly as requested or
the call raises and nothing moves. This is the reference implementation
used by the service and the CLI; any object satisfying the BalanceLedger
protocol can stand in for it.
"""

from __future__ import annotations

from typing import Any

from revgate.errors import ErrorCode, LedgerError


class InMemoryBalanceLedger:
    """Account balances keyed by identity.

    Usage:
        ledger = InMemoryBalanceLedger()
        ledger.mint("treasury", 5000)
        ledger.transfer("treasury", "alice", 1200)
        ledger.balance_of("alice")   # 1200
    """

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self._balances: dict[str, int] = {}
        for account, amount in (balances or {}).items():
            if amount < 0:
                raise ValueError(f"Negative opening balance for {account}: {amount}")
            self._balances[account] = int(amount)

    def mint(self, account: str, amount: int) -> None:
        """Create ``amount`` new units in ``account``."""
        _require_positive(amount)
        self._balances[account] = self._balances.get(account, 0) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Debit ``sender`` and credit ``recipient`` as one step."""
        _require_positive(amount)
        available = self._balances.get(sender, 0)
        if available < amount:
            raise LedgerError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"Account {sender} holds {available}, cannot transfer {amount}",
            )
        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def accounts(self) -> dict[str, int]:
        return dict(self._balances)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def savepoint(self) -> Any:
        return dict(self._balances)

    def rollback_to(self, savepoint: Any) -> None:
        self._balances = dict(savepoint)

    def to_records(self) -> dict[str, int]:
        return dict(self._balances)

    @classmethod
    def from_records(cls, records: dict[str, int]) -> InMemoryBalanceLedger:
        return cls(records)


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise LedgerError(ErrorCode.INVALID_AMOUNT, f"Amount must be positive, got {amount}")
