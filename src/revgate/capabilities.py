"""Collaborator contracts — what each component needs from the others.

Components never reach into each other's storage. They receive the
collaborators they call as arguments typed by these Protocols, so a test
can hand in a sink that always refuses, or a ledger that always overdraws,
and watch the calling operation abort cleanly.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from revgate.models.governance import Proposal


@runtime_checkable
class AuditSink(Protocol):
    """Append-only event store. Must raise rather than drop an event."""

    def log_event(self, label: str, amount: int, actor: str) -> int:
        """Append an event and return its id."""
        ...


@runtime_checkable
class BalanceLedger(Protocol):
    """Fungible balances. Either the change happens exactly or it raises."""

    def mint(self, account: str, amount: int) -> None:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class ProposalReader(Protocol):
    """Read-only view of the proposal store."""

    def get(self, proposal_id: int) -> Optional[Proposal]:
        ...


@runtime_checkable
class ApprovalReader(Protocol):
    """Read-only approval predicate over a proposal's votes."""

    def is_approved(self, proposal_id: int) -> bool:
        ...


@runtime_checkable
class Transactional(Protocol):
    """A store that can mark its state and return to the mark."""

    def savepoint(self) -> Any:
        ...

    def rollback_to(self, savepoint: Any) -> None:
        ...
