"""Disbursement orchestrator — pays approved proposals from the treasury.

The orchestrator owns no governance state. It asks the proposal store
whether the proposal exists, asks the voting tally whether it is
approved, and only then moves the proposal's amount out of the treasury.
It never touches votes or proposals.

Design note: there is no check that a specific revenue entry backs the
proposal, and an approved proposal may be paid more than once. The
treasury balance is the only guard on both, and every payment is
individually audited.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from revgate.capabilities import ApprovalReader, AuditSink, BalanceLedger, ProposalReader
from revgate.clock import LogicalClock
from revgate.errors import ErrorCode, LedgerError
from revgate.persistence.event_log import AuditEvent, record_event
from revgate.persistence.transaction import atomic


@dataclass(frozen=True)
class DisbursementRecord:
    """One completed treasury payment. Immutable once recorded."""
    proposal_id: int
    recipient: str
    amount: int
    disbursed_by: str
    disbursed_at: int
    audit_id: int


class DisbursementOrchestrator:
    """Executes payments for approved proposals.

    Usage:
        orchestrator = DisbursementOrchestrator("treasury", clock)
        orchestrator.disburse(pid, "alice", caller="bob",
                              proposal_store=store, voting_tally=tally,
                              audit_log=log, balance_ledger=balances)
    """

    def __init__(self, treasury_account: str, clock: LogicalClock) -> None:
        self._treasury = treasury_account
        self._clock = clock
        self._history: list[DisbursementRecord] = []

    def disburse(
        self,
        proposal_id: int,
        recipient: str,
        caller: str,
        proposal_store: ProposalReader,
        voting_tally: ApprovalReader,
        audit_log: AuditSink,
        balance_ledger: BalanceLedger,
    ) -> DisbursementRecord:
        """Transfer the proposal's amount to ``recipient``.

        A missing proposal and an unapproved one both report NOT_APPROVED:
        either way the approval predicate does not hold.
        """
        proposal = proposal_store.get(proposal_id)
        if proposal is None:
            raise LedgerError(
                ErrorCode.NOT_APPROVED, f"No proposal {proposal_id} to disburse",
            )
        if not voting_tally.is_approved(proposal_id):
            raise LedgerError(
                ErrorCode.NOT_APPROVED, f"Proposal {proposal_id} is not approved",
            )

        # The balance ledger may not be Transactional, so the transfer is
        # the last step that can fail.
        with atomic(self, audit_log, balance_ledger):
            audit_id = record_event(
                audit_log, AuditEvent.FUNDS_DISBURSED, proposal.amount, recipient,
            )
            balance_ledger.transfer(self._treasury, recipient, proposal.amount)
            record = DisbursementRecord(
                proposal_id=proposal_id,
                recipient=recipient,
                amount=proposal.amount,
                disbursed_by=caller,
                disbursed_at=self._clock.now(),
                audit_id=audit_id,
            )
            self._history.append(record)
        return record

    def history(self) -> list[DisbursementRecord]:
        return list(self._history)

    @property
    def total_disbursed(self) -> int:
        return sum(r.amount for r in self._history)

    def savepoint(self) -> Any:
        return len(self._history)

    def rollback_to(self, savepoint: Any) -> None:
        del self._history[savepoint:]

    def to_records(self) -> list[dict[str, Any]]:
        return [
            {
                "proposal_id": r.proposal_id,
                "recipient": r.recipient,
                "amount": r.amount,
                "disbursed_by": r.disbursed_by,
                "disbursed_at": r.disbursed_at,
                "audit_id": r.audit_id,
            }
            for r in self._history
        ]

    @classmethod
    def from_records(
        cls,
        treasury_account: str,
        clock: LogicalClock,
        records: list[dict[str, Any]],
    ) -> DisbursementOrchestrator:
        orchestrator = cls(treasury_account, clock)
        orchestrator._history = [
            DisbursementRecord(
                proposal_id=int(r["proposal_id"]),
                recipient=r["recipient"],
                amount=int(r["amount"]),
                disbursed_by=r["disbursed_by"],
                disbursed_at=int(r["disbursed_at"]),
                audit_id=int(r["audit_id"]),
            )
            for r in records
        ]
        return orchestrator
