"""Proposal store — disbursement requests and their status labels.

Proposals are independent of revenue. The voting tally and the
disbursement orchestrator read them through ``get``; only the store
writes them, and only the original proposer can relabel a proposal.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from revgate.capabilities import AuditSink
from revgate.errors import ErrorCode, LedgerError
from revgate.models.governance import PENDING_STATUS, Proposal
from revgate.persistence.event_log import AuditEvent, record_event
from revgate.persistence.transaction import atomic


class ProposalStore:
    """Creates, reads, and relabels proposals.

    Usage:
        store = ProposalStore()
        pid = store.submit(2500, "Fund the audit", caller="alice", audit_log=log)
        store.update_status(pid, "Voting", caller="alice", audit_log=log)
        store.get(pid).status   # "Voting"
    """

    def __init__(self) -> None:
        self._proposals: dict[int, Proposal] = {}
        self._next_id = 0

    def submit(
        self,
        amount: int,
        description: str,
        caller: str,
        audit_log: AuditSink,
    ) -> int:
        """Create a Pending proposal. Returns the new proposal id."""
        if amount <= 0:
            raise LedgerError(ErrorCode.INVALID_AMOUNT, f"Amount must be positive, got {amount}")

        proposal = Proposal(
            proposal_id=self._next_id,
            proposer=caller,
            amount=amount,
            description=description,
            status=PENDING_STATUS,
        )
        with atomic(self, audit_log):
            record_event(audit_log, AuditEvent.PROPOSAL_SUBMITTED, amount, caller)
            self._proposals[proposal.proposal_id] = proposal
            self._next_id += 1
        return proposal.proposal_id

    def update_status(
        self,
        proposal_id: int,
        new_status: str,
        caller: str,
        audit_log: AuditSink,
    ) -> Proposal:
        """Rewrite the status label. Original proposer only."""
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise LedgerError(ErrorCode.NOT_FOUND, f"Proposal not found: {proposal_id}")
        if caller != proposal.proposer:
            raise LedgerError(
                ErrorCode.NOT_AUTHORIZED,
                f"Only {proposal.proposer} may update proposal {proposal_id}",
            )

        updated = replace(proposal, status=new_status)
        with atomic(self, audit_log):
            record_event(audit_log, AuditEvent.PROPOSAL_STATUS_UPDATED, 0, caller)
            self._proposals[proposal_id] = updated
        return updated

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def list_proposals(self, status: Optional[str] = None) -> list[Proposal]:
        """List proposals in id order, optionally filtered by status."""
        proposals = [self._proposals[k] for k in sorted(self._proposals)]
        if status is None:
            return proposals
        return [p for p in proposals if p.status == status]

    @property
    def count(self) -> int:
        return len(self._proposals)

    def savepoint(self) -> Any:
        return dict(self._proposals), self._next_id

    def rollback_to(self, savepoint: Any) -> None:
        proposals, next_id = savepoint
        self._proposals = dict(proposals)
        self._next_id = next_id

    def to_records(self) -> dict[str, Any]:
        return {
            "proposals": [p.to_dict() for p in self.list_proposals()],
            "next_id": self._next_id,
        }

    @classmethod
    def from_records(cls, records: dict[str, Any]) -> ProposalStore:
        """Restore store state from persisted records."""
        store = cls()
        for data in records.get("proposals", []):
            proposal = Proposal.from_dict(data)
            store._proposals[proposal.proposal_id] = proposal
        store._next_id = int(records.get("next_id", 0))
        return store
