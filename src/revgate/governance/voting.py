"""Voting tally — one vote per principal, strict integer threshold.

Votes are single-choice (yes/no), unweighted, and write-once per
(proposal, voter). The tally is maintained incrementally alongside the
vote records and is never decremented.

Approval rule: yes * 100 > (yes + no) * threshold_percent, computed in
exact integers. A tie at the threshold fails, and so does a proposal
with no votes at all.
"""

from __future__ import annotations

from typing import Any, Optional

from revgate.capabilities import AuditSink, ProposalReader
from revgate.errors import ErrorCode, LedgerError
from revgate.models.governance import VoteRecord, VoteTally
from revgate.persistence.event_log import AuditEvent, record_event
from revgate.persistence.transaction import atomic


class VotingTally:
    """Accumulates votes and answers the approval question.

    Usage:
        tally = VotingTally(threshold_percent=50)
        tally.vote(pid, True, caller="bob", proposal_store=store, audit_log=log)
        tally.is_approved(pid)   # True (1 yes, 0 no)
    """

    def __init__(self, threshold_percent: int = 50) -> None:
        self._threshold = threshold_percent
        self._votes: dict[tuple[int, str], VoteRecord] = {}
        self._tallies: dict[int, VoteTally] = {}

    @property
    def threshold_percent(self) -> int:
        return self._threshold

    def vote(
        self,
        proposal_id: int,
        choice: bool,
        caller: str,
        proposal_store: ProposalReader,
        audit_log: AuditSink,
    ) -> VoteTally:
        """Cast ``caller``'s vote. Returns the updated tally.

        The audit entry's amount field carries the proposal id.
        """
        if proposal_store.get(proposal_id) is None:
            raise LedgerError(ErrorCode.NOT_FOUND, f"Proposal not found: {proposal_id}")
        key = (proposal_id, caller)
        if key in self._votes:
            raise LedgerError(
                ErrorCode.ALREADY_VOTED,
                f"Voter {caller} has already voted on proposal {proposal_id}",
            )

        tally = self._tallies.get(proposal_id, VoteTally()).with_vote(bool(choice))
        with atomic(self, audit_log):
            record_event(audit_log, AuditEvent.VOTE_CAST, proposal_id, caller)
            self._votes[key] = VoteRecord(proposal_id, caller, bool(choice))
            self._tallies[proposal_id] = tally
        return tally

    def is_approved(self, proposal_id: int) -> bool:
        """Never raises: an unknown or unvoted proposal is simply not approved."""
        return self.get_tally(proposal_id).passes(self._threshold)

    def get_tally(self, proposal_id: int) -> VoteTally:
        return self._tallies.get(proposal_id, VoteTally())

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._votes.get((proposal_id, voter))

    def votes_for(self, proposal_id: int) -> list[VoteRecord]:
        return [v for (pid, _), v in self._votes.items() if pid == proposal_id]

    def all_votes(self) -> list[VoteRecord]:
        return list(self._votes.values())

    def tallied_proposals(self) -> list[int]:
        return sorted(self._tallies)

    def savepoint(self) -> Any:
        return dict(self._votes), dict(self._tallies)

    def rollback_to(self, savepoint: Any) -> None:
        votes, tallies = savepoint
        self._votes = dict(votes)
        self._tallies = dict(tallies)

    def to_records(self) -> dict[str, Any]:
        return {
            "votes": [
                {"proposal_id": v.proposal_id, "voter": v.voter, "choice": v.choice}
                for v in self._votes.values()
            ],
        }

    @classmethod
    def from_records(cls, threshold_percent: int, records: dict[str, Any]) -> VotingTally:
        """Restore votes and rebuild tallies from the vote records."""
        tally = cls(threshold_percent)
        for data in records.get("votes", []):
            vote = VoteRecord(int(data["proposal_id"]), data["voter"], bool(data["choice"]))
            tally._votes[(vote.proposal_id, vote.voter)] = vote
            tally._tallies[vote.proposal_id] = (
                tally._tallies.get(vote.proposal_id, VoteTally()).with_vote(vote.choice)
            )
        return tally
