"""Governance models — proposals, votes, and running tallies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


PENDING_STATUS = "Pending"


@dataclass(frozen=True)
class Proposal:
    """A request to disburse ``amount`` from the treasury.

    Amount and description are fixed at creation. Status is a free-form
    label rewritten by the original proposer; updates produce a new
    record via dataclasses.replace.
    """
    proposal_id: int
    proposer: str
    amount: int
    description: str
    status: str = PENDING_STATUS

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "proposer": self.proposer,
            "amount": self.amount,
            "description": self.description,
            "status": self.status,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Proposal:
        return Proposal(
            proposal_id=int(data["proposal_id"]),
            proposer=data["proposer"],
            amount=int(data["amount"]),
            description=data["description"],
            status=data.get("status", PENDING_STATUS),
        )


@dataclass(frozen=True)
class VoteRecord:
    """A single write-once vote. ``choice`` is True for yes."""
    proposal_id: int
    voter: str
    choice: bool


@dataclass(frozen=True)
class VoteTally:
    """Yes/no headcount for one proposal."""
    yes: int = 0
    no: int = 0

    @property
    def total(self) -> int:
        return self.yes + self.no

    def with_vote(self, choice: bool) -> VoteTally:
        if choice:
            return VoteTally(yes=self.yes + 1, no=self.no)
        return VoteTally(yes=self.yes, no=self.no + 1)

    def passes(self, threshold_percent: int) -> bool:
        """Strict integer threshold: yes * 100 > total * threshold.

        No rounding, and zero votes never pass.
        """
        return self.yes * 100 > self.total * threshold_percent
