"""Core data models for Revenue Gate."""

from revgate.models.governance import (
    PENDING_STATUS,
    Proposal,
    VoteRecord,
    VoteTally,
)
from revgate.models.revenue import RevenueEntry, SubmissionKey

__all__ = [
    "PENDING_STATUS",
    "Proposal",
    "RevenueEntry",
    "SubmissionKey",
    "VoteRecord",
    "VoteTally",
]
