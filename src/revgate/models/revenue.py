"""Revenue models — attested revenue entries and their dedup keys.

A RevenueEntry is immutable: it is created by a successful recording and
destroyed by a successful release, with no mutation in between.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RevenueEntry:
    """One attested revenue event, locked until ``locked_until``."""
    entry_id: int
    amount: int
    currency: str
    recorded_at: int
    source_id: int
    recorded_by: str
    locked_until: int

    def is_locked(self, now: int) -> bool:
        """Locked strictly before ``locked_until``; releasable at or after it."""
        return now < self.locked_until

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "amount": self.amount,
            "currency": self.currency,
            "recorded_at": self.recorded_at,
            "source_id": self.source_id,
            "recorded_by": self.recorded_by,
            "locked_until": self.locked_until,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RevenueEntry:
        return RevenueEntry(
            entry_id=int(data["entry_id"]),
            amount=int(data["amount"]),
            currency=data["currency"],
            recorded_at=int(data["recorded_at"]),
            source_id=int(data["source_id"]),
            recorded_by=data["recorded_by"],
            locked_until=int(data["locked_until"]),
        )


@dataclass(frozen=True)
class SubmissionKey:
    """Replay guard: one recording per (attestor, external source id), ever."""
    attestor: str
    source_id: int
