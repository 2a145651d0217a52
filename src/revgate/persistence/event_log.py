"""Append-only audit log — the permanent record of every ledger action.

Every successful state change produces an audit entry before it reports
success. Entries are immutable once written and never deleted. The log
serves as:
1. The audit trail for third-party verification.
2. The input to the Merkle root published in status reports.
3. The evidence that a mutation was authorised and when.

Entries appended inside an atomic unit stay pending until ``flush()``
makes them durable. A unit that fails before the flush rolls its pending
entries back, so the log never shows an action that did not happen.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from revgate.capabilities import AuditSink
from revgate.clock import LogicalClock
from revgate.crypto.merkle import MerkleProof, MerkleTree
from revgate.errors import ErrorCode, LedgerError


class AuditEvent(str, enum.Enum):
    """Labels for audited actions."""
    REVENUE_RECORDED = "Revenue Recorded"
    REVENUE_RELEASED = "Revenue Released"
    PROPOSAL_SUBMITTED = "Proposal Submitted"
    PROPOSAL_STATUS_UPDATED = "Proposal Status Updated"
    VOTE_CAST = "Vote Cast"
    FUNDS_DISBURSED = "Funds Disbursed"
    ATTESTOR_INITIALIZED = "Attestor Initialized"
    ATTESTOR_ROTATED = "Attestor Rotated"


@dataclass(frozen=True)
class AuditEntry:
    """A single immutable audit row.

    The entry_hash is computed at creation time over the canonical JSON
    of the other fields and is re-verified whenever the log is loaded.
    """
    entry_id: int
    event: str
    amount: int
    actor: str
    timestamp: int
    entry_hash: str  # SHA-256 of canonical JSON

    @staticmethod
    def create(
        entry_id: int,
        event: str,
        amount: int,
        actor: str,
        timestamp: int,
    ) -> AuditEntry:
        """Create a new audit entry with computed hash."""
        return AuditEntry(
            entry_id=entry_id,
            event=event,
            amount=amount,
            actor=actor,
            timestamp=timestamp,
            entry_hash=_canonical_hash(entry_id, event, amount, actor, timestamp),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "event": self.event,
            "amount": self.amount,
            "actor": self.actor,
            "timestamp": self.timestamp,
            "entry_hash": self.entry_hash,
        }


class AuditLog:
    """Append-only audit log with optional JSONL persistence.

    Usage:
        log = AuditLog(clock, storage_path=Path("data/events.jsonl"))
        entry_id = log.log_event(AuditEvent.VOTE_CAST, 3, "alice")
        log.flush()   # durable from here on
    """

    def __init__(
        self,
        clock: Optional[LogicalClock] = None,
        storage_path: Optional[Path] = None,
    ) -> None:
        self._clock = clock or LogicalClock()
        self._entries: list[AuditEntry] = []
        self._storage_path = storage_path
        self._durable_count = 0

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def log_event(self, label: str, amount: int, actor: str) -> int:
        """Append an entry stamped with the current logical time.

        No authorisation check: any component may audit its own actions.
        Returns the assigned id.
        """
        event = label.value if isinstance(label, AuditEvent) else str(label)
        if not event.strip():
            raise LedgerError(ErrorCode.AUDIT_FAILURE, "Audit event label must not be empty")
        entry_id = len(self._entries)
        self._entries.append(
            AuditEntry.create(
                entry_id=entry_id,
                event=event,
                amount=int(amount),
                actor=actor,
                timestamp=self._clock.now(),
            )
        )
        return entry_id

    def flush(self) -> int:
        """Make pending entries durable. Returns how many were written.

        Raises LedgerError(AUDIT_FAILURE) if the file write fails; the
        pending entries stay pending so the caller can roll them back.
        """
        pending = self._entries[self._durable_count:]
        if not pending:
            return 0
        if self._storage_path is not None:
            lines = "".join(
                json.dumps(e.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
                for e in pending
            )
            try:
                with self._storage_path.open("a", encoding="utf-8") as f:
                    f.write(lines)
            except OSError as e:
                raise LedgerError(
                    ErrorCode.AUDIT_FAILURE, f"Audit log write failed: {e}",
                ) from e
        self._durable_count = len(self._entries)
        return len(pending)

    # ------------------------------------------------------------------
    # Atomic-unit support
    # ------------------------------------------------------------------

    def savepoint(self) -> int:
        return len(self._entries)

    def rollback_to(self, savepoint: int) -> None:
        """Discard pending entries appended after ``savepoint``.

        Durable entries are permanent; rolling back past them is a bug.
        """
        if savepoint < self._durable_count:
            raise RuntimeError(
                f"Cannot roll back durable audit entries "
                f"(savepoint {savepoint} < durable {self._durable_count})"
            )
        del self._entries[savepoint:]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: int) -> Optional[AuditEntry]:
        if 0 <= entry_id < len(self._entries):
            return self._entries[entry_id]
        return None

    def get_count(self) -> int:
        return len(self._entries)

    @property
    def pending_count(self) -> int:
        return len(self._entries) - self._durable_count

    def entries(self, label: Optional[str] = None) -> list[AuditEntry]:
        """Return entries, optionally filtered by event label."""
        if label is None:
            return list(self._entries)
        event = label.value if isinstance(label, AuditEvent) else label
        return [e for e in self._entries if e.event == event]

    @property
    def last_entry(self) -> Optional[AuditEntry]:
        return self._entries[-1] if self._entries else None

    def merkle_root(self) -> str:
        """Merkle root over every entry hash (null root when empty)."""
        tree = MerkleTree()
        for entry in self._entries:
            tree.add_leaf(entry.entry_hash)
        return tree.compute_root()

    def inclusion_proof(self, entry_id: int) -> MerkleProof:
        """Prove that ``entry_id`` is committed by the current root."""
        if self.get(entry_id) is None:
            raise LedgerError(ErrorCode.NOT_FOUND, f"Audit entry not found: {entry_id}")
        tree = MerkleTree()
        for entry in self._entries:
            tree.add_leaf(entry.entry_hash)
        return tree.inclusion_proof(entry_id)

    def verify(self) -> list[str]:
        """Re-check ids and hashes of every entry. Empty list means intact."""
        problems: list[str] = []
        for position, e in enumerate(self._entries):
            if e.entry_id != position:
                problems.append(
                    f"Audit entry at position {position} has id {e.entry_id}"
                )
            expected = _canonical_hash(e.entry_id, e.event, e.amount, e.actor, e.timestamp)
            if e.entry_hash != expected:
                problems.append(f"Audit entry {e.entry_id} hash mismatch")
        return problems

    def _load_from_file(self, path: Path) -> None:
        """Load entries from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and any gap
        or repeat in the id sequence.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                entry_id = int(data["entry_id"])
                if entry_id != len(self._entries):
                    raise ValueError(
                        f"Audit id out of sequence (line {line_num}): "
                        f"expected {len(self._entries)}, found {entry_id}"
                    )

                expected_hash = _canonical_hash(
                    entry_id, data["event"], data["amount"], data["actor"], data["timestamp"],
                )
                if data["entry_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): entry {entry_id} "
                        f"stored hash {data['entry_hash']} != computed {expected_hash}"
                    )

                self._entries.append(
                    AuditEntry(
                        entry_id=entry_id,
                        event=data["event"],
                        amount=int(data["amount"]),
                        actor=data["actor"],
                        timestamp=int(data["timestamp"]),
                        entry_hash=data["entry_hash"],
                    )
                )
        self._durable_count = len(self._entries)


def _canonical_hash(
    entry_id: int, event: str, amount: int, actor: str, timestamp: int,
) -> str:
    canonical = json.dumps(
        {
            "entry_id": entry_id,
            "event": event,
            "amount": amount,
            "actor": actor,
            "timestamp": timestamp,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


def record_event(audit_log: AuditSink, event: AuditEvent, amount: int, actor: str) -> int:
    """Append to any audit sink, normalising sink failures to AUDIT_FAILURE."""
    try:
        return audit_log.log_event(event, amount, actor)
    except LedgerError:
        raise
    except (ValueError, OSError, RuntimeError) as e:
        raise LedgerError(ErrorCode.AUDIT_FAILURE, f"Audit sink refused event: {e}") from e
