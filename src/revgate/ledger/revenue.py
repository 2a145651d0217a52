"""Revenue ledger — attested revenue intake, time lock, and release.

The attestor reports external revenue events. Each accepted report is
minted into the treasury account and locked for ``lock_period`` blocks;
after that the attestor who recorded it may release the funds to a
recipient, which deletes the entry.

Invariants enforced here:
- Entry ids start at 0, increase by one per recording, and are never
  reused, even after the entry is released.
- The running total of everything ever recorded never exceeds
  ``max_supply``.
- An (attestor, source id) pair is accepted at most once, ever.
- Release happens only at or after ``locked_until`` and only by the
  recorder.
- A recording is all-or-nothing: if the audit append or the mint fails,
  the total, the replay guard, the balances and the audit log are exactly
  as they were before the call.
"""

from __future__ import annotations

from typing import Any, Optional

from revgate.capabilities import AuditSink, BalanceLedger
from revgate.clock import LogicalClock
from revgate.config import LedgerConfig
from revgate.errors import ErrorCode, LedgerError
from revgate.identity.registry import AttestorRegistry
from revgate.models.revenue import RevenueEntry, SubmissionKey
from revgate.persistence.event_log import AuditEvent, record_event
from revgate.persistence.transaction import atomic


class RevenueLedger:
    """Records and releases attested revenue.

    Usage:
        ledger = RevenueLedger(config, clock, registry)
        entry_id = ledger.record(7, 500_000, "USD", caller="oracle",
                                 audit_log=log, balance_ledger=balances)
        clock.advance(config.lock_period)
        ledger.release(entry_id, "alice", caller="oracle",
                       balance_ledger=balances)
    """

    def __init__(
        self,
        config: LedgerConfig,
        clock: LogicalClock,
        registry: AttestorRegistry,
    ) -> None:
        self._config = config
        self._clock = clock
        self._registry = registry
        self._entries: dict[int, RevenueEntry] = {}
        self._submissions: set[SubmissionKey] = set()
        self._next_id = 0
        self._total_recorded = 0

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def record(
        self,
        external_source_id: int,
        amount: int,
        currency: str,
        caller: str,
        audit_log: AuditSink,
        balance_ledger: BalanceLedger,
    ) -> int:
        """Accept an attested revenue report. Returns the new entry id.

        Checks run in a fixed order so the first violated rule decides
        the error code: attestor set, caller is attestor, amount,
        currency, replay, supply ceiling.

        Raises:
            LedgerError: On any violated rule. Nothing is applied.
        """
        self._registry.require(caller)
        if amount <= 0:
            raise LedgerError(ErrorCode.INVALID_AMOUNT, f"Amount must be positive, got {amount}")
        if currency not in self._config.currencies:
            raise LedgerError(
                ErrorCode.INVALID_CURRENCY,
                f"Currency {currency!r} not in {list(self._config.currencies)}",
            )
        key = SubmissionKey(attestor=caller, source_id=external_source_id)
        if key in self._submissions:
            raise LedgerError(
                ErrorCode.ALREADY_RECORDED,
                f"Source id {external_source_id} already recorded by {caller}",
            )
        new_total = self._total_recorded + amount
        if new_total > self._config.max_supply:
            raise LedgerError(
                ErrorCode.SUPPLY_EXCEEDED,
                f"Recording {amount} would raise total to {new_total} "
                f"(max supply {self._config.max_supply})",
            )

        now = self._clock.now()
        entry = RevenueEntry(
            entry_id=self._next_id,
            amount=amount,
            currency=currency,
            recorded_at=now,
            source_id=external_source_id,
            recorded_by=caller,
            locked_until=now + self._config.lock_period,
        )

        with atomic(self, audit_log, balance_ledger):
            record_event(audit_log, AuditEvent.REVENUE_RECORDED, amount, caller)
            balance_ledger.mint(self._config.treasury_account, amount)
            self._entries[entry.entry_id] = entry
            self._submissions.add(key)
            self._next_id += 1
            self._total_recorded = new_total

        return entry.entry_id

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(
        self,
        entry_id: int,
        recipient: str,
        caller: str,
        balance_ledger: BalanceLedger,
        audit_log: Optional[AuditSink] = None,
    ) -> None:
        """Pay a matured entry out of the treasury and delete it.

        ``audit_log`` is only written when the ledger is configured with
        ``audit_release``; releases are unaudited by default.
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            raise LedgerError(ErrorCode.NOT_FOUND, f"Revenue entry not found: {entry_id}")
        if entry.is_locked(self._clock.now()):
            raise LedgerError(
                ErrorCode.REVENUE_LOCKED,
                f"Entry {entry_id} is locked until {entry.locked_until} "
                f"(now {self._clock.now()})",
            )
        if caller != entry.recorded_by:
            raise LedgerError(
                ErrorCode.NOT_AUTHORIZED,
                f"Only {entry.recorded_by} may release entry {entry_id}",
            )
        treasury = self._config.treasury_account
        available = balance_ledger.balance_of(treasury)
        if available < entry.amount:
            raise LedgerError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"Treasury holds {available}, entry {entry_id} needs {entry.amount}",
            )

        with atomic(self, audit_log, balance_ledger):
            if self._config.audit_release:
                if audit_log is None:
                    raise LedgerError(
                        ErrorCode.AUDIT_FAILURE,
                        "Release auditing is enabled but no audit log was supplied",
                    )
                record_event(audit_log, AuditEvent.REVENUE_RELEASED, entry.amount, caller)
            balance_ledger.transfer(treasury, recipient, entry.amount)
            del self._entries[entry_id]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, entry_id: int) -> Optional[RevenueEntry]:
        return self._entries.get(entry_id)

    def entries(self) -> list[RevenueEntry]:
        return [self._entries[k] for k in sorted(self._entries)]

    def releasable(self) -> list[RevenueEntry]:
        now = self._clock.now()
        return [e for e in self.entries() if not e.is_locked(now)]

    @property
    def total_recorded(self) -> int:
        return self._total_recorded

    @property
    def next_id(self) -> int:
        return self._next_id

    def is_submission_used(self, attestor: str, source_id: int) -> bool:
        return SubmissionKey(attestor, source_id) in self._submissions

    # ------------------------------------------------------------------
    # Atomic-unit support and persistence
    # ------------------------------------------------------------------

    def savepoint(self) -> Any:
        return (
            dict(self._entries),
            set(self._submissions),
            self._next_id,
            self._total_recorded,
        )

    def rollback_to(self, savepoint: Any) -> None:
        entries, submissions, next_id, total = savepoint
        self._entries = dict(entries)
        self._submissions = set(submissions)
        self._next_id = next_id
        self._total_recorded = total

    def to_records(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries()],
            "submissions": sorted(
                ([k.attestor, k.source_id] for k in self._submissions),
            ),
            "next_id": self._next_id,
            "total_recorded": self._total_recorded,
        }

    @classmethod
    def from_records(
        cls,
        config: LedgerConfig,
        clock: LogicalClock,
        registry: AttestorRegistry,
        records: dict[str, Any],
    ) -> RevenueLedger:
        """Restore ledger state from persisted records."""
        ledger = cls(config, clock, registry)
        for data in records.get("entries", []):
            entry = RevenueEntry.from_dict(data)
            ledger._entries[entry.entry_id] = entry
        ledger._submissions = {
            SubmissionKey(attestor, int(source_id))
            for attestor, source_id in records.get("submissions", [])
        }
        ledger._next_id = int(records.get("next_id", 0))
        ledger._total_recorded = int(records.get("total_recorded", 0))
        return ledger
