"""Revenue Gate service — unified facade for the governance-gated ledger.

This is the primary interface for programmatic access. It composes:
- Attestor identity (initialise, rotate)
- Revenue intake (record, time-locked release)
- Proposals (submit, relabel)
- Voting (one vote per principal, threshold approval)
- Disbursement (approved proposals paid from the treasury)
- Persistence (audit log, state snapshot)

All operations produce typed results. Every mutating operation runs as
one atomic unit across every store: the component operation, then the
durable audit flush. If any step fails, every store returns to its state
before the call and the result carries the failure code. Audit entries
are never silently dropped; an operation whose audit entry cannot be
made durable does not happen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from revgate import __version__
from revgate.capabilities import BalanceLedger, Transactional
from revgate.clock import LogicalClock
from revgate.compensation.disbursement import DisbursementOrchestrator
from revgate.config import LedgerConfig
from revgate.errors import ErrorCode, LedgerError
from revgate.governance.proposals import ProposalStore
from revgate.governance.voting import VotingTally
from revgate.identity.registry import AttestorRegistry
from revgate.ledger.balances import InMemoryBalanceLedger
from revgate.ledger.revenue import RevenueLedger
from revgate.models.governance import Proposal, VoteRecord, VoteTally
from revgate.models.revenue import RevenueEntry
from revgate.persistence.event_log import AuditEntry, AuditLog
from revgate.persistence.state_store import StateStore
from revgate.persistence.transaction import atomic


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[ErrorCode] = None


class RevenueGateService:
    """Governance-gated revenue ledger facade.

    Usage:
        service = RevenueGateService(LedgerConfig(), LogicalClock(100))

        service.initialize_attestor("oracle", caller="admin")
        result = service.record_revenue(7, 500_000, "USD", caller="oracle")
        entry_id = result.data["entry_id"]

        service.advance_time(1441)
        service.release_revenue(entry_id, "alice", caller="oracle")

        pid = service.submit_proposal(1000, "Grant", caller="bob").data["proposal_id"]
        service.cast_vote(pid, True, caller="carol")
        service.disburse(pid, "dave", caller="carol")

    Persistence (optional):
        log = AuditLog(clock, storage_path=data / "events.jsonl")
        store = StateStore(data / "state.json")
        service = RevenueGateService(config, clock, audit_log=log, state_store=store)
        # State is saved after each operation and loaded on construction.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        clock: Optional[LogicalClock] = None,
        audit_log: Optional[AuditLog] = None,
        balances: Optional[BalanceLedger] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._config = config or LedgerConfig()
        errors = self._config.validate()
        if errors:
            raise ValueError("Invalid ledger parameters: " + "; ".join(errors))
        # The audit flush follows the balance change, so the ledger must be
        # able to undo it when the flush fails.
        if balances is not None and not isinstance(balances, Transactional):
            raise ValueError(
                f"Balance ledger {type(balances).__name__} must provide "
                "savepoint() and rollback_to()"
            )

        self._clock = clock or LogicalClock()
        self._audit_log = audit_log if audit_log is not None else AuditLog(self._clock)
        self._state_store = state_store

        snapshot = state_store.load() if state_store is not None else None
        if snapshot is not None:
            self._clock.set(max(self._clock.now(), int(snapshot.get("clock", 0))))
            self._registry = AttestorRegistry.from_records(snapshot.get("identity", {}))
            self._revenue = RevenueLedger.from_records(
                self._config, self._clock, self._registry, snapshot.get("revenue", {}),
            )
            self._proposals = ProposalStore.from_records(snapshot.get("proposals", {}))
            self._tally = VotingTally.from_records(
                self._config.threshold_percent, snapshot.get("votes", {}),
            )
            self._disbursements = DisbursementOrchestrator.from_records(
                self._config.treasury_account, self._clock,
                snapshot.get("disbursements", []),
            )
            if balances is None:
                balances = InMemoryBalanceLedger.from_records(snapshot.get("balances", {}))
        else:
            self._registry = AttestorRegistry()
            self._revenue = RevenueLedger(self._config, self._clock, self._registry)
            self._proposals = ProposalStore()
            self._tally = VotingTally(self._config.threshold_percent)
            self._disbursements = DisbursementOrchestrator(
                self._config.treasury_account, self._clock,
            )

        self._balances: BalanceLedger = balances if balances is not None else InMemoryBalanceLedger()

        if state_store is not None:
            covered = int(snapshot.get("audit_count", 0)) if snapshot is not None else 0
            if covered != self._audit_log.get_count():
                raise ValueError(
                    f"State snapshot covers {covered} audit entries but the audit log "
                    f"holds {self._audit_log.get_count()}; refusing to start from a "
                    f"stale snapshot ({state_store.storage_path})"
                )

        # Set when a snapshot write fails after the audit trail is durable.
        # In-memory state is still correct; the snapshot is stale.
        self._persistence_degraded: bool = False

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def initialize_attestor(self, initial_identity: str, caller: str) -> ServiceResult:
        """One-time appointment of the attestor by someone other than it."""
        def _apply() -> dict[str, Any]:
            self._registry.initialize(initial_identity, caller, self._audit_log)
            return {"attestor": initial_identity}
        return self._execute(_apply)

    def rotate_attestor(self, new_identity: str, caller: str) -> ServiceResult:
        """Current attestor hands the role on."""
        def _apply() -> dict[str, Any]:
            self._registry.rotate(new_identity, caller, self._audit_log)
            return {"attestor": new_identity, "previous": caller}
        return self._execute(_apply)

    # ------------------------------------------------------------------
    # Revenue
    # ------------------------------------------------------------------

    def record_revenue(
        self,
        source_id: int,
        amount: int,
        currency: str,
        caller: str,
    ) -> ServiceResult:
        """Record an attested revenue event and mint it into the treasury."""
        def _apply() -> dict[str, Any]:
            entry_id = self._revenue.record(
                source_id, amount, currency, caller, self._audit_log, self._balances,
            )
            entry = self._revenue.get(entry_id)
            return {
                "entry_id": entry_id,
                "locked_until": entry.locked_until,
                "total_recorded": self._revenue.total_recorded,
            }
        return self._execute(_apply)

    def release_revenue(self, entry_id: int, recipient: str, caller: str) -> ServiceResult:
        """Pay out a matured entry to ``recipient``. Recorder only."""
        def _apply() -> dict[str, Any]:
            entry = self._revenue.get(entry_id)
            self._revenue.release(
                entry_id, recipient, caller, self._balances, self._audit_log,
            )
            return {"entry_id": entry_id, "recipient": recipient, "amount": entry.amount}
        return self._execute(_apply)

    # ------------------------------------------------------------------
    # Proposals and votes
    # ------------------------------------------------------------------

    def submit_proposal(self, amount: int, description: str, caller: str) -> ServiceResult:
        def _apply() -> dict[str, Any]:
            proposal_id = self._proposals.submit(amount, description, caller, self._audit_log)
            return {"proposal_id": proposal_id, "status": self._proposals.get(proposal_id).status}
        return self._execute(_apply)

    def update_proposal_status(
        self,
        proposal_id: int,
        new_status: str,
        caller: str,
    ) -> ServiceResult:
        def _apply() -> dict[str, Any]:
            updated = self._proposals.update_status(
                proposal_id, new_status, caller, self._audit_log,
            )
            return {"proposal_id": proposal_id, "status": updated.status}
        return self._execute(_apply)

    def cast_vote(self, proposal_id: int, choice: bool, caller: str) -> ServiceResult:
        def _apply() -> dict[str, Any]:
            tally = self._tally.vote(
                proposal_id, choice, caller, self._proposals, self._audit_log,
            )
            return {
                "proposal_id": proposal_id,
                "yes": tally.yes,
                "no": tally.no,
                "approved": self._tally.is_approved(proposal_id),
            }
        return self._execute(_apply)

    # ------------------------------------------------------------------
    # Disbursement
    # ------------------------------------------------------------------

    def disburse(self, proposal_id: int, recipient: str, caller: str) -> ServiceResult:
        """Pay an approved proposal's amount from the treasury."""
        def _apply() -> dict[str, Any]:
            record = self._disbursements.disburse(
                proposal_id, recipient, caller,
                self._proposals, self._tally, self._audit_log, self._balances,
            )
            return {
                "proposal_id": record.proposal_id,
                "recipient": record.recipient,
                "amount": record.amount,
                "audit_id": record.audit_id,
            }
        return self._execute(_apply)

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def advance_time(self, blocks: int) -> ServiceResult:
        """Move logical time forward (host sequencing, not a ledger action)."""
        try:
            height = self._clock.advance(blocks)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        data: dict[str, Any] = {"height": height}
        warning = self._safe_persist_post_audit()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_attestor(self) -> Optional[str]:
        return self._registry.current()

    def get_revenue(self, entry_id: int) -> Optional[RevenueEntry]:
        return self._revenue.get(entry_id)

    def list_revenue(self) -> list[RevenueEntry]:
        return self._revenue.entries()

    def total_recorded(self) -> int:
        return self._revenue.total_recorded

    def is_submission_used(self, attestor: str, source_id: int) -> bool:
        return self._revenue.is_submission_used(attestor, source_id)

    def balance_of(self, account: str) -> int:
        return self._balances.balance_of(account)

    def treasury_balance(self) -> int:
        return self._balances.balance_of(self._config.treasury_account)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def list_proposals(self, status: Optional[str] = None) -> list[Proposal]:
        return self._proposals.list_proposals(status)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._tally.get_vote(proposal_id, voter)

    def all_votes(self) -> list[VoteRecord]:
        return self._tally.all_votes()

    def get_tally(self, proposal_id: int) -> VoteTally:
        return self._tally.get_tally(proposal_id)

    def is_approved(self, proposal_id: int) -> bool:
        return self._tally.is_approved(proposal_id)

    def get_audit_entry(self, entry_id: int) -> Optional[AuditEntry]:
        return self._audit_log.get(entry_id)

    def audit_count(self) -> int:
        return self._audit_log.get_count()

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        return {
            "version": __version__,
            "height": self._clock.now(),
            "attestor": self._registry.current(),
            "revenue": {
                "live_entries": len(self._revenue.entries()),
                "releasable": len(self._revenue.releasable()),
                "total_recorded": self._revenue.total_recorded,
                "max_supply": self._config.max_supply,
            },
            "treasury": {
                "account": self._config.treasury_account,
                "balance": self.treasury_balance(),
                "total_disbursed": self._disbursements.total_disbursed,
            },
            "governance": {
                "proposals": self._proposals.count,
                "votes": len(self._tally.all_votes()),
                "approved": sum(
                    1 for p in self._proposals.list_proposals()
                    if self._tally.is_approved(p.proposal_id)
                ),
            },
            "audit": {
                "entries": self._audit_log.get_count(),
                "merkle_root": self._audit_log.merkle_root(),
            },
            "persistence_degraded": self._persistence_degraded,
        }

    def snapshot(self) -> dict[str, Any]:
        """Every component's state as plain JSON-compatible data."""
        state: dict[str, Any] = {
            "clock": self._clock.now(),
            "audit_count": self._audit_log.get_count(),
            "identity": self._registry.to_records(),
            "revenue": self._revenue.to_records(),
            "proposals": self._proposals.to_records(),
            "votes": self._tally.to_records(),
            "disbursements": self._disbursements.to_records(),
        }
        if isinstance(self._balances, InMemoryBalanceLedger):
            state["balances"] = self._balances.to_records()
        return state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _participants(self) -> tuple[Any, ...]:
        return (
            self._registry,
            self._revenue,
            self._proposals,
            self._tally,
            self._disbursements,
            self._balances,
            self._audit_log,
        )

    def _execute(self, apply: Callable[[], dict[str, Any]]) -> ServiceResult:
        """Run ``apply`` and the durable audit flush as one unit.

        Fail-closed: any failure, including the audit write, rolls every
        store back and is reported. Once the audit flush has succeeded the
        operation has happened; a snapshot failure after that point is a
        warning, not a rollback.
        """
        try:
            with atomic(*self._participants()):
                data = apply()
                self._audit_log.flush()
        except LedgerError as e:
            return ServiceResult(success=False, errors=[str(e)], error_code=e.code)
        except (ValueError, OSError) as e:
            return ServiceResult(success=False, errors=[str(e)])

        warning = self._safe_persist_post_audit()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def _persist_state(self) -> None:
        """Write the snapshot (if a store is wired). Can raise OSError."""
        if self._state_store is None:
            return
        self._state_store.save(self.snapshot())

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after audit entries have been made durable.

        MUST NOT roll back in-memory state: the audit trail already says
        the operation happened. On failure, flag degraded persistence and
        return a warning string.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            return f"Persistence degraded: {e}; state committed in audit trail but snapshot is stale"
