"""Tests for RevenueGateService — typed results, atomic units, persistence.

Proves:
- The attestor lifecycle and the full revenue flow work end to end.
- Every successful operation adds exactly one audit entry.
- A failed operation reports its code and changes nothing.
- State survives a restart through the audit log and snapshot.
- A snapshot failure after the audit flush is a warning, not a rollback.
"""

from pathlib import Path

import pytest

import revgate
from revgate.clock import LogicalClock
from revgate.config import LedgerConfig
from revgate.errors import ErrorCode
from revgate.ledger.balances import InMemoryBalanceLedger
from revgate.persistence.event_log import AuditEvent, AuditLog
from revgate.persistence.state_store import StateStore
from revgate.service import RevenueGateService

ADMIN = "ST1ADMIN"
ORACLE = "ST1ORACLE"
HACKER = "ST2HACKER"
RECIPIENT = "ST1RECIPIENT"


@pytest.fixture
def service() -> RevenueGateService:
    return RevenueGateService(LedgerConfig(), LogicalClock(100))


@pytest.fixture
def attested(service: RevenueGateService) -> RevenueGateService:
    assert service.initialize_attestor(ORACLE, caller=ADMIN).success
    return service


def _persistent(data_dir: Path, config: LedgerConfig | None = None) -> RevenueGateService:
    clock = LogicalClock(100)
    return RevenueGateService(
        config or LedgerConfig(),
        clock,
        audit_log=AuditLog(clock, storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(data_dir / "state.json"),
    )


class TestAttestor:
    def test_initialize(self, service: RevenueGateService) -> None:
        result = service.initialize_attestor(ORACLE, caller=ADMIN)
        assert result.success
        assert result.data == {"attestor": ORACLE}
        assert service.current_attestor() == ORACLE

    def test_self_appointment_refused(self, service: RevenueGateService) -> None:
        result = service.initialize_attestor(ADMIN, caller=ADMIN)
        assert not result.success
        assert result.error_code == ErrorCode.INVALID_IDENTITY
        assert service.current_attestor() is None
        assert service.audit_count() == 0

    def test_second_initialize_refused(self, attested: RevenueGateService) -> None:
        result = attested.initialize_attestor("ST3OTHER", caller=HACKER)
        assert result.error_code == ErrorCode.ALREADY_INITIALIZED
        assert attested.current_attestor() == ORACLE

    def test_rotate(self, attested: RevenueGateService) -> None:
        result = attested.rotate_attestor("ST1NEWORACLE", caller=ORACLE)
        assert result.success
        assert result.data["previous"] == ORACLE
        assert attested.current_attestor() == "ST1NEWORACLE"

    def test_rotate_by_stranger(self, attested: RevenueGateService) -> None:
        result = attested.rotate_attestor(HACKER, caller=HACKER)
        assert result.error_code == ErrorCode.NOT_AUTHORIZED
        assert attested.current_attestor() == ORACLE


class TestRevenueFlow:
    def test_record_then_release_after_lock(self, attested: RevenueGateService) -> None:
        result = attested.record_revenue(7, 500_000, "USD", caller=ORACLE)
        assert result.success
        assert result.data == {"entry_id": 0, "locked_until": 1540, "total_recorded": 500_000}
        assert attested.treasury_balance() == 500_000

        attested.advance_time(100)
        early = attested.release_revenue(0, RECIPIENT, caller=ORACLE)
        assert not early.success
        assert early.error_code == ErrorCode.REVENUE_LOCKED

        attested.advance_time(1341)
        assert attested.clock.now() == 1541
        released = attested.release_revenue(0, RECIPIENT, caller=ORACLE)
        assert released.success
        assert released.data == {"entry_id": 0, "recipient": RECIPIENT, "amount": 500_000}
        assert attested.balance_of(RECIPIENT) == 500_000
        assert attested.treasury_balance() == 0
        assert attested.get_revenue(0) is None
        assert attested.total_recorded() == 500_000

    def test_record_before_initialize(self, service: RevenueGateService) -> None:
        result = service.record_revenue(1, 100, "USD", caller=ORACLE)
        assert result.error_code == ErrorCode.NOT_INITIALIZED
        assert service.audit_count() == 0

    def test_record_by_stranger(self, attested: RevenueGateService) -> None:
        result = attested.record_revenue(1, 100, "USD", caller=HACKER)
        assert result.error_code == ErrorCode.NOT_AUTHORIZED
        assert "NOT_AUTHORIZED" in result.errors[0]

    def test_replay_refused(self, attested: RevenueGateService) -> None:
        assert attested.record_revenue(1, 100, "USD", caller=ORACLE).success
        again = attested.record_revenue(1, 200, "STX", caller=ORACLE)
        assert again.error_code == ErrorCode.ALREADY_RECORDED
        assert attested.total_recorded() == 100

    def test_invalid_currency(self, attested: RevenueGateService) -> None:
        result = attested.record_revenue(1, 100, "EUR", caller=ORACLE)
        assert result.error_code == ErrorCode.INVALID_CURRENCY

    def test_supply_ceiling(self) -> None:
        service = RevenueGateService(LedgerConfig(max_supply=1000), LogicalClock(100))
        service.initialize_attestor(ORACLE, caller=ADMIN)
        assert service.record_revenue(1, 600, "USD", caller=ORACLE).success
        over = service.record_revenue(2, 401, "USD", caller=ORACLE)
        assert over.error_code == ErrorCode.SUPPLY_EXCEEDED
        assert not service.is_submission_used(ORACLE, 2)
        assert service.record_revenue(2, 400, "USD", caller=ORACLE).success
        assert service.total_recorded() == 1000

    def test_release_by_non_recorder(self, attested: RevenueGateService) -> None:
        attested.record_revenue(1, 100, "USD", caller=ORACLE)
        attested.advance_time(1440)
        result = attested.release_revenue(0, HACKER, caller=HACKER)
        assert result.error_code == ErrorCode.NOT_AUTHORIZED
        assert attested.get_revenue(0) is not None

    def test_release_missing_entry(self, attested: RevenueGateService) -> None:
        assert attested.release_revenue(9, RECIPIENT, caller=ORACLE).error_code == ErrorCode.NOT_FOUND


class TestGovernanceFlow:
    def test_proposal_vote_disburse(self, attested: RevenueGateService) -> None:
        attested.record_revenue(1, 5000, "USD", caller=ORACLE)
        pid = attested.submit_proposal(1200, "Community grant", caller="ST1BOB").data["proposal_id"]
        assert attested.get_proposal(pid).status == "Pending"

        premature = attested.disburse(pid, RECIPIENT, caller="ST1CAROL")
        assert premature.error_code == ErrorCode.NOT_APPROVED

        vote = attested.cast_vote(pid, True, caller="ST1CAROL")
        assert vote.data == {"proposal_id": pid, "yes": 1, "no": 0, "approved": True}

        paid = attested.disburse(pid, RECIPIENT, caller="ST1CAROL")
        assert paid.success
        assert paid.data["amount"] == 1200
        assert attested.balance_of(RECIPIENT) == 1200
        assert attested.treasury_balance() == 3800
        entry = attested.get_audit_entry(paid.data["audit_id"])
        assert entry.event == AuditEvent.FUNDS_DISBURSED.value
        assert entry.actor == RECIPIENT

    def test_double_vote(self, service: RevenueGateService) -> None:
        pid = service.submit_proposal(10, "x", caller="ST1BOB").data["proposal_id"]
        service.cast_vote(pid, False, caller="ST1CAROL")
        again = service.cast_vote(pid, True, caller="ST1CAROL")
        assert again.error_code == ErrorCode.ALREADY_VOTED
        assert service.get_tally(pid).no == 1
        assert service.get_tally(pid).yes == 0

    def test_disburse_without_funds(self, service: RevenueGateService) -> None:
        pid = service.submit_proposal(10, "x", caller="ST1BOB").data["proposal_id"]
        service.cast_vote(pid, True, caller="ST1CAROL")
        before = service.audit_count()
        result = service.disburse(pid, RECIPIENT, caller="ST1CAROL")
        assert result.error_code == ErrorCode.INSUFFICIENT_BALANCE
        assert service.audit_count() == before

    def test_status_update_by_proposer_only(self, service: RevenueGateService) -> None:
        pid = service.submit_proposal(10, "x", caller="ST1BOB").data["proposal_id"]
        assert service.update_proposal_status(pid, "Voting", caller="ST1EVE").error_code == (
            ErrorCode.NOT_AUTHORIZED
        )
        assert service.update_proposal_status(pid, "Voting", caller="ST1BOB").data["status"] == "Voting"
        assert [p.proposal_id for p in service.list_proposals("Voting")] == [pid]


class TestAuditAccounting:
    def test_one_entry_per_successful_operation(self, service: RevenueGateService) -> None:
        steps = [
            lambda: service.initialize_attestor(ORACLE, caller=ADMIN),
            lambda: service.record_revenue(1, 5000, "USD", caller=ORACLE),
            lambda: service.submit_proposal(100, "x", caller="ST1BOB"),
            lambda: service.update_proposal_status(0, "Voting", caller="ST1BOB"),
            lambda: service.cast_vote(0, True, caller="ST1CAROL"),
            lambda: service.disburse(0, RECIPIENT, caller="ST1CAROL"),
            lambda: service.rotate_attestor("ST1NEXT", caller=ORACLE),
        ]
        for count, step in enumerate(steps, start=1):
            assert step().success
            assert service.audit_count() == count

    def test_failures_add_nothing(self, attested: RevenueGateService) -> None:
        before = attested.audit_count()
        attested.record_revenue(1, 0, "USD", caller=ORACLE)
        attested.cast_vote(5, True, caller="ST1CAROL")
        attested.disburse(5, RECIPIENT, caller="ST1CAROL")
        assert attested.audit_count() == before

    def test_advance_time_is_not_audited(self, service: RevenueGateService) -> None:
        result = service.advance_time(10)
        assert result.data == {"height": 110}
        assert service.audit_count() == 0

    def test_negative_advance_refused(self, service: RevenueGateService) -> None:
        assert not service.advance_time(-1).success
        assert service.clock.now() == 100

    def test_status_summary(self, attested: RevenueGateService) -> None:
        attested.record_revenue(1, 250, "OIL", caller=ORACLE)
        status = attested.status()
        assert status["attestor"] == ORACLE
        assert status["revenue"]["total_recorded"] == 250
        assert status["revenue"]["releasable"] == 0
        assert status["treasury"]["balance"] == 250
        assert status["audit"]["entries"] == 2
        assert status["audit"]["merkle_root"] == attested.audit_log.merkle_root()
        assert status["persistence_degraded"] is False


class TestConstruction:
    def test_invalid_config_rejected(self) -> None:
        with pytest.raises(ValueError, match="threshold_percent"):
            RevenueGateService(LedgerConfig(threshold_percent=100))

    def test_ledger_without_savepoints_rejected(self) -> None:
        class ExternalLedger:
            def mint(self, account, amount): ...
            def transfer(self, sender, recipient, amount): ...
            def balance_of(self, account): return 0

        with pytest.raises(ValueError, match="savepoint"):
            RevenueGateService(balances=ExternalLedger())

    def test_transactional_ledger_accepted(self) -> None:
        balances = InMemoryBalanceLedger({"treasury": 50})
        service = RevenueGateService(balances=balances)
        assert service.treasury_balance() == 50

    def test_status_reports_package_version(self, service: RevenueGateService) -> None:
        assert service.status()["version"] == revgate.__version__


class TestPersistence:
    def test_restart_restores_everything(self, tmp_path: Path) -> None:
        first = _persistent(tmp_path)
        first.initialize_attestor(ORACLE, caller=ADMIN)
        first.record_revenue(7, 500_000, "USD", caller=ORACLE)
        pid = first.submit_proposal(1000, "Grant", caller="ST1BOB").data["proposal_id"]
        first.cast_vote(pid, True, caller="ST1CAROL")
        first.advance_time(50)

        second = _persistent(tmp_path)
        assert second.clock.now() == 150
        assert second.current_attestor() == ORACLE
        assert second.total_recorded() == 500_000
        assert second.get_revenue(0).locked_until == 1540
        assert second.is_submission_used(ORACLE, 7)
        assert second.treasury_balance() == 500_000
        assert second.is_approved(pid)
        assert second.audit_count() == 4
        assert second.audit_log.merkle_root() == first.audit_log.merkle_root()

        replay = second.record_revenue(7, 1, "USD", caller=ORACLE)
        assert replay.error_code == ErrorCode.ALREADY_RECORDED
        assert second.disburse(pid, RECIPIENT, caller="ST1CAROL").success

    def test_snapshot_failure_is_warning(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = _persistent(tmp_path)

        def _fail(_state):
            raise OSError("disk full")

        monkeypatch.setattr(service._state_store, "save", _fail)
        result = service.initialize_attestor(ORACLE, caller=ADMIN)
        assert result.success
        assert "Persistence degraded" in result.data["warning"]
        assert service.current_attestor() == ORACLE
        assert service.status()["persistence_degraded"] is True

    def test_audit_write_failure_rolls_back(self, tmp_path: Path) -> None:
        clock = LogicalClock(100)
        service = RevenueGateService(
            LedgerConfig(),
            clock,
            audit_log=AuditLog(clock, storage_path=tmp_path / "missing" / "events.jsonl"),
        )
        result = service.initialize_attestor(ORACLE, caller=ADMIN)
        assert not result.success
        assert result.error_code == ErrorCode.AUDIT_FAILURE
        assert service.current_attestor() is None
        assert service.audit_count() == 0

    def test_snapshot_records_audit_count(self, tmp_path: Path) -> None:
        service = _persistent(tmp_path)
        service.initialize_attestor(ORACLE, caller=ADMIN)
        assert StateStore(tmp_path / "state.json").load()["audit_count"] == 1

    def test_stale_snapshot_refused_on_restart(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        first = _persistent(tmp_path, LedgerConfig(max_supply=1000))
        first.initialize_attestor(ORACLE, caller=ADMIN)

        def _fail(_state):
            raise OSError("disk full")

        monkeypatch.setattr(first._state_store, "save", _fail)
        recorded = first.record_revenue(7, 1000, "USD", caller=ORACLE)
        assert recorded.success
        assert "warning" in recorded.data

        # events.jsonl now holds the recording but state.json does not
        with pytest.raises(ValueError, match="stale snapshot"):
            _persistent(tmp_path, LedgerConfig(max_supply=1000))

    def test_missing_snapshot_with_audit_history_refused(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        first = _persistent(tmp_path)

        def _fail(_state):
            raise OSError("read-only")

        monkeypatch.setattr(first._state_store, "save", _fail)
        assert first.initialize_attestor(ORACLE, caller=ADMIN).success
        assert not (tmp_path / "state.json").exists()

        with pytest.raises(ValueError, match="covers 0 audit entries but the audit log holds 1"):
            _persistent(tmp_path)

    def test_degraded_write_heals_on_next_snapshot(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        first = _persistent(tmp_path)
        first.initialize_attestor(ORACLE, caller=ADMIN)
        store = first._state_store
        original_save = store.save

        def _fail(_state):
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", _fail)
        first.record_revenue(7, 100, "USD", caller=ORACLE)
        monkeypatch.setattr(store, "save", original_save)
        assert first.record_revenue(8, 100, "USD", caller=ORACLE).success

        second = _persistent(tmp_path)
        assert second.is_submission_used(ORACLE, 7)
        assert second.total_recorded() == 200
