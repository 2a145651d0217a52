"""Tests for the invariant checks run by ``revgate check-invariants``."""

from dataclasses import replace
from pathlib import Path

import pytest

from revgate.clock import LogicalClock
from revgate.config import LedgerConfig
from revgate.invariants import (
    check_all,
    check_audit,
    check_config,
    check_governance,
    check_revenue,
)
from revgate.persistence.event_log import AuditLog
from revgate.persistence.state_store import StateStore
from revgate.service import RevenueGateService


@pytest.fixture
def busy_service() -> RevenueGateService:
    service = RevenueGateService(LedgerConfig(), LogicalClock(100))
    service.initialize_attestor("ST1ORACLE", caller="ST1ADMIN")
    service.record_revenue(1, 4000, "USD", caller="ST1ORACLE")
    service.record_revenue(2, 1000, "OIL", caller="ST1ORACLE")
    service.advance_time(1440)
    service.release_revenue(0, "ST1R", caller="ST1ORACLE")
    pid = service.submit_proposal(500, "x", caller="ST1BOB").data["proposal_id"]
    service.cast_vote(pid, True, caller="ST1CAROL")
    service.cast_vote(pid, False, caller="ST1DAVE")
    return service


class TestHealthyState:
    def test_fresh_service(self) -> None:
        assert check_all(RevenueGateService()) == []

    def test_after_activity(self, busy_service: RevenueGateService) -> None:
        assert check_all(busy_service) == []

    def test_lock_period_reconfigured_between_runs(self, tmp_path: Path) -> None:
        def _open(config: LedgerConfig) -> RevenueGateService:
            clock = LogicalClock(100)
            return RevenueGateService(
                config,
                clock,
                audit_log=AuditLog(clock, storage_path=tmp_path / "events.jsonl"),
                state_store=StateStore(tmp_path / "state.json"),
            )

        first = _open(LedgerConfig(lock_period=1440))
        first.initialize_attestor("ST1ORACLE", caller="ST1ADMIN")
        first.record_revenue(1, 4000, "USD", caller="ST1ORACLE")

        reopened = _open(LedgerConfig(lock_period=10))
        assert reopened.get_revenue(0).locked_until == 1540
        assert check_revenue(reopened) == []


class TestViolations:
    def test_config(self) -> None:
        assert check_config(LedgerConfig(max_supply=0))

    def test_tampered_audit_entry(self, busy_service: RevenueGateService) -> None:
        log = busy_service.audit_log
        log._entries[1] = replace(log._entries[1], amount=1)
        errors = check_audit(busy_service)
        assert errors == ["Audit entry 1 hash mismatch"]
        assert any("Audited revenue" in e for e in check_revenue(busy_service))

    def test_missing_replay_guard(self, busy_service: RevenueGateService) -> None:
        busy_service._revenue._submissions.clear()
        errors = check_revenue(busy_service)
        assert errors == ["Revenue entry 1 has no replay guard"]

    def test_tally_drift(self, busy_service: RevenueGateService) -> None:
        busy_service._tally._tallies[0] = busy_service.get_tally(0).with_vote(True)
        errors = check_governance(busy_service)
        assert errors == ["Tally for proposal 0 is 2/1, votes say 1/1"]

    def test_lock_before_recording(self, busy_service: RevenueGateService) -> None:
        entry = busy_service.get_revenue(1)
        busy_service._revenue._entries[1] = replace(entry, locked_until=entry.recorded_at - 1)
        errors = check_revenue(busy_service)
        assert errors == ["Revenue entry 1 unlocks at 99, before it was recorded at 100"]
