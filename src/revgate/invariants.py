"""Invariant checks against configuration and live ledger state.

Each check returns a list of human-readable violations. An empty list
means the invariant holds. The CLI's ``check-invariants`` command runs
all of them against the persisted state.
"""

from __future__ import annotations

from revgate.config import LedgerConfig
from revgate.persistence.event_log import AuditEvent
from revgate.service import RevenueGateService


def check_config(config: LedgerConfig) -> list[str]:
    """Parameter sanity: ceiling, lock, threshold, currencies, treasury."""
    return config.validate()


def check_audit(service: RevenueGateService) -> list[str]:
    """Audit ids contiguous from 0, hashes intact, timestamps non-decreasing."""
    log = service.audit_log
    errors = list(log.verify())
    previous = None
    for entry in log.entries():
        if previous is not None and entry.timestamp < previous:
            errors.append(
                f"Audit entry {entry.entry_id} timestamp {entry.timestamp} "
                f"precedes earlier entry ({previous})"
            )
        previous = entry.timestamp
    return errors


def check_revenue(service: RevenueGateService) -> list[str]:
    """Supply ceiling, id monotonicity, and lock arithmetic."""
    errors: list[str] = []
    config = service.config
    total = service.total_recorded()
    if total > config.max_supply:
        errors.append(f"total_recorded {total} exceeds max_supply {config.max_supply}")

    live = service.list_revenue()
    live_sum = sum(e.amount for e in live)
    if live_sum > total:
        errors.append(f"Live entries sum to {live_sum}, more than total_recorded {total}")

    for entry in live:
        if entry.amount <= 0:
            errors.append(f"Revenue entry {entry.entry_id} has non-positive amount")
        if entry.currency not in config.currencies:
            errors.append(f"Revenue entry {entry.entry_id} has unknown currency {entry.currency}")
        # The lock period may have been reconfigured since the entry was recorded.
        if entry.locked_until < entry.recorded_at:
            errors.append(
                f"Revenue entry {entry.entry_id} unlocks at {entry.locked_until}, "
                f"before it was recorded at {entry.recorded_at}"
            )
        if not service.is_submission_used(entry.recorded_by, entry.source_id):
            errors.append(f"Revenue entry {entry.entry_id} has no replay guard")

    recorded_events = service.audit_log.entries(AuditEvent.REVENUE_RECORDED)
    if sum(e.amount for e in recorded_events) != total:
        errors.append(
            "Audited revenue does not match total_recorded "
            f"({sum(e.amount for e in recorded_events)} != {total})"
        )

    if service.treasury_balance() < 0:
        errors.append("Treasury balance is negative")
    return errors


def check_governance(service: RevenueGateService) -> list[str]:
    """Every vote references a proposal and every tally matches its votes."""
    errors: list[str] = []
    counts: dict[int, list[int]] = {}
    for vote in service.all_votes():
        if service.get_proposal(vote.proposal_id) is None:
            errors.append(
                f"Vote by {vote.voter} references missing proposal {vote.proposal_id}"
            )
        yes_no = counts.setdefault(vote.proposal_id, [0, 0])
        yes_no[0 if vote.choice else 1] += 1

    for proposal_id, (yes, no) in counts.items():
        tally = service.get_tally(proposal_id)
        if (tally.yes, tally.no) != (yes, no):
            errors.append(
                f"Tally for proposal {proposal_id} is {tally.yes}/{tally.no}, "
                f"votes say {yes}/{no}"
            )
    return errors


def check_all(service: RevenueGateService) -> list[str]:
    return (
        check_config(service.config)
        + check_audit(service)
        + check_revenue(service)
        + check_governance(service)
    )
