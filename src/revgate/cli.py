"""Revenue Gate CLI — command-line interface for the governance ledger.

Usage:
    python -m revgate.cli status
    python -m revgate.cli init-attestor --caller admin --identity oracle
    python -m revgate.cli record --caller oracle --source-id 7 --amount 500000 --currency USD
    python -m revgate.cli advance --blocks 1441
    python -m revgate.cli release --caller oracle --entry-id 0 --recipient alice
    python -m revgate.cli submit-proposal --caller bob --amount 1000 --description "Grant"
    python -m revgate.cli vote --caller carol --proposal-id 0 --yes
    python -m revgate.cli disburse --caller carol --proposal-id 0 --recipient dave
    python -m revgate.cli check-invariants

State lives in a data directory (events.jsonl + state.json). Parameters
are the built-in defaults, or a JSON file named by --config or
REVGATE_CONFIG, overlaid with REVGATE_* variables from the environment
or a .env file.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

from revgate.clock import LogicalClock
from revgate.config import LedgerConfig
from revgate.invariants import check_all
from revgate.persistence.event_log import AuditLog
from revgate.persistence.state_store import StateStore
from revgate.service import RevenueGateService, ServiceResult


DEFAULT_DATA = Path(os.getenv("REVGATE_DATA_DIR", "revgate-data"))


def _load_config(args: argparse.Namespace) -> LedgerConfig:
    if args.config is None:
        base = LedgerConfig()
    elif not args.config.exists():
        raise ValueError(f"Ledger parameter file not found: {args.config}")
    else:
        base = LedgerConfig.from_file(args.config)
    env_file = args.env_file if args.env_file is not None and args.env_file.exists() else None
    return LedgerConfig.from_env(env_file, base=base)


def _make_service(args: argparse.Namespace) -> RevenueGateService:
    """Create a RevenueGateService with durable persistence."""
    data_dir: Path = args.data
    data_dir.mkdir(parents=True, exist_ok=True)
    clock = LogicalClock()
    return RevenueGateService(
        _load_config(args),
        clock,
        audit_log=AuditLog(clock, storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(data_dir / "state.json"),
    )


def _report(result: ServiceResult, describe: Callable[[dict[str, Any]], str]) -> int:
    if result.success:
        print(describe(result.data))
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    code = result.error_code.value if result.error_code is not None else "-"
    print(f"Failed [{code}]: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_init_attestor(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.initialize_attestor(args.identity, caller=args.caller)
    return _report(result, lambda d: f"Attestor initialised: {d['attestor']}")


def cmd_rotate_attestor(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.rotate_attestor(args.identity, caller=args.caller)
    return _report(result, lambda d: f"Attestor rotated: {d['previous']} -> {d['attestor']}")


def cmd_record(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.record_revenue(
        args.source_id, args.amount, args.currency, caller=args.caller,
    )
    return _report(
        result,
        lambda d: (
            f"Recorded entry {d['entry_id']} (locked until {d['locked_until']}, "
            f"total {d['total_recorded']})"
        ),
    )


def cmd_release(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.release_revenue(args.entry_id, args.recipient, caller=args.caller)
    return _report(
        result, lambda d: f"Released entry {d['entry_id']}: {d['amount']} -> {d['recipient']}",
    )


def cmd_submit_proposal(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.submit_proposal(args.amount, args.description, caller=args.caller)
    return _report(result, lambda d: f"Submitted proposal {d['proposal_id']} ({d['status']})")


def cmd_update_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.update_proposal_status(args.proposal_id, args.status, caller=args.caller)
    return _report(result, lambda d: f"Proposal {d['proposal_id']} status: {d['status']}")


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.cast_vote(args.proposal_id, args.choice, caller=args.caller)
    return _report(
        result,
        lambda d: (
            f"Vote recorded on proposal {d['proposal_id']}: yes={d['yes']} no={d['no']} "
            f"approved={d['approved']}"
        ),
    )


def cmd_disburse(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.disburse(args.proposal_id, args.recipient, caller=args.caller)
    return _report(
        result,
        lambda d: f"Disbursed {d['amount']} for proposal {d['proposal_id']} -> {d['recipient']}",
    )


def cmd_balance(args: argparse.Namespace) -> int:
    service = _make_service(args)
    account = args.account or service.config.treasury_account
    print(f"{account}: {service.balance_of(account)}")
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    service = _make_service(args)
    entries = service.audit_log.entries()
    if args.last is not None:
        entries = entries[-args.last:] if args.last > 0 else []
    for entry in entries:
        print(json.dumps(entry.to_dict(), sort_keys=True))
    return 0


def cmd_advance(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.advance_time(args.blocks)
    return _report(result, lambda d: f"Logical time: {d['height']}")


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run ledger invariant checks against the persisted state."""
    service = _make_service(args)
    errors = check_all(service)
    if errors:
        for error in errors:
            print(f"INVARIANT VIOLATION: {error}", file=sys.stderr)
        return 1
    print("All invariants hold.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    config_env = os.getenv("REVGATE_CONFIG")
    parser = argparse.ArgumentParser(
        prog="revgate",
        description="Revenue Gate — governance-gated revenue ledger CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(config_env) if config_env else None,
        help="Path to ledger parameter file (default: $REVGATE_CONFIG, else built-in defaults)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Optional .env file with REVGATE_* overrides (default: .env)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Data directory for events.jsonl and state.json",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show ledger status")

    p_init = sub.add_parser("init-attestor", help="Appoint the first attestor")
    p_init.add_argument("--caller", required=True, help="Identity performing the call")
    p_init.add_argument("--identity", required=True, help="Attestor to appoint")

    p_rot = sub.add_parser("rotate-attestor", help="Hand the attestor role on")
    p_rot.add_argument("--caller", required=True, help="Current attestor")
    p_rot.add_argument("--identity", required=True, help="New attestor")

    p_rec = sub.add_parser("record", help="Record attested revenue")
    p_rec.add_argument("--caller", required=True, help="Attestor identity")
    p_rec.add_argument("--source-id", type=int, required=True, help="External attested id")
    p_rec.add_argument("--amount", type=int, required=True, help="Amount (integer units)")
    p_rec.add_argument("--currency", required=True, help="Currency code")

    p_rel = sub.add_parser("release", help="Release a matured revenue entry")
    p_rel.add_argument("--caller", required=True, help="Recorder of the entry")
    p_rel.add_argument("--entry-id", type=int, required=True, help="Revenue entry id")
    p_rel.add_argument("--recipient", required=True, help="Account to pay")

    p_sub = sub.add_parser("submit-proposal", help="Submit a disbursement proposal")
    p_sub.add_argument("--caller", required=True, help="Proposer identity")
    p_sub.add_argument("--amount", type=int, required=True, help="Requested amount")
    p_sub.add_argument("--description", default="", help="Proposal description")

    p_upd = sub.add_parser("update-status", help="Relabel a proposal")
    p_upd.add_argument("--caller", required=True, help="Original proposer")
    p_upd.add_argument("--proposal-id", type=int, required=True, help="Proposal id")
    p_upd.add_argument("--status", required=True, help="New status label")

    p_vote = sub.add_parser("vote", help="Vote on a proposal")
    p_vote.add_argument("--caller", required=True, help="Voter identity")
    p_vote.add_argument("--proposal-id", type=int, required=True, help="Proposal id")
    choice = p_vote.add_mutually_exclusive_group(required=True)
    choice.add_argument("--yes", dest="choice", action="store_true", help="Vote yes")
    choice.add_argument("--no", dest="choice", action="store_false", help="Vote no")

    p_dis = sub.add_parser("disburse", help="Pay an approved proposal")
    p_dis.add_argument("--caller", required=True, help="Identity triggering payment")
    p_dis.add_argument("--proposal-id", type=int, required=True, help="Proposal id")
    p_dis.add_argument("--recipient", required=True, help="Account to pay")

    p_bal = sub.add_parser("balance", help="Show an account balance")
    p_bal.add_argument("--account", help="Account (default: treasury)")

    p_aud = sub.add_parser("audit", help="Print audit entries as JSON lines")
    p_aud.add_argument("--last", type=int, help="Only the last N entries")

    p_adv = sub.add_parser("advance", help="Advance logical time")
    p_adv.add_argument("--blocks", type=int, required=True, help="Blocks to advance")

    sub.add_parser("check-invariants", help="Run ledger invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "init-attestor": cmd_init_attestor,
        "rotate-attestor": cmd_rotate_attestor,
        "record": cmd_record,
        "release": cmd_release,
        "submit-proposal": cmd_submit_proposal,
        "update-status": cmd_update_status,
        "vote": cmd_vote,
        "disburse": cmd_disburse,
        "balance": cmd_balance,
        "audit": cmd_audit,
        "advance": cmd_advance,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
