"""FamCoin CLI — command-line interface for the economy engine.

Usage:
    python -m famcoin.cli status
    python -m famcoin.cli create-account --id liam --name Liam --age 8
    python -m famcoin.cli earn --id liam --action task_complete
    python -m famcoin.cli transfer --id liam --from spending --to savings --amount 100
    python -m famcoin.cli purchase --id liam --item "Comic" --amount 300
    python -m famcoin.cli approve --id liam --purchase-id pur_... --approver Mum
    python -m famcoin.cli check-invariants

Environment (a .env file at the working directory is honoured):
    FAMCOIN_CONFIG_DIR   policy directory (default: config/)
    FAMCOIN_DATA_DIR     state and audit log directory (default: data/)
    FAMCOIN_LOG_LEVEL    logging level (default: WARNING)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from famcoin.errors import EconomyError
from famcoin.persistence.event_log import EventLog
from famcoin.persistence.state_store import StateStore
from famcoin.policy.resolver import DEFAULT_CONFIG_DIR, PolicyResolver
from famcoin.service import AccountRegistry, ServiceResult


DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"


def _make_registry(args: argparse.Namespace) -> AccountRegistry:
    """Create an AccountRegistry with durable persistence."""
    data_dir: Path = args.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(args.config)
    return AccountRegistry(
        resolver,
        store=StateStore(storage_path=data_dir / "state.json"),
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
    )


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _emit(result: ServiceResult) -> int:
    body = {
        "success": result.success,
        "kind": result.kind.value,
        "errors": result.errors,
        "data": _jsonable(result.data),
    }
    print(json.dumps(body, indent=2))
    return 0 if result.success else 1


def cmd_status(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    print(json.dumps(_jsonable(registry.family_summary()), indent=2))
    return 0


def cmd_create_account(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    profile: dict[str, Any] = {"name": args.name, "age": args.age}
    if args.interest_rate is not None:
        profile["interest_rate_percent"] = args.interest_rate
    if args.tax_rate is not None:
        profile["tax_rate_percent"] = args.tax_rate
    if args.auto_approve_under is not None:
        profile["auto_approve_under_amount"] = args.auto_approve_under
    if args.no_approval:
        profile["require_approval"] = False
    return _emit(registry.create_account(args.id, profile))


def cmd_earn(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    metadata = {"note": args.note} if args.note else None
    return _emit(registry.earn(args.id, args.action, args.amount, metadata))


def cmd_transfer(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.transfer(args.id, args.from_sub, args.to_sub, args.amount))


def cmd_purchase(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.request_purchase(
        args.id, args.item, args.amount,
        from_sub_account=args.from_sub, category=args.category,
    ))


def cmd_approve(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.approve_purchase(args.id, args.purchase_id, args.approver))


def cmd_deny(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.deny_purchase(args.purchase_id, args.reason, args.denied_by))


def cmd_pending(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    pending = registry.pending_purchases(args.id)
    print(json.dumps(_jsonable(pending), indent=2))
    return 0


def cmd_withdraw(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.withdraw(args.id, args.amount, args.method, args.purpose))


def cmd_deposit(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.deposit(
        args.id, args.amount, to_sub_account=args.to_sub,
        reason=args.reason, deposited_by=args.by,
    ))


def cmd_interest(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.apply_interest(args.id))


def cmd_transactions(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.transactions(args.id, args.limit, args.offset))


def cmd_receipts(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    return _emit(registry.receipts(args.id, args.limit, args.offset))


def cmd_settings(args: argparse.Namespace) -> int:
    registry = _make_registry(args)
    try:
        changes = json.loads(args.changes)
    except json.JSONDecodeError as e:
        print(f"Invalid settings JSON: {e}", file=sys.stderr)
        return 1
    return _emit(registry.update_settings(args.id, changes, updated_by=args.by))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Verify the policy loads and every stored account balances."""
    try:
        registry = _make_registry(args)
    except (EconomyError, ValueError) as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return 1
    summary = registry.family_summary()
    print(f"Policy OK; {summary['total_members']} account(s) balance.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="famcoin",
        description="FamCoin — family allowance economy CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("FAMCOIN_CONFIG_DIR", str(DEFAULT_CONFIG_DIR))),
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(os.getenv("FAMCOIN_DATA_DIR", str(DEFAULT_DATA))),
        help="Path to state directory (default: data/)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show family balances")

    # create-account
    p_acc = sub.add_parser("create-account", help="Create a member account")
    p_acc.add_argument("--id", required=True, help="Member ID")
    p_acc.add_argument("--name", required=True, help="Display name")
    p_acc.add_argument("--age", required=True, type=int, help="Age (sets account mode)")
    p_acc.add_argument("--interest-rate", type=int, help="Savings interest percent")
    p_acc.add_argument("--tax-rate", type=int, help="Earnings tax percent")
    p_acc.add_argument("--auto-approve-under", type=int, help="Auto-approval threshold")
    p_acc.add_argument("--no-approval", action="store_true", help="Never require approval")

    # earn
    p_earn = sub.add_parser("earn", help="Award coins for an action")
    p_earn.add_argument("--id", required=True, help="Member ID")
    p_earn.add_argument("--action", help="Action from the earning rate table")
    p_earn.add_argument("--amount", type=int, help="Custom gross amount")
    p_earn.add_argument("--note", help="Free-text note stored as metadata")

    # transfer
    p_tr = sub.add_parser("transfer", help="Move coins between sub-accounts")
    p_tr.add_argument("--id", required=True, help="Member ID")
    p_tr.add_argument("--from", dest="from_sub", required=True, help="Source sub-account")
    p_tr.add_argument("--to", dest="to_sub", required=True, help="Target sub-account")
    p_tr.add_argument("--amount", required=True, type=int)

    # purchase
    p_pur = sub.add_parser("purchase", help="Request a purchase")
    p_pur.add_argument("--id", required=True, help="Member ID")
    p_pur.add_argument("--item", required=True)
    p_pur.add_argument("--amount", required=True, type=int)
    p_pur.add_argument("--from", dest="from_sub", default="spending")
    p_pur.add_argument("--category")

    # approve / deny / pending
    p_app = sub.add_parser("approve", help="Approve a pending purchase")
    p_app.add_argument("--id", required=True, help="Member ID")
    p_app.add_argument("--purchase-id", required=True)
    p_app.add_argument("--approver", required=True)

    p_deny = sub.add_parser("deny", help="Deny a pending purchase")
    p_deny.add_argument("--purchase-id", required=True)
    p_deny.add_argument("--reason")
    p_deny.add_argument("--denied-by")

    p_pend = sub.add_parser("pending", help="List pending purchases")
    p_pend.add_argument("--id", help="Only this member's requests")

    # withdraw / deposit / interest
    p_wd = sub.add_parser("withdraw", help="Cash out from spending")
    p_wd.add_argument("--id", required=True, help="Member ID")
    p_wd.add_argument("--amount", required=True, type=int)
    p_wd.add_argument("--method", default="cash")
    p_wd.add_argument("--purpose")

    p_dep = sub.add_parser("deposit", help="Deposit coins into a sub-account")
    p_dep.add_argument("--id", required=True, help="Member ID")
    p_dep.add_argument("--amount", required=True, type=int)
    p_dep.add_argument("--to", dest="to_sub", default="spending")
    p_dep.add_argument("--reason")
    p_dep.add_argument("--by", help="Depositor name")

    p_int = sub.add_parser("interest", help="Apply savings interest")
    p_int.add_argument("--id", required=True, help="Member ID")

    # history
    for name in ("transactions", "receipts"):
        p_hist = sub.add_parser(name, help=f"Show {name}, most recent first")
        p_hist.add_argument("--id", required=True, help="Member ID")
        p_hist.add_argument("--limit", type=int)
        p_hist.add_argument("--offset", type=int, default=0)

    # settings
    p_set = sub.add_parser("settings", help="Update account settings")
    p_set.add_argument("--id", required=True, help="Member ID")
    p_set.add_argument("--changes", required=True, help='JSON, e.g. \'{"tax_rate_percent": 10}\'')
    p_set.add_argument("--by", help="Parent making the change")

    # check-invariants
    sub.add_parser("check-invariants", help="Validate policy and stored accounts")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("FAMCOIN_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "create-account": cmd_create_account,
        "earn": cmd_earn,
        "transfer": cmd_transfer,
        "purchase": cmd_purchase,
        "approve": cmd_approve,
        "deny": cmd_deny,
        "pending": cmd_pending,
        "withdraw": cmd_withdraw,
        "deposit": cmd_deposit,
        "interest": cmd_interest,
        "transactions": cmd_transactions,
        "receipts": cmd_receipts,
        "settings": cmd_settings,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
