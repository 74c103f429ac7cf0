#!/usr/bin/env python3
"""
Command-line front end for the grants registry.

Runs every registry operation against the configured database.  Funds
move through an in-memory gateway seeded with ``--fund ASSET=AMOUNT``, so
payouts in a single invocation are real transfers against that custody
balance and are recorded in the database like any other.

Usage:
    python3 scripts/proposals.py init-db
    python3 scripts/proposals.py create --caller 0xalice --title Docs \\
        --description "Write the docs" --reference-url https://example.org/p/1 \\
        --milestones 100,250,650 --receiver 0xalice --asset USDC --tag docs
    python3 scripts/proposals.py accept --caller 0xgrants-committee 1
    python3 scripts/proposals.py --fund USDC=1000 complete --caller 0xgrants-committee 1
    python3 scripts/proposals.py show 1
    python3 scripts/proposals.py events --after 0

Every command prints JSON.  Exit code 0 on success, 1 on a registry error
(the error code is printed), 2 on a configuration error.
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from grants_config import ConfigValidationError, get_active_config  # noqa: E402
from grants_config.bridges import build_registry, init_database  # noqa: E402
from grants_kernel.db.engine import reset_engine  # noqa: E402
from grants_kernel.exceptions import GrantsKernelError  # noqa: E402
from grants_kernel.services.transfer_gateway import InMemoryTransferGateway  # noqa: E402


def parse_fund(value: str) -> tuple[str, int]:
    asset, sep, amount = value.partition("=")
    if not sep or not asset:
        raise argparse.ArgumentTypeError(f"expected ASSET=AMOUNT, got {value!r}")
    try:
        return asset, int(amount)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"amount must be an integer: {amount!r}") from exc


def parse_milestones(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"milestones must be integers: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grants registry")
    parser.add_argument("--config", type=Path, default=None, help="Path to registry.yaml")
    parser.add_argument(
        "--fund",
        type=parse_fund,
        action="append",
        default=[],
        metavar="ASSET=AMOUNT",
        help="Seed the in-memory gateway custody balance (repeatable)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and sequence counters")

    create = sub.add_parser("create", help="Submit a proposal")
    create.add_argument("--caller", required=True)
    create.add_argument("--title", required=True)
    create.add_argument("--description", default="")
    create.add_argument("--reference-url", default="")
    create.add_argument("--milestones", type=parse_milestones, required=True)
    create.add_argument("--receiver", required=True)
    create.add_argument("--asset", required=True)
    create.add_argument("--tag", action="append", default=[])

    for name, help_text in (
        ("accept", "Accept a proposal"),
        ("complete", "Pay the next milestone"),
        ("emergency-payout", "Pay all remaining milestones at once"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--caller", required=True)
        cmd.add_argument("proposal_id", type=int)

    reject = sub.add_parser("reject", help="Reject a proposal")
    reject.add_argument("--caller", required=True)
    reject.add_argument("--reason", default="")
    reject.add_argument("proposal_id", type=int)

    withdraw = sub.add_parser("withdraw", help="Sweep custody balance of an asset")
    withdraw.add_argument("--caller", required=True)
    withdraw.add_argument("--receiver", required=True)
    withdraw.add_argument("--amount", type=int, required=True)
    withdraw.add_argument("--asset", required=True)

    show = sub.add_parser("show", help="Show a proposal")
    show.add_argument("proposal_id", type=int)

    events = sub.add_parser("events", help="List registry events")
    events.add_argument("--after", type=int, default=0)
    events.add_argument("--limit", type=int, default=None)

    return parser


def run(args: argparse.Namespace) -> dict | list:
    config = get_active_config(args.config)
    session_factory = init_database(config, create=args.command == "init-db")

    if args.command == "init-db":
        return {"initialized": True, "database": config.database.url}

    gateway = InMemoryTransferGateway()
    for asset, amount in args.fund:
        gateway.fund(asset, amount)
    registry = build_registry(config, gateway, session_factory)

    if args.command == "create":
        proposal_id = registry.create_proposal(
            args.caller,
            args.title,
            args.description,
            args.reference_url,
            args.milestones,
            args.receiver,
            args.asset,
            args.tag,
        )
        return registry.get_proposal(proposal_id).to_dict()
    if args.command == "accept":
        return registry.accept_proposal(args.caller, args.proposal_id).to_dict()
    if args.command == "reject":
        return registry.reject_proposal(args.caller, args.proposal_id, args.reason).to_dict()
    if args.command == "complete":
        return registry.complete_milestone(args.caller, args.proposal_id).to_dict()
    if args.command == "emergency-payout":
        return registry.emergency_payout(args.caller, args.proposal_id).to_dict()
    if args.command == "withdraw":
        info = registry.withdraw_asset(args.caller, args.receiver, args.amount, args.asset)
        return {
            "transfer_id": info.transfer_id,
            "asset": info.asset,
            "receiver": info.recipient,
            "amount": str(info.amount),
        }
    if args.command == "show":
        return registry.get_proposal(args.proposal_id).to_dict()
    if args.command == "events":
        return [e.to_dict() for e in registry.list_events(args.after, args.limit)]

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        result = run(args)
    except ConfigValidationError as exc:
        print(json.dumps({"error": "CONFIG_INVALID", "errors": exc.errors}), file=sys.stderr)
        return 2
    except GrantsKernelError as exc:
        print(json.dumps({"error": exc.code, "message": str(exc)}), file=sys.stderr)
        return 1
    finally:
        reset_engine()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
