from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from phantomledger.app import (
    current_policy,
    ensure_started,
    list_phantom_reactions,
    reconcile_phantom_reactions,
    replay_feed,
)
from phantomledger.config import ConfigurationError, configure_logging, parse_id_set

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from phantomledger.domain.model import AuditRecord
    from phantomledger.domain.policy import PolicySnapshot

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Account for phantom reactions")
    parser.add_argument(
        "--database-uri",
        type=str,
        default=None,
        help="SQLAlchemy database URI (defaults to DATABASE_URI or the local data dir)",
    )
    parser.add_argument(
        "--init-host-schema",
        action="store_true",
        help="Create the host reference tables if missing (local databases only)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser(
        "reconcile", help="Backfill the audit trail, recount counters and purge history"
    )
    reconcile.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Audit rows inserted per commit (defaults to config)",
    )

    audit = subparsers.add_parser("audit", help="List recorded phantom reactions")
    audit.add_argument(
        "--category",
        type=str,
        help="Category id(s) to include, separated by '|' or ','",
    )
    audit.add_argument("--user", type=int, help="Only reactions made by this user id")
    audit.add_argument("--reaction", type=str, help="Only this reaction type")
    audit.add_argument("--limit", type=int, default=50, help="Maximum rows to print")

    replay = subparsers.add_parser("replay", help="Feed JSON-lines reaction payloads to the gate")
    replay.add_argument("path", type=str, help="JSON-lines file, or '-' for stdin")

    subparsers.add_parser("policy", help="Print the effective phantom policy")

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "reconcile" and args.batch_size is not None and args.batch_size <= 0:
        raise ValueError("Batch size must be positive")
    if args.command == "audit":
        if args.limit is not None and args.limit <= 0:
            raise ValueError("Limit must be positive")
        args.category = parse_id_set(args.category, name="--category") if args.category else None
    if args.command == "replay" and args.path != "-" and not Path(args.path).is_file():
        raise ValueError(f"No such file: {args.path}")


def _format_record(record: AuditRecord) -> str:
    return (
        f"{record.created_at.isoformat()}  post={record.target_id}  user={record.subject_id}  "
        f"category={record.category_id}  reaction={record.reaction_type}"
    )


def _format_policy(snapshot: PolicySnapshot) -> str:
    document = asdict(snapshot)
    document["excluded_category_ids"] = sorted(snapshot.excluded_category_ids)
    document["allowed_like_groups"] = sorted(snapshot.allowed_like_groups)
    document["notification_window"] = snapshot.notification_window.total_seconds()
    document["active"] = snapshot.active
    return json.dumps(document, indent=2, sort_keys=True)


def _replay(path: str) -> None:
    if path == "-":
        summary = replay_feed(sys.stdin)
    else:
        with Path(path).open(encoding="utf-8") as feed:
            summary = replay_feed(feed)
    log.info(
        "Replay finished: processed=%s, phantom=%s, named=%s, invalid=%s",
        summary.processed,
        summary.phantom,
        summary.named_recorded,
        summary.invalid,
    )
    if summary.step_errors:
        raise RuntimeError(f"{len(summary.step_errors)} gate steps failed during replay")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        ensure_started(
            database_uri=parsed_args.database_uri,
            create_host_schema=parsed_args.init_host_schema,
        )
        if parsed_args.command == "reconcile":
            report = reconcile_phantom_reactions(batch_size=parsed_args.batch_size)
            if report.failed_user_ids:
                log.warning("Users left unreconciled: %s", report.failed_user_ids)
        elif parsed_args.command == "audit":
            records = list_phantom_reactions(
                category_ids=parsed_args.category,
                user_id=parsed_args.user,
                reaction_type=parsed_args.reaction,
                limit=parsed_args.limit,
            )
            for record in records:
                sys.stdout.write(_format_record(record) + "\n")
            log.info("Listed %s phantom reactions", len(records))
        elif parsed_args.command == "replay":
            _replay(parsed_args.path)
        elif parsed_args.command == "policy":
            sys.stdout.write(_format_policy(current_policy()) + "\n")
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
