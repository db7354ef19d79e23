"""tracechain command line.

Thin adapter over LedgerService and the scoring reports. Each command
opens the ledger, runs once, prints JSON and closes the ledger.

Settings precedence: defaults < environment (TRACECHAIN_*) < CLI flags.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from tracechain.config import Settings, load_settings
from tracechain.ledger import LedgerError, LedgerService
from tracechain.reports import build_certificate_report, summarize_batches
from tracechain.shared.logging import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHAIN_BROKEN = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracechain",
        description="Supply-chain custody ledger and certificates",
    )
    parser.add_argument("--database-url", type=str, default=None,
                        help="SQLAlchemy async URL (overrides TRACECHAIN_LEDGER__DATABASE_URL)")
    parser.add_argument("--log-level", type=str.upper, default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (overrides TRACECHAIN_LOGGING__LEVEL)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("create-batch", help="Create a batch and record BATCH_CREATED")

    append = sub.add_parser("append", help="Record an event for a batch")
    append.add_argument("batch_id")
    append.add_argument("event_type")
    append.add_argument("--data", type=str, default="{}", help="Event payload as JSON")

    history = sub.add_parser("history", help="Print a batch's events in order")
    history.add_argument("batch_id")

    certificate = sub.add_parser("certificate", help="Score and classify a batch")
    certificate.add_argument("batch_id")
    certificate.add_argument("--mode", choices=["inline", "final"], default=None,
                             help="Reconciliation mode (overrides TRACECHAIN_SCORING__RECONCILE_MODE)")

    batches = sub.add_parser("batches", help="List batches with score and tier")
    batches.add_argument("--mode", choices=["inline", "final"], default=None)

    sub.add_parser("verify", help="Verify the whole hash chain")

    return parser


def _apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.database_url:
        settings.ledger.database_url = args.database_url
    if args.log_level:
        settings.logging.level = args.log_level
    if getattr(args, "mode", None):
        settings.scoring.reconcile_mode = args.mode
    return settings


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=False))


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    mode = settings.scoring.reconcile_mode

    async with LedgerService.from_settings(settings.ledger) as ledger:
        if args.command == "create-batch":
            batch_id, block = await ledger.create_batch()
            _emit({"batchId": batch_id, "block": block.to_wire()})

        elif args.command == "append":
            try:
                data = json.loads(args.data)
            except json.JSONDecodeError as e:
                print(f"error: --data is not valid JSON: {e}", file=sys.stderr)
                return EXIT_ERROR
            block = await ledger.append(args.batch_id, args.event_type, data)
            _emit(block.to_wire())

        elif args.command == "history":
            events = await ledger.get_events_by_batch(args.batch_id)
            _emit([e.model_dump(mode="json", by_alias=True) for e in events])

        elif args.command == "certificate":
            report = await build_certificate_report(ledger, args.batch_id, mode=mode)
            _emit(report.model_dump(mode="json", by_alias=True))

        elif args.command == "batches":
            summaries = await summarize_batches(ledger, mode=mode)
            _emit([s.model_dump(mode="json", by_alias=True) for s in summaries])

        elif args.command == "verify":
            result = await ledger.verify_chain()
            out: dict[str, Any] = {"valid": result.valid, "blocksChecked": result.blocks_checked}
            if result.error is not None:
                out["sequenceId"] = result.error.sequence_id
                out["reason"] = result.error.reason
            _emit(out)
            if not result:
                return EXIT_CHAIN_BROKEN

    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    if os.environ.get("TRACECHAIN_TEST_MODE") != "true":
        load_dotenv()

    args = build_parser().parse_args(argv)

    try:
        settings = _apply_cli_overrides(load_settings(), args)
    except ValidationError as e:
        print(f"error: invalid settings: {e.error_count()} error(s)", file=sys.stderr)
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            print(f"  {loc}: {err['msg']}", file=sys.stderr)
        return EXIT_ERROR
    configure_logging(settings.logging)

    try:
        return asyncio.run(_run(args, settings))
    except (LedgerError, ValueError) as e:
        logger.error({"cli": {"command": args.command, "error": str(e)}})
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
