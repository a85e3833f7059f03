#!/usr/bin/env python3
"""
Operator commands for the visitor ledger.

Usage:
    visitor-ledger init          # create table / indexes
    visitor-ledger list          # print every record
    visitor-ledger stats         # print aggregate counts
    visitor-ledger clear         # delete every record

Storage is selected with the same environment as the API
(LEDGER_BACKEND, DATABASE_URL, MONGO_URL, ...).
"""

import argparse
import asyncio
import sys

from visitor_ledger.core.config import Settings, settings
from visitor_ledger.core.log import configure_logging
from visitor_ledger.models.database import ensure_sqlite_dir
from visitor_ledger.models.enums import LedgerBackend
from visitor_ledger.services.ledger import LedgerError, VisitorLedger, build_ledger


async def init_storage(ledger: VisitorLedger) -> None:
    await ledger.ensure_schema()
    print("✓ Storage initialized")


async def list_records(ledger: VisitorLedger) -> None:
    rows = await ledger.list_all()
    if not rows:
        print("No visitors in ledger")
        return

    print(f"Found {len(rows)} visitor(s):")
    for row in rows:
        state = "logged in" if row["has_logged_in"] else "entered"
        print(f"  {row['identifier']}: {state}")


async def show_stats(ledger: VisitorLedger) -> None:
    stats = await ledger.get_stats()
    print(f"Total entered:       {stats.total_entered}")
    print(f"Total logged in:     {stats.total_logged_in}")
    print(f"Total not logged in: {stats.total_not_logged_in}")


async def clear_records(ledger: VisitorLedger) -> None:
    removed = await ledger.clear_all()
    print(f"✓ Deleted {removed} record(s)")


COMMANDS = {
    "init": init_storage,
    "list": list_records,
    "stats": show_stats,
    "clear": clear_records,
}


async def run(command: str, config: Settings = settings) -> int:
    if config.LEDGER_BACKEND == LedgerBackend.SQL:
        ensure_sqlite_dir(config.DATABASE_URL)

    ledger = build_ledger(config)
    try:
        if command != "init":
            await ledger.ensure_schema()
        await COMMANDS[command](ledger)
    except LedgerError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    finally:
        await ledger.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the visitor ledger")
    parser.add_argument(
        "command",
        choices=sorted(COMMANDS),
        help="Operation to run against the configured storage",
    )
    parser.add_argument(
        "--backend",
        choices=["sql", "mongo"],
        help="Override LEDGER_BACKEND",
    )

    args = parser.parse_args(argv)

    config = settings
    if args.backend:
        config = settings.model_copy(update={"LEDGER_BACKEND": LedgerBackend(args.backend)})

    configure_logging(config)
    return asyncio.run(run(args.command, config))


if __name__ == "__main__":
    sys.exit(main())
