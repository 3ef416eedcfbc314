#!/usr/bin/env python3
"""
Voter roll import

Loads the election-roll CSV export into the voters table.

Usage (from the project directory):
    python scripts/import_voters.py "demo data base.csv"
    python scripts/import_voters.py roll.csv --keep-existing
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Project root on the path so the package imports without installing
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from constituent_bot.core.config import settings  # noqa: E402
from constituent_bot.core.logging import setup_logging  # noqa: E402
from constituent_bot.db.database import AsyncSessionLocal, engine, init_db  # noqa: E402
from constituent_bot.domain.services.voter_import import import_voters_from_file  # noqa: E402


async def run(csv_path: Path, keep_existing: bool) -> int:
    await init_db()
    try:
        async with AsyncSessionLocal() as db:
            return await import_voters_from_file(
                db, csv_path, replace_existing=not keep_existing
            )
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Import the voter roll CSV")
    parser.add_argument("csv_path", type=Path, help="CSV export of the voter roll")
    parser.add_argument(
        "--keep-existing",
        action="store_true",
        help="Keep rows already in the table and add only new EPIC numbers",
    )
    args = parser.parse_args()

    setup_logging(level="INFO", json_format=False, app_name=settings.APP_NAME)

    if not args.csv_path.exists():
        print(f"ERROR: CSV file not found: {args.csv_path}")
        return 1

    inserted = asyncio.run(run(args.csv_path, args.keep_existing))
    print(f"Imported {inserted} voter records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
