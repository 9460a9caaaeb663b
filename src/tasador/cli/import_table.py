#!/usr/bin/env python
"""
CLI for importing comparables from a CSV file or a Google Sheet.

Usage:
    python -m tasador.cli.import_table comparables.csv
    python -m tasador.cli.import_table "https://docs.google.com/spreadsheets/d/<id>/edit"
    python -m tasador.cli.import_table comparables.csv --new --agent agent-1
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from tasador.config import get_config
from tasador.exceptions import TasadorError
from tasador.logging_config import setup_logging, get_logger
from tasador.utils.number_parser import format_currency, format_number
from tasador.valuation.prompts import ConsolePrompter
from tasador.valuation.session import ValuationSession


async def run_import(source: str, agent_id: str = None, start_new: bool = False, assume_yes: bool = False):
    """Import ``source`` into the agent's active valuation.

    Returns:
        (ImportReport, session snapshot dict)
    """
    config = get_config()
    session = ValuationSession.from_config(config, prompter=ConsolePrompter(), agent_id=agent_id)

    async with session:
        if start_new:
            confirmed = True if assume_yes else None
            if not await session.new_valuation(confirmed=confirmed):
                raise TasadorError("Import cancelled: the current valuation was kept")

        if source.startswith(("http://", "https://")):
            report = await session.import_from_sheet(source)
        else:
            text = Path(source).read_text(encoding="utf-8")
            report = await session.import_from_table(text, source=source)

        await session.sync()
        return report, session.snapshot()


def main():
    """Main entry point for the import CLI."""
    parser = argparse.ArgumentParser(
        description="Import comparables into the active valuation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m tasador.cli.import_table comparables.csv
    python -m tasador.cli.import_table "https://docs.google.com/spreadsheets/d/<id>/edit" --json
    python -m tasador.cli.import_table comparables.csv --new --yes
        """,
    )
    parser.add_argument("source", help="CSV file path or sheet/CSV URL")
    parser.add_argument("--agent", type=str, default=None, help="Agent id (default: from config)")
    parser.add_argument("--new", action="store_true", help="Start a new valuation before importing")
    parser.add_argument("--yes", action="store_true", help="Do not ask before discarding changes")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set log level (default: WARNING)",
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(level=args.log_level)
    logger = get_logger(__name__)

    try:
        report, snapshot = asyncio.run(
            run_import(args.source, agent_id=args.agent, start_new=args.new, assume_yes=args.yes)
        )
    except (TasadorError, OSError) as e:
        logger.error("Import failed: %s", e)
        sys.exit(1)

    if args.json:
        print(json.dumps({"report": report.to_dict(), "valuation": snapshot}, indent=2, ensure_ascii=False))
        return

    stats = snapshot["statistics"]
    value_range = snapshot["valueRange"]
    print(f"Imported {report.imported_count} comparables, skipped {len(report.skipped)}")
    for skip in report.skipped:
        print(f"  row {skip.row_number}: {skip.reason}")
    print(f"Priced comparables: {stats['count']}")
    print(f"Average $/m²: {format_number(stats['avg'])}")
    print(
        f"Value range: {format_currency(value_range['low'])} / "
        f"{format_currency(value_range['market'])} / {format_currency(value_range['high'])}"
    )


if __name__ == "__main__":
    main()
