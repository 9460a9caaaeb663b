#!/usr/bin/env python
"""
CLI for printing the active valuation or the saved valuations.

Usage:
    python -m tasador.cli.report
    python -m tasador.cli.report --saved
    python -m tasador.cli.report --json
"""

import argparse
import asyncio
import json
import sys

from tasador.config import get_config
from tasador.exceptions import TasadorError
from tasador.logging_config import setup_logging, get_logger
from tasador.utils.date_parser import format_date
from tasador.utils.number_parser import format_currency, format_number
from tasador.valuation.session import ValuationSession, saved_summaries


async def collect(agent_id: str = None, saved: bool = False):
    """Open the agent's workspace and read the requested view."""
    session = ValuationSession.from_config(get_config(), agent_id=agent_id)
    async with session:
        if saved:
            return saved_summaries(session.saved_valuations)
        return session.snapshot()


def print_active(snapshot):
    target = snapshot["target"]
    print(f"Target: {target.get('address') or '(sin dirección)'}")
    print(f"Homogenized surface: {format_number(snapshot['targetHomogenizedSurface'])} m²")
    print(f"Comparables: {len(snapshot['comparables'])}")
    for comparable in snapshot["comparables"]:
        print(
            f"  {comparable.get('address', ''):<30} "
            f"{format_currency(comparable.get('price')):>12} "
            f"{format_number(comparable['hSurface']):>8} m² "
            f"{format_currency(comparable['hPrice']):>10}/m²"
        )
    stats = snapshot["statistics"]
    value_range = snapshot["valueRange"]
    print(f"Average $/m²: {format_number(stats['avg'])} (min {format_number(stats['min'])}, max {format_number(stats['max'])})")
    print(f"Low:    {format_currency(value_range['low'])}")
    print(f"Market: {format_currency(value_range['market'])}")
    print(f"High:   {format_currency(value_range['high'])}")
    if snapshot["dirty"]:
        print("(unsaved changes)")


def print_saved(summaries):
    if not summaries:
        print("No saved valuations")
        return
    for summary in summaries:
        market = summary["valuation"]["market"] if summary["valuation"] else None
        print(
            f"{summary['id']}  {format_date(summary['date']):<12} "
            f"{summary['name']:<40} {format_currency(market):>12}  {summary['clientName']}"
        )


def main():
    """Main entry point for the report CLI."""
    parser = argparse.ArgumentParser(
        description="Show the active valuation or the saved valuations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m tasador.cli.report
    python -m tasador.cli.report --saved
    python -m tasador.cli.report --agent agent-1 --json
        """,
    )
    parser.add_argument("--agent", type=str, default=None, help="Agent id (default: from config)")
    parser.add_argument("--saved", action="store_true", help="List saved valuations instead")
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
        result = asyncio.run(collect(agent_id=args.agent, saved=args.saved))
    except TasadorError as e:
        logger.error("Report failed: %s", e)
        sys.exit(1)

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    elif args.saved:
        print_saved(result)
    else:
        print_active(result)


if __name__ == "__main__":
    main()
