#!/usr/bin/env python3
"""
CLI for a booking flow exploration run.

Usage: python run_explorer.py --url <site_url> [--max-pages N] [--headed]

Settings not given on the command line come from the environment (.env).
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from booking_explorer.errors import BrowserUnavailableError
from booking_explorer.models import ExplorationReport, to_dict
from booking_explorer.runner import run_exploration
from shared.config import ExplorerConfig
from shared.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover and map booking flows on a website")
    parser.add_argument("--url", help="Site to explore (default: BASE_URL)")
    parser.add_argument("--max-pages", type=int, help="Maximum pages to crawl")
    parser.add_argument("--max-depth", type=int, help="Maximum link depth from the start page")
    parser.add_argument("--max-flows", type=int, help="Maximum booking flows to explore (0 = unlimited)")
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show browser window (Chrome). Use for local debugging.",
    )
    parser.add_argument("--no-screenshots", action="store_true", help="Skip step and package screenshots")
    parser.add_argument("--output-dir", help="Directory for screenshots")
    parser.add_argument(
        "--target-date",
        type=date.fromisoformat,
        help="Also scrape packages for this day (YYYY-MM-DD)",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ExplorerConfig] = None) -> ExplorerConfig:
    """Environment config with any flags given on the command line applied on top."""
    config = base or ExplorerConfig.from_env()
    return config.with_overrides(
        base_url=args.url,
        max_pages=args.max_pages,
        max_depth=args.max_depth,
        max_flows=args.max_flows,
        headless=False if args.headed else None,
        take_screenshots=False if args.no_screenshots else None,
        output_dir=args.output_dir,
        target_date=args.target_date,
        log_level=args.log_level,
    )


def summarize(report: ExplorationReport) -> dict:
    return {
        "base_url": report.base_url,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "duration_ms": report.duration_ms,
        "stats": to_dict(report.stats),
        "bookings": [
            {
                "name": booking.name,
                "destination": booking.destination_key,
                "entry_points": len(booking.entry_points),
                "variations": [
                    {
                        "group_size_mode": v.group_size_mode,
                        "group_size": v.group_size,
                        "flow_type": v.flow_type,
                        "steps": [s.step_type for s in v.steps],
                        "completed": v.completed,
                        "termination_reason": v.termination_reason,
                    }
                    for v in booking.flows
                ],
            }
            for booking in report.bookings
        ],
        "discoveries": [
            {
                "url": d.url,
                "venue_name": d.venue_name,
                "platform": d.platform,
                "packages": [p.name for p in d.packages],
            }
            for d in report.discoveries
        ],
        "errors": report.errors,
    }


async def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config.log_level, log_file=config.log_file, log_stdout=config.log_stdout)

    try:
        report = await run_exploration(config)
    except BrowserUnavailableError as e:
        logger.error("run.browser_unavailable", error=str(e), error_type=type(e).__name__)
        return 1

    print("\n" + "=" * 80)
    print("EXPLORATION SUMMARY")
    print("=" * 80)
    print(json.dumps(summarize(report), indent=2, default=str))
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
