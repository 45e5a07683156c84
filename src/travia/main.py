"""Command-line entrypoint for the Travia tick runner."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import UTC, datetime

from travia.config import get_settings
from travia.factory import create_simulation_engine
from travia.runtime import TickScheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Travia world tick")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and print its report instead of looping",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (defaults to TRAVIA_DATABASE_URL)",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Fill empty catalog tables with the bundled unit and building data",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (defaults to TRAVIA_TICK_INTERVAL_SECONDS)",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


async def _run_forever(scheduler: TickScheduler) -> None:
    scheduler.start()
    try:
        await scheduler.wait()
    finally:
        await scheduler.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = get_settings()
    engine = create_simulation_engine(args.database_url, settings=settings, seed=args.seed)

    if args.once:
        report = engine.tick(datetime.now(UTC))
        print(json.dumps(report.summary(), indent=2))
        return 0 if report.ok else 1

    scheduler = TickScheduler(
        engine, interval_seconds=args.interval or settings.tick_interval_seconds
    )
    try:
        asyncio.run(_run_forever(scheduler))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("tick loop interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
