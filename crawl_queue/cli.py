"""Command line tools for maintaining a crawl queue."""

import argparse
import asyncio
import logging
from typing import Optional

from .config import MonitorConfig, QueueConfig
from .runner import STANDALONE_STALE_INTERVAL_MS, drop_queue, run_gc, run_monitor

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crawl-queue",
        description="Maintenance jobs for a MongoDB crawl queue",
    )
    parser.add_argument("--url", help="MongoDB connection URL (default: from environment)")
    parser.add_argument("--db", help="Database name (default: from environment)")
    parser.add_argument("--collection", default="queue", help="Queue collection name")
    parser.add_argument(
        "--statistic-collection",
        default="statistic",
        help="Collection that stores monitor snapshots",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("drop", help="Drop the queue and statistics collections")

    gc_parser = subparsers.add_parser("gc", help="Recycle stale items until the crawl is done")
    gc_parser.add_argument(
        "--interval",
        type=int,
        default=STANDALONE_STALE_INTERVAL_MS,
        help="Staleness window and pause between runs, in milliseconds",
    )
    gc_parser.add_argument(
        "--max-idle-ticks",
        type=int,
        default=15,
        help="Stop after this many runs with every item fetched",
    )

    monitor_parser = subparsers.add_parser(
        "monitor", help="Record queue statistics until the crawl is done"
    )
    monitor_parser.add_argument(
        "--interval",
        type=int,
        default=1000 * 60,
        help="Pause between snapshots, in milliseconds",
    )
    monitor_parser.add_argument(
        "--max-idle-ticks",
        type=int,
        default=15,
        help="Stop after this many snapshots with every item fetched",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> QueueConfig:
    """Merge command line options over the environment settings."""
    monitor_settings = {"statistic_collection_name": args.statistic_collection}
    if args.command == "monitor":
        monitor_settings["interval_ms"] = args.interval
    monitor = MonitorConfig(**monitor_settings)
    config = QueueConfig.from_env(collection_name=args.collection, monitor=monitor)
    updates = {}
    if args.url:
        updates["url"] = args.url
    if args.db:
        updates["db_name"] = args.db
    return config.model_copy(update=updates)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the maintenance tools."""
    logging.basicConfig(level=logging.INFO)

    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    if args.command == "drop":
        asyncio.run(drop_queue(config))
    elif args.command == "gc":
        asyncio.run(
            run_gc(config, max_idle_ticks=args.max_idle_ticks, stale_interval_ms=args.interval)
        )
        logger.info("Garbage collector finished")
    elif args.command == "monitor":
        asyncio.run(run_monitor(config, max_idle_ticks=args.max_idle_ticks))
        logger.info("Monitor finished")


if __name__ == "__main__":
    main()
