"""Command-line entrypoint for RSS relay."""

import argparse
import signal
import sys

from .broadcast import BroadcastCoordinator
from .cancellation import CancellationToken
from .config import Config
from .errors import StoreConnectionError
from .feeds import FeedProcessor
from .logging_config import create_execution_logger, setup_structured_logging
from .metrics import CloudWatchMetrics, InMemoryMetrics, MetricsRecorder
from .notifier import NotificationSender
from .pipeline import FeedCycleRunner
from .scheduler import Scheduler
from .store import create_store


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Poll RSS/Atom feeds and forward new items to webhooks."
    )
    parser.add_argument(
        "--feeds",
        default=None,
        help="Path to the feeds configuration file (default: $FEEDS_FILE or feeds.json).",
    )
    parser.add_argument(
        "--destinations",
        default=None,
        help="Path to the destinations file (default: $DESTINATIONS_FILE or destinations.json).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $LOG_LEVEL or INFO).",
    )
    return parser.parse_args(argv)


def build_metrics(config) -> MetricsRecorder:
    if config.type == "cloudwatch":
        return CloudWatchMetrics(config.namespace, config.region)
    return InMemoryMetrics()


def install_signal_handlers(token: CancellationToken, logger) -> None:
    def _shutdown(signum, frame):
        logger.info("Shutting down...", signal=signal.Signals(signum).name)
        token.cancel()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    config = Config(feeds_file=args.feeds, destinations_file=args.destinations)
    setup_structured_logging(args.log_level or config.log_level)
    logger = create_execution_logger("main")

    try:
        feeds_config = config.get_feeds_config()
        destinations = config.get_destinations()
    except ValueError as e:
        logger.error(f"Failed to load config: {e}", error=str(e))
        return 1

    try:
        store = create_store(feeds_config.store)
    except StoreConnectionError as e:
        logger.error(f"Failed to initialize store: {e}", error=str(e))
        return 1
    logger.info("Using watermark store", store_type=feeds_config.store.type)

    metrics = build_metrics(feeds_config.metrics)
    coordinator = BroadcastCoordinator(destinations, NotificationSender(), metrics)
    runner = FeedCycleRunner(FeedProcessor(), store, coordinator, metrics)
    scheduler = Scheduler(runner, metrics)

    token = CancellationToken()
    install_signal_handlers(token, logger)

    logger.info(
        "Starting RSS relay",
        interval=feeds_config.interval,
        feeds=len(feeds_config.feeds),
        destinations=len(destinations),
    )
    scheduler.run(feeds_config.feeds, feeds_config.interval, token)
    logger.info("Relay stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
