"""Interval scheduler that polls all feeds concurrently."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed

from .cancellation import CancellationToken
from .logging_config import create_execution_logger, new_execution_id
from .metrics import MetricsRecorder
from .pipeline import FeedCycleRunner


class Scheduler:
    """Runs a cycle over every feed now and then once per interval."""

    def __init__(self, runner: FeedCycleRunner, metrics: MetricsRecorder):
        self.runner = runner
        self.metrics = metrics
        self.logger = create_execution_logger("scheduler")

    def run(self, feeds: list[str], interval: float, token: CancellationToken) -> None:
        """Block, polling ``feeds`` every ``interval`` seconds until cancelled.

        Intervals are measured start to start. A cycle that overruns is
        followed immediately by the next one; cycles never overlap.
        """
        next_start = time.monotonic()
        while not token.cancelled:
            self.run_cycle(feeds, token)

            next_start += interval
            delay = next_start - time.monotonic()
            if delay < 0:
                self.logger.warning(
                    "Cycle overran poll interval", overrun_seconds=-delay
                )
                next_start = time.monotonic()
                delay = 0
            if token.wait(delay):
                break

        self.logger.info("Scheduler stopped")

    def run_cycle(self, feeds: list[str], token: CancellationToken) -> None:
        """Run one runner per feed in parallel and wait for all of them."""
        cycle_id = new_execution_id("cycle")
        logger = self.logger.bind(cycle_id)
        logger.log_execution_start(feed_count=len(feeds))

        failures = 0
        with ThreadPoolExecutor(
            max_workers=max(1, len(feeds)), thread_name_prefix="feed"
        ) as executor:
            futures = {
                executor.submit(self.runner.run, feed_url, token, cycle_id): feed_url
                for feed_url in feeds
            }
            for future in as_completed(futures):
                feed_url = futures[future]
                try:
                    future.result()
                except Exception:
                    failures += 1
                    logger.exception(
                        "Unexpected error while processing feed", feed_url=feed_url
                    )

        self.metrics.flush()
        logger.log_execution_end(success=failures == 0, failed_feeds=failures)
