"""Unit tests for the scheduler."""

import threading
import time
from unittest.mock import Mock

from rss_relay.cancellation import CancellationToken
from rss_relay.metrics import InMemoryMetrics
from rss_relay.pipeline import FeedCycleRunner
from rss_relay.scheduler import Scheduler

FEEDS = [
    "https://a.example.com/feed",
    "https://b.example.com/feed",
    "https://c.example.com/feed",
]


class TestSchedulerUnit:
    """Unit tests for Scheduler."""

    def setup_method(self):
        self.runner = Mock(spec=FeedCycleRunner)
        self.metrics = Mock(spec=InMemoryMetrics)
        self.scheduler = Scheduler(self.runner, self.metrics)

    def test_run_cycle_runs_every_feed_and_flushes(self):
        self.scheduler.run_cycle(FEEDS, CancellationToken())

        called = sorted(c.args[0] for c in self.runner.run.call_args_list)
        assert called == sorted(FEEDS)
        self.metrics.flush.assert_called_once()

    def test_feeds_run_concurrently(self):
        barrier = threading.Barrier(len(FEEDS), timeout=5)

        def wait_for_all(feed_url, token, execution_id):
            # Only passes if every feed is in flight at the same time
            barrier.wait()

        self.runner.run.side_effect = wait_for_all

        self.scheduler.run_cycle(FEEDS, CancellationToken())

        assert self.runner.run.call_count == len(FEEDS)
        assert not barrier.broken

    def test_worker_exception_does_not_abort_cycle(self):
        def explode_on_b(feed_url, token, execution_id):
            if "b.example.com" in feed_url:
                raise RuntimeError("unexpected")

        self.runner.run.side_effect = explode_on_b

        self.scheduler.run_cycle(FEEDS, CancellationToken())

        assert self.runner.run.call_count == len(FEEDS)
        self.metrics.flush.assert_called_once()

    def test_cycle_waits_for_slow_feed(self):
        finished = []

        def slow_on_a(feed_url, token, execution_id):
            if "a.example.com" in feed_url:
                time.sleep(0.1)
            finished.append(feed_url)

        self.runner.run.side_effect = slow_on_a

        self.scheduler.run_cycle(FEEDS, CancellationToken())

        assert sorted(finished) == sorted(FEEDS)

    def test_run_executes_first_cycle_immediately_and_stops_on_cancel(self):
        token = CancellationToken()
        cycles = []

        def record(feed_url, token_, execution_id):
            cycles.append(execution_id)

        self.runner.run.side_effect = record

        thread = threading.Thread(
            target=self.scheduler.run, args=(FEEDS[:1], 3600, token)
        )
        thread.start()
        deadline = time.monotonic() + 5
        while not cycles and time.monotonic() < deadline:
            time.sleep(0.01)
        token.cancel()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert len(cycles) == 1

    def test_run_repeats_on_interval(self):
        token = CancellationToken()
        calls = []

        def record(feed_url, token_, execution_id):
            calls.append(time.monotonic())
            if len(calls) == 3:
                token.cancel()

        self.runner.run.side_effect = record

        self.scheduler.run(FEEDS[:1], 0.05, token)

        assert len(calls) == 3
        assert calls[2] - calls[0] >= 0.09

    def test_cycles_never_overlap(self):
        token = CancellationToken()
        active = []
        overlaps = []

        def slow(feed_url, token_, execution_id):
            active.append(feed_url)
            if len(active) > 1:
                overlaps.append(list(active))
            time.sleep(0.05)
            active.remove(feed_url)
            if self.runner.run.call_count >= 3:
                token.cancel()

        self.runner.run.side_effect = slow

        # Interval shorter than a cycle: each overrun is followed, not overlapped
        self.scheduler.run(FEEDS[:1], 0.01, token)

        assert overlaps == []
        assert self.runner.run.call_count == 3

    def test_run_with_already_cancelled_token_does_nothing(self):
        token = CancellationToken()
        token.cancel()

        self.scheduler.run(FEEDS, 1, token)

        self.runner.run.assert_not_called()
