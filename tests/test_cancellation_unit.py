"""Unit tests for cancellation tokens."""

import threading
import time

import pytest

from rss_relay.cancellation import CancellationToken
from rss_relay.errors import OperationCancelled


class TestCancellationTokenUnit:
    def test_fresh_token_is_not_cancelled(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.remaining() is None
        token.raise_if_cancelled()

    def test_cancel_propagates_to_children(self):
        parent = CancellationToken()
        child = parent.child()
        grandchild = child.child(timeout=60)

        parent.cancel()

        assert child.cancelled
        assert grandchild.cancelled

    def test_child_of_cancelled_parent_starts_cancelled(self):
        parent = CancellationToken()
        parent.cancel()

        assert parent.child().cancelled

    def test_cancelling_child_leaves_parent_alone(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel()

        assert child.cancelled
        assert not parent.cancelled

    def test_deadline_expires(self):
        token = CancellationToken(timeout=0.02)
        time.sleep(0.05)

        assert token.cancelled
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_child_inherits_parent_deadline(self):
        parent = CancellationToken(timeout=1)
        child = parent.child(timeout=60)

        assert child.remaining() <= 1

    def test_wait_full_duration_returns_false(self):
        token = CancellationToken()
        started = time.monotonic()

        assert token.wait(0.03) is False
        assert time.monotonic() - started >= 0.025

    def test_wait_interrupted_by_cancel(self):
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()
        started = time.monotonic()

        assert token.wait(30) is True
        assert time.monotonic() - started < 5

    def test_wait_interrupted_by_parent_cancel(self):
        parent = CancellationToken()
        child = parent.child()
        threading.Timer(0.05, parent.cancel).start()

        assert child.wait(30) is True

    def test_wait_stops_at_deadline(self):
        token = CancellationToken(timeout=0.05)
        started = time.monotonic()

        assert token.wait(30) is True
        assert time.monotonic() - started < 5

    def test_timeout_for_is_clamped(self):
        assert CancellationToken().timeout_for(10) == 10
        assert CancellationToken(timeout=2).timeout_for(10) <= 2
        assert CancellationToken(timeout=60).timeout_for(10) == 10
