"""Observability port for the relay pipeline.

The pipeline reports fetch outcomes, new items and delivery outcomes to a
``MetricsRecorder``. ``InMemoryMetrics`` keeps counters in process and logs
them once per cycle; ``CloudWatchMetrics`` publishes them to CloudWatch instead.
"""

import threading
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any

import boto3

from .logging_config import create_execution_logger

# CloudWatch limit is 20 metrics per put_metric_data call
CLOUDWATCH_BATCH_SIZE = 20


class MetricsRecorder(ABC):
    """Sink for pipeline observability events."""

    @abstractmethod
    def record_fetch(self, feed_url: str, status: str) -> None:
        """Count one fetch attempt; status is "success" or "error"."""

    @abstractmethod
    def record_new_item(self, feed_url: str) -> None:
        """Count one new item processed for a feed."""

    @abstractmethod
    def record_delivery(self, destination: str, status: str) -> None:
        """Count one delivery attempt; status is "success" or "error"."""

    def flush(self) -> None:
        """Publish accumulated counters, if the sink publishes anywhere."""


class InMemoryMetrics(MetricsRecorder):
    """Thread-safe in-process counters, logged and reset on every flush."""

    def __init__(self, execution_id: str | None = None):
        self._lock = threading.Lock()
        self.logger = create_execution_logger("metrics", execution_id)
        self.fetches: Counter[tuple[str, str]] = Counter()
        self.new_items: Counter[str] = Counter()
        self.deliveries: Counter[tuple[str, str]] = Counter()

    def record_fetch(self, feed_url: str, status: str) -> None:
        with self._lock:
            self.fetches[(feed_url, status)] += 1

    def record_new_item(self, feed_url: str) -> None:
        with self._lock:
            self.new_items[feed_url] += 1

    def record_delivery(self, destination: str, status: str) -> None:
        with self._lock:
            self.deliveries[(destination, status)] += 1

    @staticmethod
    def _as_fields(counters: dict[str, Counter]) -> dict[str, Any]:
        return {
            "fetches": {f"{f}|{s}": n for (f, s), n in counters["fetches"].items()},
            "new_items": dict(counters["new_items"]),
            "deliveries": {
                f"{d}|{s}": n for (d, s), n in counters["deliveries"].items()
            },
        }

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly copy of all counters."""
        with self._lock:
            return self._as_fields(
                {
                    "fetches": self.fetches,
                    "new_items": self.new_items,
                    "deliveries": self.deliveries,
                }
            )

    def drain(self) -> dict[str, Counter]:
        """Return the counters and reset them."""
        with self._lock:
            drained = {
                "fetches": self.fetches,
                "new_items": self.new_items,
                "deliveries": self.deliveries,
            }
            self.fetches = Counter()
            self.new_items = Counter()
            self.deliveries = Counter()
        return drained

    def flush(self) -> None:
        counters = self.drain()
        if not any(counters.values()):
            return
        self.logger.log_metrics(self._as_fields(counters))


class CloudWatchMetrics(InMemoryMetrics):
    """Counters published to CloudWatch on every flush."""

    def __init__(
        self,
        namespace: str = "RSS-Relay",
        aws_region: str = "us-east-1",
        execution_id: str | None = None,
    ):
        super().__init__()
        self.namespace = namespace
        self.aws_region = aws_region
        self.logger = create_execution_logger("cloudwatch_metrics", execution_id)
        self.cloudwatch = boto3.client("cloudwatch", region_name=aws_region)

    def build_metric_data(self, counters: dict[str, Counter]) -> list[dict[str, Any]]:
        """Convert drained counters into CloudWatch metric data."""
        metric_data = []
        for (feed_url, status), count in counters["fetches"].items():
            metric_data.append(
                {
                    "MetricName": "FeedFetches",
                    "Value": count,
                    "Unit": "Count",
                    "Dimensions": [
                        {"Name": "Feed", "Value": feed_url},
                        {"Name": "Status", "Value": status},
                    ],
                }
            )
        for feed_url, count in counters["new_items"].items():
            metric_data.append(
                {
                    "MetricName": "NewItems",
                    "Value": count,
                    "Unit": "Count",
                    "Dimensions": [{"Name": "Feed", "Value": feed_url}],
                }
            )
        for (destination, status), count in counters["deliveries"].items():
            metric_data.append(
                {
                    "MetricName": "Deliveries",
                    "Value": count,
                    "Unit": "Count",
                    "Dimensions": [
                        {"Name": "Destination", "Value": destination},
                        {"Name": "Status", "Value": status},
                    ],
                }
            )
        return metric_data

    def flush(self) -> None:
        counters = self.drain()
        metric_data = self.build_metric_data(counters)
        if not metric_data:
            return

        try:
            for i in range(0, len(metric_data), CLOUDWATCH_BATCH_SIZE):
                batch = metric_data[i : i + CLOUDWATCH_BATCH_SIZE]
                self.cloudwatch.put_metric_data(
                    Namespace=self.namespace, MetricData=batch
                )
                self.logger.debug(f"Sent batch of {len(batch)} metrics to CloudWatch")

            self.logger.info(
                "Successfully sent metrics to CloudWatch",
                metrics_sent=len(metric_data),
                namespace=self.namespace,
            )
        except Exception as e:
            # Metrics failure must not break the polling loop
            self.logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
