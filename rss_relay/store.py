"""Watermark storage for RSS relay.

Each feed has one watermark: the effective publish time of the newest item
already forwarded. Reads never fail the caller. A missing, unreadable or
unparsable value counts as the epoch, so the worst case is re-delivery
rather than silently skipping items. Writes are best effort and only log
on failure.
"""

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime

import boto3
import redis
from botocore.exceptions import BotoCoreError, ClientError
from dateutil import parser as date_parser

from .config import StoreConfig
from .errors import StoreConnectionError
from .logging_config import create_execution_logger
from .models import format_rfc3339

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
KEY_PREFIX = "feed:"


def watermark_key(feed_url: str) -> str:
    """Key under which a feed's watermark is persisted."""
    return KEY_PREFIX + feed_url


def parse_watermark(value: object) -> datetime:
    """Parse a stored RFC3339 value, falling back to the epoch.

    Anything that is not text (a missing value, a number written by another
    tool) is treated as unset.
    """
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return EPOCH
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class WatermarkStore(ABC):
    """Per-feed watermark storage."""

    @abstractmethod
    def get(self, feed_url: str) -> datetime:
        """Return the feed's watermark, or EPOCH if none is known."""

    @abstractmethod
    def set(self, feed_url: str, published: datetime) -> None:
        """Record a new watermark for the feed."""


class MemoryWatermarkStore(WatermarkStore):
    """Process-local watermarks, lost on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: dict[str, datetime] = {}

    def get(self, feed_url: str) -> datetime:
        with self._lock:
            return self._data.get(feed_url, EPOCH)

    def set(self, feed_url: str, published: datetime) -> None:
        with self._lock:
            self._data[feed_url] = published


class DynamoDBWatermarkStore(WatermarkStore):
    """Watermarks kept in a DynamoDB table keyed by ``feed_key``."""

    def __init__(
        self,
        table_name: str,
        aws_region: str = "us-east-1",
        execution_id: str | None = None,
    ):
        """Initialize the store with DynamoDB configuration.

        Args:
            table_name: Name of the DynamoDB table holding watermarks
            aws_region: AWS region for DynamoDB client
            execution_id: Execution ID for logging context
        """
        self.table_name = table_name
        self.aws_region = aws_region
        self.logger = create_execution_logger("watermark_store", execution_id)
        self.dynamodb = boto3.resource("dynamodb", region_name=aws_region)
        self.table = self.dynamodb.Table(table_name)

        self.logger.info(
            "DynamoDB watermark store initialized",
            table_name=table_name,
            aws_region=aws_region,
        )

    def get(self, feed_url: str) -> datetime:
        try:
            response = self.table.get_item(Key={"feed_key": watermark_key(feed_url)})
        except (ClientError, BotoCoreError) as e:
            self.logger.warning(
                f"Error reading watermark, treating feed as unseen: {e}",
                feed_url=feed_url,
                error=str(e),
            )
            return EPOCH

        item = response.get("Item")
        if not item:
            return EPOCH
        return parse_watermark(item.get("last_published_at"))

    def set(self, feed_url: str, published: datetime) -> None:
        try:
            self.table.put_item(
                Item={
                    "feed_key": watermark_key(feed_url),
                    "feed_url": feed_url,
                    "last_published_at": format_rfc3339(published),
                    "updated_at": datetime.now(UTC).isoformat(),
                }
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Error storing watermark, items may be re-delivered: {e}",
                feed_url=feed_url,
                error=str(e),
            )


class ValkeyWatermarkStore(WatermarkStore):
    """Watermarks kept as plain string keys in Valkey (or Redis)."""

    OPERATION_TIMEOUT = 2.0

    def __init__(
        self,
        address: str,
        password: str | None = None,
        client: redis.Redis | None = None,
        execution_id: str | None = None,
    ):
        self.logger = create_execution_logger("watermark_store", execution_id)
        if client is None:
            host, _, port = address.rpartition(":")
            client = redis.Redis(
                host=host or address,
                port=int(port) if host and port else 6379,
                password=password,
                db=0,
                socket_timeout=self.OPERATION_TIMEOUT,
                socket_connect_timeout=5.0,
            )
        self.client = client

        try:
            self.client.ping()
        except redis.RedisError as e:
            raise StoreConnectionError(f"Failed to connect to valkey: {e}") from e

        self.logger.info("Valkey watermark store initialized", address=address)

    def get(self, feed_url: str) -> datetime:
        try:
            value = self.client.get(watermark_key(feed_url))
        except redis.RedisError as e:
            self.logger.warning(
                f"Error reading watermark, treating feed as unseen: {e}",
                feed_url=feed_url,
                error=str(e),
            )
            return EPOCH
        return parse_watermark(value)

    def set(self, feed_url: str, published: datetime) -> None:
        try:
            self.client.set(watermark_key(feed_url), format_rfc3339(published))
        except redis.RedisError as e:
            self.logger.error(
                f"Error storing watermark, items may be re-delivered: {e}",
                feed_url=feed_url,
                error=str(e),
            )


def create_store(config: StoreConfig) -> WatermarkStore:
    """Build the watermark store selected by configuration."""
    if config.type == "memory":
        return MemoryWatermarkStore()
    if config.type == "dynamodb":
        return DynamoDBWatermarkStore(config.table, config.region)
    if config.type == "valkey":
        return ValkeyWatermarkStore(config.address, config.password)
    raise ValueError(f"Unknown store type: {config.type}")
