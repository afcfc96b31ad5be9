"""Per-feed fetch, novelty check and broadcast."""

from .broadcast import BroadcastCoordinator
from .cancellation import CancellationToken
from .errors import FeedFetchError, OperationCancelled
from .feeds import FeedProcessor
from .logging_config import create_execution_logger
from .metrics import MetricsRecorder
from .models import FeedItem
from .store import WatermarkStore

# Generous per-feed budget so rate-limit waits can complete.
FEED_TIMEOUT = 300.0


def select_new_items(items: list[FeedItem], watermark) -> list[FeedItem]:
    """Return items published strictly after ``watermark``, oldest first.

    Items without an effective publish time are dropped.
    """
    fresh = [
        item
        for item in items
        if item.published is not None and item.published > watermark
    ]
    return sorted(fresh, key=lambda item: item.published)


class FeedCycleRunner:
    """Runs one poll of one feed."""

    def __init__(
        self,
        fetcher: FeedProcessor,
        store: WatermarkStore,
        coordinator: BroadcastCoordinator,
        metrics: MetricsRecorder,
        feed_timeout: float = FEED_TIMEOUT,
        execution_id: str | None = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.coordinator = coordinator
        self.metrics = metrics
        self.feed_timeout = feed_timeout
        self.logger = create_execution_logger("feed_cycle", execution_id)

    def run(
        self,
        feed_url: str,
        token: CancellationToken,
        execution_id: str | None = None,
    ) -> None:
        """Fetch a feed and forward every item newer than its watermark.

        The watermark is advanced after each item regardless of how its
        deliveries went, so one failing destination cannot cause repeated
        re-sends of the same item to the others on later cycles.
        """
        logger = self.logger.bind(execution_id) if execution_id else self.logger
        token = token.child(timeout=self.feed_timeout)
        logger.info("Checking feed", feed_url=feed_url)

        try:
            feed = self.fetcher.fetch(feed_url, token, execution_id)
        except (FeedFetchError, OperationCancelled) as e:
            logger.error(
                f"Failed to fetch feed: {e}", feed_url=feed_url, error=str(e)
            )
            self.metrics.record_fetch(feed_url, "error")
            return
        self.metrics.record_fetch(feed_url, "success")

        watermark = self.store.get(feed_url)
        new_items = select_new_items(feed.items, watermark)

        if not new_items:
            logger.debug("No new items", feed_url=feed_url)
            return

        logger.info(
            f"Found {len(new_items)} new items",
            feed_url=feed_url,
            count=len(new_items),
        )

        for item in new_items:
            if token.cancelled:
                logger.warning(
                    "Feed cycle cancelled, remaining items left for next cycle",
                    feed_url=feed_url,
                    item_title=item.title,
                )
                return

            outcome = self.coordinator.broadcast(feed.title, item, token, execution_id)
            if not outcome.all_ok:
                logger.warning(
                    "Item delivered partially",
                    feed_url=feed_url,
                    item_title=item.title,
                    failed=outcome.failed,
                )

            self.metrics.record_new_item(feed_url)
            self.store.set(feed_url, item.published)
            logger.info(
                "Processed new item",
                feed_url=feed_url,
                item_title=item.title,
                published_at=item.published.isoformat(),
            )
