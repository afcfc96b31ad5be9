"""Fan-out of one item to every configured destination."""

from .cancellation import CancellationToken
from .errors import RelayError, SpacingWaitCancelled
from .logging_config import create_execution_logger
from .metrics import MetricsRecorder
from .models import BroadcastOutcome, DeliveryResult, Destination, FeedItem
from .notifier import NotificationSender, build_notification


class BroadcastCoordinator:
    """Delivers an item to each destination in turn, best effort."""

    def __init__(
        self,
        destinations: list[Destination],
        sender: NotificationSender,
        metrics: MetricsRecorder,
        execution_id: str | None = None,
    ):
        self.destinations = tuple(destinations)
        self.sender = sender
        self.metrics = metrics
        self.logger = create_execution_logger("broadcast", execution_id)

    def broadcast(
        self,
        feed_title: str,
        item: FeedItem,
        token: CancellationToken,
        execution_id: str | None = None,
    ) -> BroadcastOutcome:
        """Send ``item`` to every destination.

        A failure on one destination is logged and recorded, and the
        remaining destinations are still attempted. A post that went through
        counts as delivered even if its spacing wait was cut short.
        """
        logger = self.logger.bind(execution_id) if execution_id else self.logger
        outcome = BroadcastOutcome(item_title=item.title)

        for destination in self.destinations:
            notification = build_notification(destination, feed_title, item)
            try:
                self.sender.send(destination, notification, token, execution_id)
            except SpacingWaitCancelled:
                logger.warning(
                    "Post spacing wait cancelled",
                    destination=destination.name,
                    item_title=item.title,
                )
            except RelayError as e:
                outcome.results.append(
                    DeliveryResult(destination=destination.name, ok=False, reason=str(e))
                )
                self.metrics.record_delivery(destination.name, "error")
                logger.error(
                    f"Failed to post to {destination.name}: {e}",
                    destination=destination.name,
                    item_title=item.title,
                    error=str(e),
                )
                continue

            outcome.results.append(DeliveryResult(destination=destination.name, ok=True))
            self.metrics.record_delivery(destination.name, "success")
            logger.log_delivery(destination.name, item.title, success=True)

        return outcome
