"""Notification building and delivery for RSS relay."""

import json
import threading

import requests

from .cancellation import CancellationToken
from .errors import DeliveryError, SpacingWaitCancelled
from .logging_config import create_execution_logger
from .models import Destination, FeedItem, Notification, ProviderKind, format_rfc3339

USER_AGENT = "rss-relay/1.0"
REQUEST_TIMEOUT = 10.0
MISSKEY_NOTES_PATH = "/api/notes/create"


def build_notification(
    destination: Destination, feed_title: str, item: FeedItem
) -> Notification:
    """Shape one item for a destination's provider.

    Args:
        destination: Where the message goes
        feed_title: Title of the feed the item came from
        item: The new item

    Returns:
        Target URL and JSON payload for the POST
    """
    match destination.provider:
        case ProviderKind.DISCORD:
            payload = {"content": f"**{feed_title}**\n{item.title}\n{item.link}"}
            return Notification(url=destination.url, payload=payload)
        case ProviderKind.MISSKEY:
            payload = {
                "i": destination.api_token,
                "text": f"{feed_title}\n{item.title}\n{item.link}",
                "visibility": "public",
            }
            url = destination.url.rstrip("/") + MISSKEY_NOTES_PATH
            return Notification(url=url, payload=payload)
        case _:
            payload = {
                "feed_title": feed_title,
                "item_title": item.title,
                "item_url": item.link,
                "published_at": (
                    format_rfc3339(item.published) if item.published else None
                ),
            }
            return Notification(url=destination.url, payload=payload)


class NotificationSender:
    """Posts notifications and enforces each destination's post spacing.

    Feed workers send concurrently, so unless a session is injected each
    worker thread gets its own ``requests.Session``.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        self.timeout = timeout
        self._session = session
        self._local = threading.local()
        self.logger = create_execution_logger("notification_sender", execution_id)

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def send(
        self,
        destination: Destination,
        notification: Notification,
        token: CancellationToken,
        execution_id: str | None = None,
    ) -> None:
        """
        Deliver a notification, then wait out the destination's spacing.

        Args:
            destination: The destination being posted to
            notification: Pre-built provider payload and target URL
            token: Cancellation token observed by the request and the wait
            execution_id: Cycle id for log records

        Raises:
            DeliveryError: On transport errors or a 4xx/5xx response
            OperationCancelled: If cancelled before sending
            SpacingWaitCancelled: If cancelled while waiting after a delivered post
        """
        logger = self.logger.bind(execution_id) if execution_id else self.logger
        token.raise_if_cancelled()

        body = json.dumps(notification.payload).encode("utf-8")
        try:
            response = self.session.post(
                notification.url,
                data=body,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                timeout=token.timeout_for(self.timeout),
            )
        except requests.RequestException as e:
            raise DeliveryError(destination.name, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise DeliveryError(
                destination.name,
                f"responded with status {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "Notification posted",
            destination=destination.name,
            status_code=response.status_code,
        )

        if destination.post_interval > 0:
            logger.debug(
                f"Waiting {destination.post_interval}s before next post",
                destination=destination.name,
            )
            if token.wait(destination.post_interval):
                raise SpacingWaitCancelled(destination.name)
