"""Feed retrieval and normalization for RSS relay."""

import threading
from datetime import UTC, datetime

import feedparser
import requests
from bs4 import BeautifulSoup

from .cancellation import CancellationToken
from .errors import FeedFetchError, OperationCancelled
from .logging_config import create_execution_logger
from .models import FeedContent, FeedItem

USER_AGENT = "rss-relay/1.0 (+feed to webhook relay)"


class FeedProcessor:
    """Downloads RSS/Atom feeds and normalizes their entries.

    Feeds are fetched from concurrent worker threads; each thread uses its
    own ``requests.Session`` unless one is injected.
    """

    def __init__(
        self,
        timeout: float = 30,
        session: requests.Session | None = None,
        execution_id: str | None = None,
    ):
        """Initialize FeedProcessor with configuration.

        Args:
            timeout: HTTP request timeout in seconds
            session: Optional pre-built HTTP session
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.logger = create_execution_logger("feed_processor", execution_id)
        self._session = session
        self._local = threading.local()
        if session is not None:
            session.headers.update({"User-Agent": USER_AGENT})

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
        return session

    def fetch(
        self,
        feed_url: str,
        token: CancellationToken,
        execution_id: str | None = None,
    ) -> FeedContent:
        """Download and parse a single feed.

        Args:
            feed_url: URL of the RSS/Atom feed
            token: Cancellation token bounding the download
            execution_id: Cycle id for log records

        Returns:
            The feed title and its normalized entries

        Raises:
            FeedFetchError: If the download fails or the body is not a feed
            OperationCancelled: If the token is cancelled before the request
        """
        logger = self.logger.bind(execution_id) if execution_id else self.logger
        token.raise_if_cancelled()

        try:
            response = self.session.get(feed_url, timeout=token.timeout_for(self.timeout))
            response.raise_for_status()
        except requests.RequestException as e:
            raise FeedFetchError(feed_url, str(e)) from e

        if token.cancelled:
            raise OperationCancelled(f"fetch of {feed_url} cancelled")

        parsed = feedparser.parse(response.content)

        if parsed.bozo and not parsed.entries:
            reason = str(getattr(parsed, "bozo_exception", "unparsable feed"))
            raise FeedFetchError(feed_url, reason)
        if parsed.bozo:
            logger.warning(
                f"Feed parsing warning for {feed_url}: {parsed.bozo_exception}",
                feed_url=feed_url,
                bozo_exception=str(parsed.bozo_exception),
            )

        title = self.clean_text(parsed.feed.get("title", "")) or feed_url
        items = [self.normalize_item(entry) for entry in parsed.entries]

        logger.debug(
            "Parsed feed",
            feed_url=feed_url,
            items_count=len(items),
        )
        return FeedContent(url=feed_url, title=title, items=items)

    def normalize_item(self, entry: dict) -> FeedItem:
        """Normalize a raw feedparser entry into a FeedItem.

        The publish time falls back to the update time; entries with
        neither get ``published=None``.
        """
        parsed_time = entry.get("published_parsed") or entry.get("updated_parsed")
        published = None
        if parsed_time:
            # feedparser normalizes dates to UTC struct_time
            published = datetime(*parsed_time[:6], tzinfo=UTC)

        return FeedItem(
            title=self.clean_text(entry.get("title", "")) or "No Title",
            link=entry.get("link", ""),
            published=published,
        )

    def clean_text(self, content: str) -> str:
        """Remove HTML tags from text and normalize whitespace."""
        if not content:
            return ""

        if "<" in content and ">" in content:
            soup = BeautifulSoup(content, "html.parser")
            for script in soup(["script", "style"]):
                script.decompose()
            content = soup.get_text(separator=" ")

        return " ".join(content.split())
