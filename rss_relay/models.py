"""Data models for RSS relay."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ProviderKind(str, Enum):
    """Payload flavour expected by a destination."""

    GENERIC = "generic"
    DISCORD = "discord"
    MISSKEY = "misskey"


@dataclass
class FeedItem:
    """Represents a single RSS/Atom feed item.

    ``published`` is the effective publish time: the entry's publish date,
    or its update date when no publish date exists. Entries with neither
    carry ``None`` and never take part in novelty checks.
    """

    title: str
    link: str
    published: datetime | None


@dataclass
class FeedContent:
    """Result of fetching one feed."""

    url: str
    title: str
    items: list[FeedItem] = field(default_factory=list)


@dataclass(frozen=True)
class Destination:
    """A configured outbound notification endpoint."""

    name: str
    url: str
    provider: ProviderKind = ProviderKind.GENERIC
    post_interval: float = 0.0  # seconds to wait after a successful post
    api_token: str | None = None


@dataclass
class Notification:
    """Provider-shaped message for one (item, destination) pair."""

    url: str
    payload: dict[str, Any]


@dataclass
class DeliveryResult:
    """Outcome of delivering one item to one destination."""

    destination: str
    ok: bool
    reason: str | None = None


@dataclass
class BroadcastOutcome:
    """Per-destination results for one broadcast item."""

    item_title: str
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [r.destination for r in self.results if r.ok]

    @property
    def failed(self) -> dict[str, str | None]:
        return {r.destination: r.reason for r in self.results if not r.ok}

    @property
    def all_ok(self) -> bool:
        return all(r.ok for r in self.results)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as an RFC3339 UTC string (``2024-01-03T00:00:00Z``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    if value.microsecond:
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
