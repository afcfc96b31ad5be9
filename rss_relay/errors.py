"""Exception types for RSS relay."""


class RelayError(Exception):
    """Base class for all relay errors."""


class FeedFetchError(RelayError):
    """Raised when a feed cannot be downloaded or parsed."""

    def __init__(self, feed_url: str, reason: str):
        super().__init__(f"Failed to fetch feed {feed_url}: {reason}")
        self.feed_url = feed_url
        self.reason = reason


class DeliveryError(RelayError):
    """Raised when a notification could not be delivered to a destination."""

    def __init__(self, destination: str, reason: str, status_code: int | None = None):
        super().__init__(f"Delivery to {destination} failed: {reason}")
        self.destination = destination
        self.reason = reason
        self.status_code = status_code


class OperationCancelled(RelayError):
    """Raised when a wait or request is abandoned because of cancellation."""


class StoreConnectionError(RelayError):
    """Raised at startup when a persistent watermark backend is unreachable."""


class SpacingWaitCancelled(OperationCancelled):
    """Raised when cancellation interrupts the wait after a successful post.

    The notification itself was delivered.
    """

    def __init__(self, destination: str):
        super().__init__(f"post spacing wait for {destination} cancelled")
        self.destination = destination
