"""RSS relay: poll feeds and forward new items to notification endpoints."""

__version__ = "1.0.0"
