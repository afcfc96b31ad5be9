"""Configuration management for RSS relay."""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import Destination, ProviderKind

DEFAULT_INTERVAL_SECONDS = 600.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass
class StoreConfig:
    """Configuration for the watermark store backend."""

    type: str = "memory"  # "memory", "dynamodb" or "valkey"
    table: str = "rss-relay-watermarks"
    region: str = "us-east-1"
    address: str = "localhost:6379"
    password: str | None = None


@dataclass
class MetricsConfig:
    """Configuration for the metrics sink."""

    type: str = "none"  # "none" or "cloudwatch"
    namespace: str = "RSS-Relay"
    region: str = "us-east-1"


@dataclass
class FeedsConfig:
    """Feed list, poll interval and backend selection."""

    feeds: list[str]
    interval: float = DEFAULT_INTERVAL_SECONDS
    store: StoreConfig = field(default_factory=StoreConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style strings such as
    ``"10m"``, ``"1h30m"`` or ``"500ms"``.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Duration cannot be empty")
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"Invalid duration: {value!r}") from None
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    else:
        raise ValueError(f"Invalid duration: {value!r}")

    if seconds < 0:
        raise ValueError(f"Duration cannot be negative: {value!r}")
    return seconds


class Config:
    """Main configuration manager."""

    FEEDS_FILE = "feeds.json"
    DESTINATIONS_FILE = "destinations.json"

    def __init__(
        self, feeds_file: str | None = None, destinations_file: str | None = None
    ):
        """Initialize configuration from arguments and environment variables."""
        self.feeds_file = feeds_file or os.getenv("FEEDS_FILE", self.FEEDS_FILE)
        self.destinations_file = destinations_file or os.getenv(
            "DESTINATIONS_FILE", self.DESTINATIONS_FILE
        )
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.valkey_password = os.getenv("VALKEY_PASSWORD")

    def _read_json(self, path: str) -> dict[str, Any]:
        file_path = Path(path)
        if not file_path.exists():
            raise ValueError(f"Configuration file not found: {path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object")
        return data

    def get_feeds_config(self) -> FeedsConfig:
        """Load feed URLs, interval, store and metrics settings."""
        data = self._read_json(self.feeds_file)

        urls = []
        for entry in data.get("feeds", []):
            if isinstance(entry, str):
                url = entry
            elif isinstance(entry, dict) and isinstance(entry.get("url"), str):
                if not entry.get("enabled", True):
                    continue
                url = entry["url"]
            else:
                raise ValueError(f"Invalid feed entry: {entry!r}")
            url = url.strip()
            if url in urls:
                raise ValueError(f"Duplicate feed URL: {url}")
            urls.append(url)

        if not urls:
            raise ValueError(f"No enabled feeds found in {self.feeds_file}")

        interval = parse_duration(data.get("interval", DEFAULT_INTERVAL_SECONDS))
        if interval == 0:
            raise ValueError("Poll interval must be greater than zero")

        return FeedsConfig(
            feeds=urls,
            interval=interval,
            store=self._store_config(data.get("store") or {}),
            metrics=self._metrics_config(data.get("metrics") or {}),
        )

    def _store_config(self, data: dict[str, Any]) -> StoreConfig:
        store = StoreConfig(
            type=str(data.get("type", "memory")).lower(),
            table=data.get("table", StoreConfig.table),
            region=data.get("region", self.aws_region),
            address=data.get("address", StoreConfig.address),
            password=data.get("password"),
        )
        if self.valkey_password:
            store.password = self.valkey_password
        if store.type not in ("memory", "dynamodb", "valkey"):
            raise ValueError(f"Unknown store type: {store.type}")
        return store

    def _metrics_config(self, data: dict[str, Any]) -> MetricsConfig:
        metrics = MetricsConfig(
            type=str(data.get("type", "none")).lower(),
            namespace=data.get("namespace", MetricsConfig.namespace),
            region=data.get("region", self.aws_region),
        )
        if metrics.type not in ("none", "cloudwatch"):
            raise ValueError(f"Unknown metrics type: {metrics.type}")
        return metrics

    def get_destinations(self) -> list[Destination]:
        """Load and validate the destination list."""
        data = self._read_json(self.destinations_file)
        entries = data.get("destinations", data.get("webhooks", []))

        destinations = [self._destination(entry) for entry in entries]
        if not destinations:
            raise ValueError(f"No destinations configured in {self.destinations_file}")
        return destinations

    @staticmethod
    def _destination(entry: Any) -> Destination:
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid destination entry: {entry!r}")
        name = entry.get("name")
        url = entry.get("url")
        if not (isinstance(name, str) and name and isinstance(url, str) and url):
            raise ValueError(f"Destination requires a name and url: {entry!r}")

        provider_name = entry.get("provider") or ProviderKind.GENERIC.value
        if not isinstance(provider_name, str):
            raise ValueError(f"Invalid provider for destination {name}")
        provider_name = provider_name.lower()
        try:
            provider = ProviderKind(provider_name)
        except ValueError:
            raise ValueError(
                f"Unknown provider '{provider_name}' for destination {name}"
            ) from None

        api_token = entry.get("api_token")
        if provider is ProviderKind.MISSKEY and not api_token:
            raise ValueError(f"Destination {name} requires an api_token")

        return Destination(
            name=name,
            url=url,
            provider=provider,
            post_interval=parse_duration(entry.get("post_interval", 0)),
            api_token=api_token,
        )
