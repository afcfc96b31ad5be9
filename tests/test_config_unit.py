"""Unit tests for configuration management."""

import json
import os
from unittest.mock import patch

import pytest

from rss_relay.config import Config, parse_duration
from rss_relay.models import ProviderKind


def write_json(path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestParseDuration:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (30, 30.0),
            (1.5, 1.5),
            ("45", 45.0),
            ("10s", 10.0),
            ("10m", 600.0),
            ("1h30m", 5400.0),
            ("500ms", 0.5),
            ("1.5h", 5400.0),
            ("0s", 0.0),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "ten minutes", "10x", "-5", -1, None, True])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestConfigUnit:
    """Unit tests for Config class."""

    def test_feeds_config_with_defaults(self, tmp_path):
        feeds = write_json(tmp_path / "feeds.json", {"feeds": ["https://a.example.com/rss"]})

        with patch.dict(os.environ, {}, clear=True):
            config = Config(feeds_file=feeds).get_feeds_config()

        assert config.feeds == ["https://a.example.com/rss"]
        assert config.interval == 600.0
        assert config.store.type == "memory"
        assert config.metrics.type == "none"

    def test_feeds_config_full(self, tmp_path):
        feeds = write_json(
            tmp_path / "feeds.json",
            {
                "interval": "5m",
                "feeds": [
                    "https://a.example.com/rss",
                    {"url": "https://b.example.com/atom", "enabled": True},
                    {"url": "https://c.example.com/rss", "enabled": False},
                ],
                "store": {"type": "valkey", "address": "valkey:6379", "password": "pw"},
                "metrics": {"type": "cloudwatch", "namespace": "Relay"},
            },
        )

        with patch.dict(os.environ, {}, clear=True):
            config = Config(feeds_file=feeds).get_feeds_config()

        assert config.feeds == ["https://a.example.com/rss", "https://b.example.com/atom"]
        assert config.interval == 300.0
        assert config.store.type == "valkey"
        assert config.store.address == "valkey:6379"
        assert config.store.password == "pw"
        assert config.metrics.namespace == "Relay"

    def test_env_overrides_password_and_paths(self, tmp_path):
        feeds = write_json(
            tmp_path / "custom-feeds.json",
            {"feeds": ["https://a.example.com/rss"], "store": {"type": "valkey"}},
        )
        env = {"FEEDS_FILE": feeds, "VALKEY_PASSWORD": "from-env"}

        with patch.dict(os.environ, env, clear=True):
            config = Config().get_feeds_config()

        assert config.store.password == "from-env"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            Config(feeds_file=str(tmp_path / "nope.json")).get_feeds_config()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            Config(feeds_file=str(path)).get_feeds_config()

    @pytest.mark.parametrize(
        "data",
        [
            {"feeds": []},
            {"feeds": [{"url": "https://a.example.com", "enabled": False}]},
            {"feeds": ["https://a.example.com", "https://a.example.com"]},
            {"feeds": ["https://a.example.com"], "interval": 0},
            {"feeds": ["https://a.example.com"], "store": {"type": "sqlite"}},
            {"feeds": ["https://a.example.com"], "metrics": {"type": "statsd"}},
            {"feeds": [42]},
            {"feeds": [{"url": 42}]},
            {"feeds": [{"url": ["https://a.example.com"]}]},
        ],
    )
    def test_invalid_feeds_config(self, tmp_path, data):
        feeds = write_json(tmp_path / "feeds.json", data)

        with pytest.raises(ValueError):
            Config(feeds_file=feeds).get_feeds_config()

    def test_destinations(self, tmp_path):
        path = write_json(
            tmp_path / "destinations.json",
            {
                "destinations": [
                    {"name": "plain", "url": "https://hooks.example.com"},
                    {
                        "name": "chat",
                        "url": "https://discord.com/api/webhooks/1/x",
                        "provider": "discord",
                        "post_interval": "2s",
                    },
                    {
                        "name": "notes",
                        "url": "https://misskey.example.com",
                        "provider": "misskey",
                        "api_token": "tok",
                    },
                ]
            },
        )

        destinations = Config(destinations_file=path).get_destinations()

        assert [d.provider for d in destinations] == [
            ProviderKind.GENERIC,
            ProviderKind.DISCORD,
            ProviderKind.MISSKEY,
        ]
        assert destinations[0].post_interval == 0.0
        assert destinations[1].post_interval == 2.0
        assert destinations[2].api_token == "tok"

    def test_webhooks_key_is_accepted(self, tmp_path):
        path = write_json(
            tmp_path / "webhooks.json",
            {"webhooks": [{"name": "plain", "url": "https://hooks.example.com"}]},
        )

        assert len(Config(destinations_file=path).get_destinations()) == 1

    @pytest.mark.parametrize(
        "entry",
        [
            {"url": "https://hooks.example.com"},
            {"name": "no-url"},
            {"name": "x", "url": "https://x.example.com", "provider": "slack"},
            {"name": "x", "url": "https://x.example.com", "provider": "misskey"},
            {"name": "x", "url": "https://x.example.com", "post_interval": "-1s"},
            "https://hooks.example.com",
            ["plain", "https://hooks.example.com"],
            {"name": 7, "url": "https://x.example.com"},
            {"name": "x", "url": "https://x.example.com", "provider": 3},
            {"name": "x", "url": "https://x.example.com", "provider": ["discord"]},
        ],
    )
    def test_invalid_destination(self, tmp_path, entry):
        path = write_json(tmp_path / "destinations.json", {"destinations": [entry]})

        with pytest.raises(ValueError):
            Config(destinations_file=path).get_destinations()

    def test_no_destinations(self, tmp_path):
        path = write_json(tmp_path / "destinations.json", {"destinations": []})

        with pytest.raises(ValueError, match="No destinations"):
            Config(destinations_file=path).get_destinations()
