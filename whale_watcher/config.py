"""Configuration loader for Whale Watcher."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError

API_KEY_ENV_VAR = "WHALE_ALERT_API_KEY"
MAX_FEED_LIMIT = 256


@dataclass
class FeedConfig:
    api_key: str | None = None
    base_url: str = "https://leviathan.whale-alert.io"
    timeout_seconds: float = 30.0
    # 60ms between calls keeps us under the 1000 calls/minute budget
    min_request_interval_ms: int = 60


@dataclass
class PollingConfig:
    interval_seconds: int = 300
    blockchains: list[str] = field(
        default_factory=lambda: ["bitcoin", "ethereum", "tron"]
    )
    min_value_usd: int = 100_000
    limit: int = MAX_FEED_LIMIT
    max_cycle_seconds: float = 240.0
    initial_lookback_seconds: int = 300
    lock_stale_after_seconds: int = 900


@dataclass
class DispatchConfig:
    entitled_tiers: list[str] = field(default_factory=lambda: ["elite"])


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "logs/whale_alerts.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class DatabaseConfig:
    path: str = "data/whale_watcher.db"


@dataclass
class Config:
    feed: FeedConfig = field(default_factory=FeedConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def validate(self):
        """
        Check the configuration before anything talks to the feed.

        Raises:
            ConfigError: describing the first problem found
        """
        if not self.feed.api_key:
            raise ConfigError(
                f"Feed API key missing: set feed.api_key or {API_KEY_ENV_VAR}"
            )
        if not self.polling.blockchains:
            raise ConfigError("polling.blockchains must list at least one blockchain")
        if self.polling.interval_seconds <= 0:
            raise ConfigError("polling.interval_seconds must be positive")
        if not 1 <= self.polling.limit <= MAX_FEED_LIMIT:
            raise ConfigError(f"polling.limit must be between 1 and {MAX_FEED_LIMIT}")
        if self.polling.max_cycle_seconds <= 0:
            raise ConfigError("polling.max_cycle_seconds must be positive")


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    # An empty section ("feed:") loads as None
    feed = FeedConfig(**(raw.get("feed") or {}))
    if not feed.api_key:
        feed.api_key = os.environ.get(API_KEY_ENV_VAR)

    return Config(
        feed=feed,
        polling=PollingConfig(**(raw.get("polling") or {})),
        dispatch=DispatchConfig(**(raw.get("dispatch") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
        database=DatabaseConfig(**(raw.get("database") or {})),
    )
