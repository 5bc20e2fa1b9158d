"""Configuration for feed_sync.

Settings are read from environment variables so the server can be configured
without a config file. Invalid values raise ValueError at startup.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_USER_AGENT = "FeedSync/1.0 (Feed Reader)"


def _default_db_path() -> str:
    return str(Path.home() / ".feed_sync" / "feed_sync.db")


@dataclass
class ServerConfig:
    """Runtime configuration for the feed_sync server."""

    name: str = "feed_sync"
    log_level: str = "INFO"
    db_path: str = field(default_factory=_default_db_path)
    update_interval_seconds: float = 600.0
    drift_threshold_seconds: float = 30.0
    request_timeout: float = 10.0
    domain_min_interval: float = 1.0
    max_depth: int = 2
    max_concurrent_hosts: int = 8
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        if self.update_interval_seconds <= 0:
            raise ValueError("update_interval_seconds must be positive")
        if self.drift_threshold_seconds < 0:
            raise ValueError("drift_threshold_seconds must not be negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.domain_min_interval < 0:
            raise ValueError("domain_min_interval must not be negative")
        if self.max_depth < 0:
            raise ValueError("max_depth must not be negative")
        if self.max_concurrent_hosts < 1:
            raise ValueError("max_concurrent_hosts must be at least 1")
        self.log_level = self.log_level.upper()


def load_config() -> ServerConfig:
    """Build a ServerConfig from FEED_SYNC_* environment variables."""
    env = os.environ

    def _get(key: str, cast, default):
        value = env.get(f"FEED_SYNC_{key}")
        if value is None or value == "":
            return default
        try:
            return cast(value)
        except ValueError as e:
            raise ValueError(f"Invalid value for FEED_SYNC_{key}: {value!r}") from e

    defaults = ServerConfig()
    return ServerConfig(
        name=_get("NAME", str, defaults.name),
        log_level=_get("LOG_LEVEL", str, defaults.log_level),
        db_path=_get("DB_PATH", str, defaults.db_path),
        update_interval_seconds=_get(
            "UPDATE_INTERVAL", float, defaults.update_interval_seconds
        ),
        drift_threshold_seconds=_get(
            "DRIFT_THRESHOLD", float, defaults.drift_threshold_seconds
        ),
        request_timeout=_get("REQUEST_TIMEOUT", float, defaults.request_timeout),
        domain_min_interval=_get(
            "DOMAIN_MIN_INTERVAL", float, defaults.domain_min_interval
        ),
        max_depth=_get("MAX_DEPTH", int, defaults.max_depth),
        max_concurrent_hosts=_get(
            "MAX_CONCURRENT_HOSTS", int, defaults.max_concurrent_hosts
        ),
        user_agent=_get("USER_AGENT", str, defaults.user_agent),
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the process configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
