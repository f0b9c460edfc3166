"""Configuration loading for ScoutSync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class RemoteConfig:
    """Configuration for the authoritative scouting service."""

    base_url: str = "http://localhost:8000"
    api_token: str | None = None
    mutation_timeout_seconds: float = 5.0
    read_timeout_seconds: float | None = None  # reads are not time-boxed


@dataclass
class StoreConfig:
    db_path: str = "~/.scoutsync/scouting.db"


@dataclass
class SyncConfig:
    """Configuration for sync passes."""

    events_year: int | None = None  # None: derived from the active event key
    max_team_pages: int = 200
    always_refresh_general_data: bool = False


@dataclass
class Config:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with SCOUTSYNC_ prefix."""
    return os.environ.get(f"SCOUTSYNC_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Remote overrides
    if base_url := _get_env("REMOTE_URL"):
        config.remote.base_url = base_url
    if token := _get_env("API_TOKEN"):
        config.remote.api_token = token
    if mutation_timeout := _get_env("MUTATION_TIMEOUT"):
        config.remote.mutation_timeout_seconds = float(mutation_timeout)

    # Store overrides
    if db_path := _get_env("DB_PATH"):
        config.store.db_path = db_path

    # Sync overrides
    if events_year := _get_env("EVENTS_YEAR"):
        config.sync.events_year = int(events_year)
    if always_refresh := _get_env("ALWAYS_REFRESH"):
        config.sync.always_refresh_general_data = always_refresh.lower() in (
            "true",
            "1",
            "yes",
        )

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse remote config
            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    base_url=remote_data.get("base_url", config.remote.base_url),
                    api_token=remote_data.get("api_token", config.remote.api_token),
                    mutation_timeout_seconds=remote_data.get(
                        "mutation_timeout_seconds",
                        config.remote.mutation_timeout_seconds,
                    ),
                    read_timeout_seconds=remote_data.get(
                        "read_timeout_seconds", config.remote.read_timeout_seconds
                    ),
                )

            # Parse store config
            if "store" in data:
                config.store = StoreConfig(
                    db_path=data["store"].get("db_path", config.store.db_path)
                )

            # Parse sync config
            if "sync" in data:
                sync_data = data["sync"]
                config.sync = SyncConfig(
                    events_year=sync_data.get("events_year", config.sync.events_year),
                    max_team_pages=sync_data.get(
                        "max_team_pages", config.sync.max_team_pages
                    ),
                    always_refresh_general_data=sync_data.get(
                        "always_refresh_general_data",
                        config.sync.always_refresh_general_data,
                    ),
                )

    return _apply_env_overrides(config)
