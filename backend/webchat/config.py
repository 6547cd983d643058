"""Webchat application configuration.

Loads settings from a single YAML file, ``webchat.settings.yaml``, into
pydantic models. Every key is optional; a missing file yields defaults.

Example:
    server:
      port: 3001
      allowed_origins: ["http://localhost:5173"]
    database:
      path: data/webchat.duckdb
    session:
      history_limit: 50
    logging:
      level: debug
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("webchat.settings.yaml")

IN_MEMORY_DB = ":memory:"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3001
    reload:          bool      = False
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["https://webchat-c0fbb.web.app", "http://localhost:5173"]
    )


class DatabaseSettings(BaseModel):
    """DuckDB file shared by the identity store and the message log."""
    path: str = "webchat.duckdb"


class SessionSettings(BaseModel):
    """Chat session behaviour."""
    history_limit:                int  = Field(default=50, ge=1)
    max_pending_events:           int  = Field(default=100, ge=1)
    reject_duplicate_message_ids: bool = False
    unknown_sender_name:          str  = "Unknown"


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(getattr(logging, value.upper(), None), int):
            raise ValueError(f"unknown log level: {value}")
        return value.lower()


class AppConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    session:  SessionSettings  = Field(default_factory=SessionSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_db_path(raw: str, base_dir: Path) -> str:
    if raw == IN_MEMORY_DB:
        return raw
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings from YAML.

    Args:
        settings_path: Settings file. Defaults to ``webchat.settings.yaml``
            in the working directory.

    Relative ``database.path`` values resolve against the settings file's
    directory.
    """
    path = Path(settings_path) if settings_path is not None else SETTINGS_FILE
    config = AppConfig(**_load_yaml(path))
    config.database.path = _resolve_db_path(
        config.database.path, path.resolve().parent
    )
    logger.info(
        "Settings loaded (server=%s:%s, database=%s, history_limit=%d)",
        config.server.host,
        config.server.port,
        config.database.path,
        config.session.history_limit,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
