"""Shared DuckDB helpers for the store adapters."""
from datetime import datetime, timezone
from typing import Optional

import duckdb


def connect(db_path: str) -> duckdb.DuckDBPyConnection:
    return duckdb.connect(db_path)


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to naive UTC, the form stored in TIMESTAMP columns."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)
