"""Identity Store: one durable record per user, keyed by userId.

Database Schema:
    users table:
        - user_id: Stable identifier (primary key)
        - phone: Phone number the user joined with
        - display_name: Name set during profile setup
        - avatar_url: Hosted avatar image
        - last_connection_id: Connection id of the latest join
        - last_active_at: Last join/disconnect time (UTC)

Every write is a single-statement upsert or update, which DuckDB runs
atomically. Methods are synchronous; async callers go through
``asyncio.to_thread``, so access to the shared connection is serialized
with a lock.
"""
import logging
import threading
from datetime import datetime
from typing import Optional

import duckdb

from webchat.chat.schemas import UserIdentity

from ._db import connect, from_db_time, to_db_time

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    user_id            VARCHAR PRIMARY KEY,
    phone              VARCHAR,
    display_name       VARCHAR,
    avatar_url         VARCHAR,
    last_connection_id VARCHAR,
    last_active_at     TIMESTAMP
)
"""

_COLUMNS = "user_id, phone, display_name, avatar_url, last_connection_id, last_active_at"


class IdentityStore:
    """DuckDB adapter for UserIdentity records."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = connect(db_path)
        self._conn.execute(_CREATE_TABLE)
        logger.info("[IdentityStore] Initialized with db=%s", db_path)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("IdentityStore is closed")
        return self._conn

    def upsert_presence(
        self, user_id: str, phone: str, connection_id: str, at: datetime
    ) -> UserIdentity:
        """Create or refresh a user on join.

        Profile fields (display name, avatar) are left untouched.
        """
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO users (user_id, phone, last_connection_id, last_active_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    phone = excluded.phone,
                    last_connection_id = excluded.last_connection_id,
                    last_active_at = excluded.last_active_at
                """,
                [user_id, phone, connection_id, to_db_time(at)],
            )
            return self._fetch(conn, user_id)

    def update_profile(
        self, user_id: str, display_name: str, avatar_url: Optional[str] = None
    ) -> UserIdentity:
        """Create or update a user's display name and avatar."""
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO users (user_id, display_name, avatar_url)
                VALUES (?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    display_name = excluded.display_name,
                    avatar_url = COALESCE(excluded.avatar_url, avatar_url)
                """,
                [user_id, display_name, avatar_url],
            )
            return self._fetch(conn, user_id)

    def touch_by_connection(self, connection_id: str, at: datetime) -> int:
        """Refresh last_active_at for whoever last joined on connection_id.

        Returns:
            Number of records updated (0 if the user has since rejoined
            elsewhere).
        """
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT user_id FROM users WHERE last_connection_id = ?",
                [connection_id],
            ).fetchall()
            if rows:
                conn.execute(
                    "UPDATE users SET last_active_at = ? WHERE last_connection_id = ?",
                    [to_db_time(at), connection_id],
                )
            return len(rows)

    def get(self, user_id: str) -> Optional[UserIdentity]:
        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE user_id = ?", [user_id]
            ).fetchone()
        return self._row_to_identity(row) if row else None

    def count(self) -> int:
        with self._lock:
            return self._get_connection().execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _fetch(self, conn: duckdb.DuckDBPyConnection, user_id: str) -> UserIdentity:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM users WHERE user_id = ?", [user_id]
        ).fetchone()
        return self._row_to_identity(row)

    @staticmethod
    def _row_to_identity(row: tuple) -> UserIdentity:
        return UserIdentity(
            userId=row[0],
            phone=row[1],
            displayName=row[2],
            avatarUrl=row[3],
            lastConnectionId=row[4],
            lastActiveAt=from_db_time(row[5]),
        )
