"""Message Log: append-only, time-ordered chat history in DuckDB.

Database Schema:
    messages table:
        - seq: Insertion counter, breaks timestamp ties
        - id: Client-supplied message id (not unique)
        - text, sender, sender_name, sender_avatar_url
        - sent_at: Server-assigned send time (UTC), indexed
"""
import logging
import threading
from typing import List, Optional

import duckdb

from webchat.chat.schemas import ChatMessage

from ._db import connect, from_db_time, to_db_time

logger = logging.getLogger(__name__)

_CREATE_SEQUENCE = "CREATE SEQUENCE IF NOT EXISTS messages_seq START 1"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
    seq               BIGINT DEFAULT nextval('messages_seq'),
    id                VARCHAR NOT NULL,
    text              VARCHAR NOT NULL,
    sender            VARCHAR NOT NULL,
    sender_name       VARCHAR NOT NULL,
    sender_avatar_url VARCHAR,
    sent_at           TIMESTAMP NOT NULL
)
"""

_INDEX = "CREATE INDEX IF NOT EXISTS idx_messages_sent_at ON messages(sent_at)"

_COLUMNS = "id, text, sender, sender_name, sender_avatar_url, sent_at"


class MessageLog:
    """DuckDB adapter for ChatMessage records."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = connect(db_path)
        self._conn.execute(_CREATE_SEQUENCE)
        self._conn.execute(_CREATE_TABLE)
        self._conn.execute(_INDEX)
        logger.info("[MessageLog] Initialized with db=%s", db_path)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("MessageLog is closed")
        return self._conn

    def append(self, message: ChatMessage) -> ChatMessage:
        """Persist a message and return the stored record."""
        with self._lock:
            self._get_connection().execute(
                f"INSERT INTO messages ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    message.id,
                    message.text,
                    message.sender,
                    message.senderName,
                    message.senderAvatarUrl,
                    to_db_time(message.timestamp),
                ],
            )
        # Same normalized form recent() hands back.
        return message.model_copy(
            update={"timestamp": from_db_time(to_db_time(message.timestamp))}
        )

    def recent(self, limit: int) -> List[ChatMessage]:
        """The ``limit`` newest messages, oldest first."""
        with self._lock:
            rows = self._get_connection().execute(
                f"""
                SELECT {_COLUMNS} FROM (
                    SELECT {_COLUMNS}, seq FROM messages
                    ORDER BY sent_at DESC, seq DESC
                    LIMIT ?
                ) ORDER BY sent_at ASC, seq ASC
                """,
                [limit],
            ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def exists(self, message_id: str) -> bool:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT 1 FROM messages WHERE id = ? LIMIT 1", [message_id]
            ).fetchone()
        return row is not None

    def count(self) -> int:
        with self._lock:
            return self._get_connection().execute("SELECT COUNT(*) FROM messages").fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @staticmethod
    def _row_to_message(row: tuple) -> ChatMessage:
        return ChatMessage(
            id=row[0],
            text=row[1],
            sender=row[2],
            senderName=row[3],
            senderAvatarUrl=row[4],
            timestamp=from_db_time(row[5]),
        )
