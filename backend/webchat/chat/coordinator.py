"""Session Coordinator: the single authority over presence and chat flow.

The coordinator owns the PresenceTable and the BroadcastChannel and is
the only code that mutates either. Transport handlers talk to it through
three lifecycle operations:

    join(connection_id, user_id, phone)
        Register presence, upsert identity, unicast recent history,
        broadcast the roster.
    send_message(connection_id, message_id, text, sender_user_id)
        Resolve sender metadata, persist, broadcast the stored record.
    disconnect(connection_id)
        Drop presence, refresh last-active time, broadcast the roster.

Concurrency:
    Handlers for different connections run as independent tasks on one
    event loop and may interleave at store calls, which run in worker
    threads (asyncio.to_thread). Presence reads and writes never straddle
    an await, so the table is always seen in a consistent state. Roster
    broadcasts are eventually consistent: a join and a disconnect racing
    each other may deliver their rosters in either order.

    Same-connection ordering is provided by ConnectionSession (session.py),
    which feeds one connection's events to the coordinator one at a time.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from webchat.config import AppConfig, get_config
from webchat.presence import PresenceTable
from webchat.store import IdentityStore, MessageLog

from .broadcast import BroadcastChannel, Connection
from .schemas import ChatMessage, ServerEventType, UserIdentity, utcnow

logger = logging.getLogger(__name__)

# Number of messages replayed to a joining connection
DEFAULT_HISTORY_LIMIT = 50

# Display name used when the sender has no identity record and sent no hint
UNKNOWN_SENDER_NAME = "Unknown"


class SessionCoordinator:
    """Coordinates presence, persistence and broadcast for the chat room.

    Args:
        identities: Identity Store adapter.
        messages: Message Log adapter.
        presence: Presence Table (a fresh one if omitted).
        channel: Broadcast Channel (a fresh one if omitted).
        history_limit: Messages replayed on join.
        unknown_sender_name: Fallback display name for unknown senders.
        reject_duplicate_ids: Drop messages whose id is already stored.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        identities: IdentityStore,
        messages: MessageLog,
        presence: Optional[PresenceTable] = None,
        channel: Optional[BroadcastChannel] = None,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        unknown_sender_name: str = UNKNOWN_SENDER_NAME,
        reject_duplicate_ids: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.identities = identities
        self.messages = messages
        self.presence = presence if presence is not None else PresenceTable()
        self.channel = channel if channel is not None else BroadcastChannel()
        self.history_limit = history_limit
        self.unknown_sender_name = unknown_sender_name
        self.reject_duplicate_ids = reject_duplicate_ids
        self._clock = clock

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, connection_id: str, connection: Connection) -> None:
        """Register an accepted connection and tell it its id."""
        self.channel.add(connection_id, connection)
        await self.channel.send_to(connection_id, {
            "type": ServerEventType.CONNECTED.value,
            "connectionId": connection_id,
        })
        logger.info(
            "[Session] Connection %s opened (%d open)", connection_id, len(self.channel)
        )

    async def join(self, connection_id: str, user_id: str, phone: str) -> UserIdentity:
        """Bind a connection to a user and bring it up to date.

        Re-joining on the same connection simply overwrites the entry.

        Returns:
            The upserted identity record.
        """
        now = self._clock()
        self.presence.register(connection_id, user_id, phone)
        logger.info("[Session] JOIN userId=%s phone=%s on %s", user_id, phone, connection_id)

        identity = await asyncio.to_thread(
            self.identities.upsert_presence, user_id, phone, connection_id, now
        )
        history = await asyncio.to_thread(self.messages.recent, self.history_limit)

        await self.channel.send_to(connection_id, {
            "type": ServerEventType.CHAT_HISTORY.value,
            "messages": [msg.model_dump(mode="json") for msg in history],
        })
        await self.broadcast_roster()
        return identity

    async def send_message(
        self,
        connection_id: str,
        message_id: str,
        text: str,
        sender_user_id: str,
        sender_name: Optional[str] = None,
    ) -> Optional[ChatMessage]:
        """Persist a chat message and broadcast the stored record.

        Senders without presence or without an identity record are still
        accepted; their display name falls back to ``sender_name`` and then
        to ``unknown_sender_name``.

        Returns:
            The stored message, or None if it was dropped as a duplicate.
        """
        if connection_id not in self.presence:
            logger.debug(
                "[Session] Message %s from unjoined connection %s", message_id, connection_id
            )

        if self.reject_duplicate_ids and await asyncio.to_thread(
            self.messages.exists, message_id
        ):
            logger.info("[Session] Duplicate message id ignored: %s", message_id)
            return None

        identity = await self._lookup_sender(sender_user_id)
        display_name = (
            (identity.displayName if identity else None)
            or sender_name
            or self.unknown_sender_name
        )

        message = ChatMessage(
            id=message_id,
            text=text,
            sender=sender_user_id,
            senderName=display_name,
            senderAvatarUrl=identity.avatarUrl if identity else None,
            timestamp=self._clock(),
        )
        stored = await asyncio.to_thread(self.messages.append, message)

        logger.info(
            "[Session] Broadcasting message %s from %s to %d connections",
            stored.id, sender_user_id, len(self.channel),
        )
        await self.channel.broadcast({
            "type": ServerEventType.RECEIVE_MESSAGE.value,
            **stored.model_dump(mode="json"),
        })
        return stored

    async def disconnect(self, connection_id: str) -> bool:
        """Tear down a connection.

        Safe to call more than once; only the first call for a joined
        connection changes presence and broadcasts a roster.

        Returns:
            True if the connection had joined and its presence was removed.
        """
        self.channel.remove(connection_id)
        entry = self.presence.remove(connection_id)
        if entry is None:
            logger.info("[Session] Connection %s closed without presence", connection_id)
            return False

        logger.info(
            "[Session] User %s left (connection %s)", entry.user_id, connection_id
        )
        try:
            await asyncio.to_thread(
                self.identities.touch_by_connection, connection_id, self._clock()
            )
        finally:
            await self.broadcast_roster()
        return True

    # =========================================================================
    # Views
    # =========================================================================

    def roster(self) -> List[str]:
        """Phones of everyone currently present."""
        return self.presence.roster()

    def online_users(self) -> List[dict]:
        return [entry.to_dict() for entry in self.presence.snapshot()]

    async def broadcast_roster(self) -> None:
        # Snapshot is taken synchronously right before fan-out.
        await self.channel.broadcast({
            "type": ServerEventType.USERS_UPDATE.value,
            "users": self.roster(),
        })

    async def send_error(self, connection_id: str, error: str) -> None:
        """Report a rejected event to its sender only."""
        await self.channel.send_to(connection_id, {
            "type": ServerEventType.ERROR.value,
            "error": error,
        })

    async def _lookup_sender(self, user_id: str) -> Optional[UserIdentity]:
        try:
            return await asyncio.to_thread(self.identities.get, user_id)
        except Exception as exc:
            logger.warning("[Session] Sender lookup failed for %s: %s", user_id, exc)
            return None

    def close(self) -> None:
        """Close both stores."""
        self.identities.close()
        self.messages.close()


# =============================================================================
# Process-wide instance
# =============================================================================

_coordinator: Optional[SessionCoordinator] = None


def build_coordinator(config: AppConfig) -> SessionCoordinator:
    """Create a coordinator with DuckDB stores described by ``config``."""
    db_path = config.database.path
    return SessionCoordinator(
        IdentityStore(db_path),
        MessageLog(db_path),
        history_limit=config.session.history_limit,
        unknown_sender_name=config.session.unknown_sender_name,
        reject_duplicate_ids=config.session.reject_duplicate_message_ids,
    )


def get_coordinator() -> SessionCoordinator:
    """Return the active coordinator, building one from config on first use."""
    global _coordinator
    if _coordinator is None:
        _coordinator = build_coordinator(get_config())
    return _coordinator


def set_coordinator(coordinator: Optional[SessionCoordinator]) -> None:
    global _coordinator
    _coordinator = coordinator


def reset_coordinator() -> None:
    """Close and forget the active coordinator."""
    global _coordinator
    if _coordinator is not None:
        _coordinator.close()
        _coordinator = None
