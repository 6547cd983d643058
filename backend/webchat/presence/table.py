"""Presence Table: which live connection belongs to which user.

The table lives only in process memory and is never rebuilt from the
Identity Store, so a restart empties it until clients join again.

Thread Safety:
    Every method is synchronous and never awaits, so on a single event
    loop a call always observes and leaves a consistent table. Only the
    SessionCoordinator mutates it; routers read snapshots.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceEntry:
    """A joined, still-open connection."""
    connection_id: str
    user_id: str
    phone: str

    def to_dict(self) -> dict:
        return {
            "connectionId": self.connection_id,
            "userId": self.user_id,
            "phone": self.phone,
        }


class PresenceTable:
    """Mapping connection_id -> PresenceEntry with one entry per user."""

    def __init__(self) -> None:
        # connection_id -> entry, insertion ordered
        self._entries: Dict[str, PresenceEntry] = {}

    def register(self, connection_id: str, user_id: str, phone: str) -> List[PresenceEntry]:
        """Bind a connection to a user, replacing stale entries.

        An existing entry for the same connection is overwritten. Entries
        that bind the same user to a different connection are superseded
        so a user is present at most once.

        Returns:
            The superseded entries (other connections of the same user).
        """
        superseded = [
            entry for cid, entry in self._entries.items()
            if entry.user_id == user_id and cid != connection_id
        ]
        for entry in superseded:
            del self._entries[entry.connection_id]
            logger.info(
                "[Presence] User %s superseded connection %s with %s",
                user_id, entry.connection_id, connection_id,
            )

        self._entries.pop(connection_id, None)
        self._entries[connection_id] = PresenceEntry(
            connection_id=connection_id, user_id=user_id, phone=phone
        )
        return superseded

    def remove(self, connection_id: str) -> Optional[PresenceEntry]:
        """Drop the entry for a connection; None if it never joined."""
        return self._entries.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[PresenceEntry]:
        return self._entries.get(connection_id)

    def snapshot(self) -> List[PresenceEntry]:
        """Copy of all entries in join order."""
        return list(self._entries.values())

    def roster(self) -> List[str]:
        """Distinct phones of everyone currently present."""
        return list(dict.fromkeys(entry.phone for entry in self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries
