"""In-process presence tracking."""

from .table import PresenceEntry, PresenceTable

__all__ = ["PresenceEntry", "PresenceTable"]
