"""DuckDB-backed durable stores used by the chat session layer."""

from .identity import IdentityStore
from .messages import MessageLog

__all__ = ["IdentityStore", "MessageLog"]
