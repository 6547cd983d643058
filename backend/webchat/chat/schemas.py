"""Pydantic schemas for the real-time chat protocol.

Inbound frames (client -> server) are validated with the *Payload models
before the Session Coordinator sees them. Outbound frames are built from
ChatMessage and plain dicts.

Wire names are camelCase to match the browser client:
    ChatMessage.id         - client-supplied message id
    ChatMessage.sender     - sender's stable userId
    ChatMessage.senderName - display name resolved at send time
    ChatMessage.timestamp  - server-assigned send time (UTC)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ClientEventType(str, Enum):
    """Event types a client may send over the WebSocket."""
    JOIN = "join"
    SEND_MESSAGE = "send_message"


class ServerEventType(str, Enum):
    """Event types the server emits.

    Attributes:
        CONNECTED: First frame after accept, carries the connection id.
        CHAT_HISTORY: Recent messages, unicast to a joining connection.
        USERS_UPDATE: Current roster, broadcast to everyone.
        RECEIVE_MESSAGE: A persisted chat message, broadcast to everyone.
        ERROR: Validation failure, unicast to the offending connection.
    """
    CONNECTED = "connected"
    CHAT_HISTORY = "chat_history"
    USERS_UPDATE = "users_update"
    RECEIVE_MESSAGE = "receive_message"
    ERROR = "error"


class JoinPayload(BaseModel):
    """Body of a ``join`` event."""
    userId: str = Field(..., min_length=1, description="Stable user id")
    phone: str = Field(..., min_length=1, description="Verified phone number")


class SendMessagePayload(BaseModel):
    """Body of a ``send_message`` event.

    ``senderName`` is only a hint; the stored display name comes from the
    sender's identity record when one exists.
    """
    id: str = Field(..., min_length=1, description="Client-generated message id")
    text: str = Field(..., description="Message text, may be empty")
    sender: str = Field(..., min_length=1, description="Sender userId")
    senderName: Optional[str] = Field(default=None, description="Client-side display name")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """A persisted chat message, exactly as every client renders it."""
    id: str = Field(..., description="Client-supplied message id")
    text: str = Field(..., description="Message text")
    sender: str = Field(..., description="Sender userId")
    senderName: str = Field(..., description="Sender display name at send time")
    senderAvatarUrl: Optional[str] = Field(default=None, description="Sender avatar URL")
    timestamp: datetime = Field(default_factory=utcnow, description="Send time (UTC)")


class UserIdentity(BaseModel):
    """Durable per-user record kept in the Identity Store.

    Attributes:
        userId: Stable identifier supplied by the client after phone verification.
        phone: Phone number the user joined with.
        displayName: Name chosen during profile setup (None until then).
        avatarUrl: Hosted avatar image URL.
        lastConnectionId: Connection id of the most recent join.
        lastActiveAt: Last join or disconnect time (UTC).
    """
    userId: str
    phone: Optional[str] = None
    displayName: Optional[str] = None
    avatarUrl: Optional[str] = None
    lastConnectionId: Optional[str] = None
    lastActiveAt: Optional[datetime] = None
