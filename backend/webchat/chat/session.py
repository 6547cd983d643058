"""Per-connection inbound event queue.

Each WebSocket gets one ConnectionSession. The transport reader pushes
raw frames into a bounded asyncio.Queue; a single worker task drains it
and hands events to the SessionCoordinator one at a time. This gives:

    - Arrival-order processing for events from the same connection.
    - Disconnect queued behind everything the client already sent, so it
      can never overtake a pending join.
    - Backpressure: when ``max_pending`` events are waiting, the reader
      blocks and stops pulling frames off that socket.

The worker is the boundary catch-all for its connection. Validation
failures are reported to the client; any other exception is logged and
the worker moves on, so one failed event never stops the connection or
affects anyone else.
"""
import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError

from .coordinator import SessionCoordinator
from .schemas import ClientEventType, JoinPayload, SendMessagePayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING_EVENTS = 100

# Queued after the last client frame when the socket closes
_DISCONNECT = object()

_PAYLOADS = {
    ClientEventType.JOIN.value: JoinPayload,
    ClientEventType.SEND_MESSAGE.value: SendMessagePayload,
}


def describe_validation_error(exc: ValidationError) -> str:
    """One-line summary naming each offending field."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ())) or "body"
        parts.append(f"{field}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class ConnectionSession:
    """Serializes one connection's events into the coordinator."""

    def __init__(
        self,
        coordinator: SessionCoordinator,
        connection_id: str,
        max_pending: int = DEFAULT_MAX_PENDING_EVENTS,
    ) -> None:
        self.coordinator = coordinator
        self.connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(
                self._run(), name=f"chat-session-{self.connection_id}"
            )

    async def submit(self, frame: Any) -> None:
        """Queue one decoded client frame (waits while the queue is full)."""
        if self._closed:
            raise RuntimeError(f"Session {self.connection_id} is closed")
        await self._queue.put(frame)

    async def close(self) -> None:
        """Queue the disconnect and wait until every pending event is handled."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_DISCONNECT)
        if self._worker is None:
            self.start()
        await self._worker

    async def _run(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                if frame is _DISCONNECT:
                    await self.coordinator.disconnect(self.connection_id)
                    return
                await self._dispatch(frame)
            except Exception:
                logger.exception(
                    "[Session] Event on connection %s failed", self.connection_id
                )
                if frame is _DISCONNECT:
                    return
            finally:
                self._queue.task_done()

    async def _dispatch(self, frame: Any) -> None:
        if not isinstance(frame, dict):
            await self.coordinator.send_error(
                self.connection_id, "Invalid message format: expected a JSON object"
            )
            return

        event_type = frame.get("type")
        model = _PAYLOADS.get(event_type) if isinstance(event_type, str) else None
        if model is None:
            logger.warning(
                "[Session] Unknown event type %r on connection %s",
                event_type, self.connection_id,
            )
            await self.coordinator.send_error(
                self.connection_id,
                f"Invalid message format: unknown event type {event_type!r}",
            )
            return

        try:
            payload = model.model_validate(frame)
        except ValidationError as exc:
            detail = describe_validation_error(exc)
            logger.info(
                "[Session] Rejected %s on connection %s: %s",
                event_type, self.connection_id, detail,
            )
            await self.coordinator.send_error(
                self.connection_id, f"Invalid {event_type} payload: {detail}"
            )
            return

        if isinstance(payload, JoinPayload):
            await self.coordinator.join(self.connection_id, payload.userId, payload.phone)
        else:
            await self.coordinator.send_message(
                self.connection_id,
                payload.id,
                payload.text,
                payload.sender,
                payload.senderName,
            )
