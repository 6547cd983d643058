"""Broadcast Channel: delivery of server events to open connections.

Delivery contract:
    - Fire-and-forget. No acknowledgement, no retry. A send that fails
      marks the connection dead and drops it from the channel; the error
      is logged, never raised to the caller.
    - Broadcast fans out concurrently with asyncio.gather(), so there is
      no ordering across recipients.
    - Per recipient, events arrive in the order they were handed to the
      channel: every connection has its own FIFO send lock.
"""
import asyncio
import logging
from typing import Dict, List, Protocol

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything that can push a JSON frame to one client (e.g. a WebSocket)."""

    async def send_json(self, data: dict) -> None:
        ...


class _Outlet:
    __slots__ = ("connection", "lock")

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self.lock = asyncio.Lock()


class BroadcastChannel:
    """Registry of open connections keyed by connection id."""

    def __init__(self) -> None:
        self._outlets: Dict[str, _Outlet] = {}

    def add(self, connection_id: str, connection: Connection) -> None:
        self._outlets[connection_id] = _Outlet(connection)

    def remove(self, connection_id: str) -> bool:
        """Forget a connection. Returns False if it was not registered."""
        return self._outlets.pop(connection_id, None) is not None

    def connection_ids(self) -> List[str]:
        return list(self._outlets)

    def __len__(self) -> int:
        return len(self._outlets)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._outlets

    async def broadcast(self, message: dict) -> None:
        """Send a message to every open connection concurrently.

        Args:
            message: JSON-serializable event.
        """
        targets = list(self._outlets.items())
        if not targets:
            return

        results = await asyncio.gather(
            *[self._safe_send(outlet, message) for _, outlet in targets],
            return_exceptions=True,
        )

        failed = [
            connection_id for (connection_id, _), ok in zip(targets, results)
            if ok is not True
        ]
        self._cleanup(failed)

    async def send_to(self, connection_id: str, message: dict) -> bool:
        """Send a message to one connection.

        Returns:
            True if delivered to the transport, False if the connection is
            unknown or the send failed.
        """
        outlet = self._outlets.get(connection_id)
        if outlet is None:
            logger.debug("Unicast to unknown connection %s dropped", connection_id)
            return False
        ok = await self._safe_send(outlet, message)
        if not ok:
            self._cleanup([connection_id])
        return ok

    async def _safe_send(self, outlet: _Outlet, message: dict) -> bool:
        async with outlet.lock:
            try:
                await outlet.connection.send_json(message)
                return True
            except Exception as e:
                logger.debug("Failed to send to connection: %s", e)
                return False

    def _cleanup(self, failed_ids: List[str]) -> None:
        for connection_id in failed_ids:
            if self._outlets.pop(connection_id, None) is not None:
                logger.debug("Removed dead connection %s", connection_id)
