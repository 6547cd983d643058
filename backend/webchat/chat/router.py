"""Chat router providing the real-time WebSocket endpoint.

This module provides:
    - WebSocket /ws/chat: join, send_message, roster and history delivery

Protocol Flow:
    1. Client connects -> Server sends: {type: "connected", connectionId}
    2. Client sends: {type: "join", userId, phone}
       -> Server sends to this client: {type: "chat_history", messages: [...]}
       -> Server broadcasts: {type: "users_update", users: [phone, ...]}
    3. Client sends: {type: "send_message", id, text, sender, senderName?}
       -> Server broadcasts: {type: "receive_message", ...storedMessage}
    4. On disconnect -> Server broadcasts: {type: "users_update", users: [...]}

Invalid frames get {type: "error", error} back on the same socket only.
"""
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from webchat.config import get_config

from .coordinator import get_coordinator
from .session import ConnectionSession

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the shared chat room.

    The endpoint only moves frames. Every decoded frame goes through the
    connection's ConnectionSession so events are handled in arrival order
    and the disconnect is processed after them.

    Args:
        websocket: The WebSocket connection.
    """
    coordinator = get_coordinator()
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    await coordinator.connect(connection_id, websocket)
    logger.info(f"[WS] Connection accepted: {connection_id}")

    session = ConnectionSession(
        coordinator,
        connection_id,
        max_pending=get_config().session.max_pending_events,
    )
    session.start()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            frame = None
            if raw is None:
                # Binary frames carry no JSON event
                logger.debug("[WS] Binary frame on %s", connection_id)
            else:
                try:
                    frame = json.loads(raw)
                except ValueError:
                    logger.debug("[WS] Undecodable frame on %s", connection_id)
            await session.submit(frame)
    except WebSocketDisconnect as exc:
        logger.info(f"[WS] Client {connection_id} disconnected (code={exc.code})")
    finally:
        await session.close()
        logger.info(
            f"[WS] Connection {connection_id} closed. "
            f"{len(coordinator.channel)} connections remain"
        )
