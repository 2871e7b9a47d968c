from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from typing import Any, Dict
import json
import logging

from ...api.deps import get_connection_registry
from ...core.security import UserRole
from ...services.dispatch_notifier import ClientConnection, ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])

KNOWN_ROLES = {role.value for role in UserRole}


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_connection_registry)
):
    """
    Server-to-client dispatch notifications.

    Protocol:
    1. Client connects; server sends {"type": "connected"}
    2. Client identifies itself:
       {"type": "auth", "userId": "42", "role": "doctor"}
    3. Server replies {"type": "authenticated", "role": "doctor"}
    4. Doctors then receive {"type": "newEmergencyTransport", ...} events
    """
    await websocket.accept()
    connection = registry.add(ClientConnection(websocket))
    logger.info(f"Notification client connected ({len(registry)} open)")

    try:
        await websocket.send_json({"type": "connected"})

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            if raw is None:
                continue

            await _handle_message(registry, connection, raw)

    except WebSocketDisconnect:
        pass
    finally:
        registry.remove(connection)
        logger.info(f"Notification client disconnected ({len(registry)} open)")


async def _handle_message(registry: ConnectionRegistry, connection: ClientConnection, raw: str):
    try:
        data: Dict[str, Any] = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
    except ValueError as exc:
        logger.warning(f"Invalid notification message: {exc}")
        await connection.websocket.send_json({"type": "error", "message": "Invalid message"})
        return

    if data.get("type") != "auth":
        logger.debug(f"Ignoring notification message of type {data.get('type')!r}")
        return

    role = data.get("role")
    if role not in KNOWN_ROLES:
        await connection.websocket.send_json({"type": "error", "message": "Unknown role"})
        return

    user_id = data.get("userId")
    registry.identify(connection, str(user_id) if user_id is not None else None, role)
    logger.info(f"Notification client identified as {role} (user {user_id})")
    await connection.websocket.send_json({"type": "authenticated", "role": role})
