"""
Realtime socket for the chat widget and the admin console.

    /ws/agent?role=visitor&room=<room id>
    /ws/agent?role=admin&token=<admin JWT>

One JSON text frame per event, shaped as described in agent.events. Binary
frames, frames that are not JSON or fail validation, frames over the
per-connection message rate and events not allowed for the connection's
role are dropped silently.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from agent.events import ClientRole
from agent.hub import Connection
from middleware.rate_limit import check_ws_connection_limit, check_ws_message_limit, get_client_ip
from services.admin_auth import admin_from_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/agent")
async def agent_websocket(websocket: WebSocket):
    """WebSocket endpoint for visitors and admins."""
    await websocket.accept()

    client_ip = get_client_ip(websocket)
    allowed, error_msg = await check_ws_connection_limit(client_ip)
    if not allowed:
        logger.warning(f"WS connection rate limited: {client_ip} ({error_msg})")
        await websocket.close(code=1008, reason="Rate limit exceeded")
        return

    params = websocket.query_params
    role = ClientRole.parse(params.get("role"))
    if role is None:
        logger.info(f"WS rejected from {client_ip}: unknown role {params.get('role')!r}")
        await websocket.close(code=1008, reason="Unknown role")
        return

    if role == ClientRole.ADMIN:
        admin = admin_from_token(params.get("token"))
        if admin is None:
            logger.warning(f"WS admin rejected from {client_ip}: missing or invalid token")
            await websocket.close(code=1008, reason="Admin token required")
            return
        logger.info(f"Admin {admin['username']} connected from {client_ip}")

    room = (params.get("room") or "").strip() or None
    hub = websocket.app.state.agent.hub
    conn = Connection(websocket, role, room=room if role == ClientRole.VISITOR else None)

    try:
        await hub.connect(conn)

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                logger.debug(f"Dropped binary frame from {conn}")
                continue

            allowed, _ = await check_ws_message_limit(conn.id)
            if not allowed:
                continue

            try:
                data = json.loads(raw)
            except ValueError:
                logger.debug(f"Dropped non-JSON frame from {conn}")
                continue

            await hub.handle(conn, data)

    except WebSocketDisconnect:
        logger.info(f"WS disconnected: {conn}")
    finally:
        hub.disconnect(conn)
