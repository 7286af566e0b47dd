"""
Realtime hub: channel membership and fan-out for the chat widget and the
admin console.

Channels:
    "admins"      every admin connection
    "room:<id>"   the visitor connection(s) of one conversation

Visitors sit in at most one room channel at a time. Inbound events are
parsed, role-gated, then dispatched; malformed, gated-out and failing
events are dropped without any reply to the sender.
"""

import logging
import uuid
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import BaseModel

from agent.events import (
    AdminReply,
    AdminRequestEmail,
    AgentReply,
    ClientRole,
    JoinRoom,
    Outbound,
    PresenceQuery,
    VisitorEnd,
    VisitorMessage,
    frame,
    is_allowed,
    parse_event,
)
from agent.models import Message, MessageRole, utc_now
from agent.presence import PresenceService
from agent.store.base import ChatStore
from errors import handle_event_errors
from logging_config import log_message_in, log_message_out

logger = logging.getLogger(__name__)

ADMINS_CHANNEL = "admins"
EMAIL_REQUEST_TEXT = "Admin requested your email to follow-up."
EMAIL_REQUEST_NOTICE = "Email request sent to the user."


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


class Connection:
    """One connected socket. `websocket` only needs an async send_json()."""

    def __init__(self, websocket: Any, role: ClientRole, room: Optional[str] = None):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.role = role
        self.room = room
        self.channels: Set[str] = set()

    async def send(self, payload: Dict[str, Any]) -> bool:
        try:
            await self.websocket.send_json(payload)
            return True
        except Exception as e:
            # Peer went away between the membership snapshot and the send
            logger.debug(f"Send to {self.id} failed: {type(e).__name__}: {e}")
            return False

    def __repr__(self) -> str:
        return f"Connection({self.id[:8]}, role={self.role.value}, room={self.room!r})"


class RealtimeHub:
    def __init__(self, store: ChatStore, presence: PresenceService):
        self.store = store
        self.presence = presence
        self._connections: Dict[str, Connection] = {}
        self._channels: Dict[str, Set[Connection]] = defaultdict(set)
        self._handlers: Dict[type, Callable[[Connection, BaseModel], Awaitable[Any]]] = {
            VisitorMessage: handle_event_errors("visitor_message", logger)(self._on_visitor_message),
            AdminReply: handle_event_errors("admin_reply", logger)(self._on_admin_reply),
            AgentReply: handle_event_errors("agent_reply", logger)(self._on_agent_reply),
            AdminRequestEmail: handle_event_errors("admin_request_email", logger)(self._on_request_email),
            VisitorEnd: handle_event_errors("visitor_end", logger)(self._on_visitor_end),
            JoinRoom: handle_event_errors("join_room", logger)(self._on_join_room),
            PresenceQuery: handle_event_errors("presence_query", logger)(self._on_presence_query),
        }

    # === Membership ===

    async def connect(self, conn: Connection) -> None:
        """Register a connection, join its channels and send it the current presence."""
        self._connections[conn.id] = conn
        if conn.role == ClientRole.ADMIN:
            self._join(conn, ADMINS_CHANNEL)
        elif conn.room:
            self._join(conn, room_channel(conn.room))
        logger.info(f"Realtime connect: {conn} ({len(self._connections)} open)")
        await self._handlers[PresenceQuery](conn, PresenceQuery(event="presence_query"))

    def disconnect(self, conn: Connection) -> None:
        self._connections.pop(conn.id, None)
        for channel in list(conn.channels):
            self._leave(conn, channel)
        logger.info(f"Realtime disconnect: {conn} ({len(self._connections)} open)")

    def join_room(self, conn: Connection, room_id: str) -> None:
        """Move a visitor connection into a room, leaving any previous room."""
        for channel in [c for c in conn.channels if c.startswith("room:")]:
            self._leave(conn, channel)
        conn.room = room_id
        self._join(conn, room_channel(room_id))

    def _join(self, conn: Connection, channel: str) -> None:
        self._channels[channel].add(conn)
        conn.channels.add(channel)

    def _leave(self, conn: Connection, channel: str) -> None:
        members = self._channels.get(channel)
        if members is not None:
            members.discard(conn)
            if not members:
                del self._channels[channel]
        conn.channels.discard(channel)

    def members(self, channel: str) -> Set[Connection]:
        return set(self._channels.get(channel, ()))

    # === Fan-out ===

    async def emit(self, channel: str, payload: Dict[str, Any]) -> int:
        """Send to every member of a channel. Returns successful deliveries."""
        delivered = 0
        for conn in list(self._channels.get(channel, ())):
            if await conn.send(payload):
                delivered += 1
        return delivered

    async def broadcast_all(self, payload: Dict[str, Any]) -> int:
        delivered = 0
        for conn in list(self._connections.values()):
            if await conn.send(payload):
                delivered += 1
        return delivered

    async def broadcast_presence(self, online: bool) -> int:
        """Presence broadcaster attached to PresenceService."""
        return await self.broadcast_all(frame(Outbound.ADMIN_STATUS, online=bool(online)))

    # === Inbound dispatch ===

    async def handle(self, conn: Connection, data: Any) -> None:
        event = parse_event(data)
        if event is None:
            return
        if not is_allowed(event, conn.role):
            logger.debug(f"Dropped {type(event).__name__} from {conn.role.value} connection {conn.id[:8]}")
            return
        await self._handlers[type(event)](conn, event)

    async def _on_visitor_message(self, conn: Connection, event: VisitorMessage) -> None:
        await self.visitor_message(event.room, event.text)

    async def _on_admin_reply(self, conn: Connection, event: AdminReply) -> None:
        await self.admin_reply(event.room, event.text)

    async def _on_agent_reply(self, conn: Connection, event: AgentReply) -> None:
        await self.agent_reply(event.room, event.text)

    async def _on_request_email(self, conn: Connection, event: AdminRequestEmail) -> None:
        await self.request_email(event.room)

    async def _on_visitor_end(self, conn: Connection, event: VisitorEnd) -> None:
        await self.visitor_end(event.room)

    async def _on_join_room(self, conn: Connection, event: JoinRoom) -> None:
        self.join_room(conn, event.room)

    async def _on_presence_query(self, conn: Connection, event: PresenceQuery) -> None:
        await self.presence_query(conn)

    # === Operations ===

    async def visitor_message(self, room: str, text: str) -> Message:
        message = await self.store.append_message(room, MessageRole.VISITOR, text)
        log_message_in(logger, room, text)
        payload = {"room": room, "text": message.text, "ts": message.ts}
        await self.emit(ADMINS_CHANNEL, frame(Outbound.VISITOR_MESSAGE, **payload))
        await self.emit(room_channel(room), frame(Outbound.ECHO_VISITOR, **payload))
        return message

    async def admin_reply(self, room: str, text: str) -> Message:
        # append_message resets the room's unread count for admin messages
        message = await self.store.append_message(room, MessageRole.ADMIN, text)
        log_message_out(logger, room, "admin", text)
        await self.emit(
            room_channel(room), frame(Outbound.ADMIN_REPLY, room=room, text=message.text, ts=message.ts)
        )
        return message

    async def agent_reply(self, room: str, text: str) -> Message:
        message = await self.store.append_message(room, MessageRole.AGENT, text)
        log_message_out(logger, room, "agent", text)
        await self.emit(
            room_channel(room), frame(Outbound.AGENT_REPLY, room=room, text=message.text, ts=message.ts)
        )
        return message

    async def request_email(self, room: str) -> Message:
        message = await self.store.append_message(room, MessageRole.SYSTEM, EMAIL_REQUEST_TEXT)
        log_message_out(logger, room, "system", EMAIL_REQUEST_TEXT)
        await self.emit(room_channel(room), frame(Outbound.REQUEST_EMAIL, room=room, ts=message.ts))
        await self.emit(
            ADMINS_CHANNEL, frame(Outbound.SYSTEM, room=room, text=EMAIL_REQUEST_NOTICE, ts=message.ts)
        )
        return message

    async def visitor_end(self, room: str) -> None:
        payload = frame(Outbound.VISITOR_ENDED, room=room, ts=utc_now())
        await self.emit(room_channel(room), payload)
        await self.emit(ADMINS_CHANNEL, payload)
        logger.info(f"Visitor ended chat in room {room}")

    async def presence_query(self, conn: Connection) -> bool:
        online = await self.presence.get()
        await conn.send(frame(Outbound.ADMIN_STATUS, online=online))
        return online

    def stats(self) -> Dict[str, int]:
        admins = sum(1 for c in self._connections.values() if c.role == ClientRole.ADMIN)
        return {
            "connections": len(self._connections),
            "admins": admins,
            "visitors": len(self._connections) - admins,
            "rooms": sum(1 for channel in self._channels if channel.startswith("room:")),
        }
