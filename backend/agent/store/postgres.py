"""
PostgreSQL chat store (asyncpg through DatabaseManager).

Room creation relies on INSERT ... ON CONFLICT so concurrent first messages
to the same room id cannot create duplicates.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from agent.models import (
    PRESENCE_KEY,
    InboxItem,
    InboxStatus,
    Message,
    MessageRole,
    Page,
    PresenceRecord,
    Room,
    utc_now,
)
from agent.store.base import ChatStore
from services.database import DatabaseManager

logger = logging.getLogger(__name__)

_UPSERT_ROOM = """
    INSERT INTO chat_rooms (room_id, last_message_at, unread_count, created_at)
    VALUES ($1, $2, $3, $2)
    ON CONFLICT (room_id) DO UPDATE SET
        last_message_at = EXCLUDED.last_message_at,
        unread_count = CASE
            WHEN $4::boolean THEN 0
            ELSE chat_rooms.unread_count + $3
        END
"""

_INSERT_MESSAGE = """
    INSERT INTO chat_messages (room_id, role, text, ts)
    VALUES ($1, $2, $3, $4)
    RETURNING id, room_id, role, text, ts
"""

_ROOM_FILTER = "($1::text = '' OR strpos(lower(room_id), lower($1::text)) > 0)"


def _room(row: Dict[str, Any]) -> Room:
    return Room(
        room_id=row["room_id"],
        last_message_at=row["last_message_at"],
        unread_count=row["unread_count"],
        created_at=row["created_at"],
    )


def _message(row: Dict[str, Any]) -> Message:
    return Message(
        id=row["id"],
        room_id=row["room_id"],
        role=MessageRole(row["role"]),
        text=row["text"],
        ts=row["ts"],
    )


def _inbox_item(row: Dict[str, Any]) -> InboxItem:
    return InboxItem(
        id=row["id"],
        room=row["room"],
        email=row["email"],
        question=row["question"],
        status=InboxStatus(row["status"]),
        created_at=row["created_at"],
    )


class PostgresChatStore(ChatStore):
    backend = "postgresql"

    def __init__(self, db: DatabaseManager):
        self.db = db

    # === Presence ===

    async def ensure_presence(self) -> PresenceRecord:
        await self.db.execute(
            "INSERT INTO agent_presence (key, online, updated_at) VALUES ($1, FALSE, NOW()) "
            "ON CONFLICT (key) DO NOTHING",
            PRESENCE_KEY,
        )
        return await self.get_presence()

    async def get_presence(self) -> PresenceRecord:
        row = await self.db.fetchrow(
            "SELECT key, online, updated_at FROM agent_presence WHERE key = $1",
            PRESENCE_KEY,
        )
        if not row:
            return PresenceRecord(online=False)
        return PresenceRecord(online=row["online"], updated_at=row["updated_at"], key=row["key"])

    async def set_presence(self, online: bool) -> PresenceRecord:
        row = await self.db.fetchrow(
            "INSERT INTO agent_presence (key, online, updated_at) VALUES ($1, $2, $3) "
            "ON CONFLICT (key) DO UPDATE SET online = EXCLUDED.online, updated_at = EXCLUDED.updated_at "
            "RETURNING key, online, updated_at",
            PRESENCE_KEY,
            bool(online),
            utc_now(),
        )
        return PresenceRecord(online=row["online"], updated_at=row["updated_at"], key=row["key"])

    # === Rooms and messages ===

    async def append_message(self, room_id: str, role: MessageRole, text: str) -> Message:
        now = utc_now()
        increment = 1 if role == MessageRole.VISITOR else 0
        reset = role == MessageRole.ADMIN
        async with self.db.acquire() as conn:
            async with conn.transaction():
                await conn.execute(_UPSERT_ROOM, room_id, now, increment, reset)
                row = await conn.fetchrow(_INSERT_MESSAGE, room_id, role.value, text, now)
        return _message(dict(row))

    async def get_room(self, room_id: str) -> Optional[Room]:
        row = await self.db.fetchrow(
            "SELECT room_id, last_message_at, unread_count, created_at FROM chat_rooms WHERE room_id = $1",
            room_id,
        )
        return _room(row) if row else None

    async def list_rooms(self, page: int, limit: int, search: str = "") -> Page[Room]:
        needle = (search or "").strip()
        result = Page(items=[], page=page, limit=limit, total=0)
        result.total = await self.db.fetchval(
            f"SELECT COUNT(*) FROM chat_rooms WHERE {_ROOM_FILTER}", needle
        )
        rows = await self.db.fetch(
            "SELECT room_id, last_message_at, unread_count, created_at FROM chat_rooms "
            f"WHERE {_ROOM_FILTER} ORDER BY last_message_at DESC, room_id LIMIT $2 OFFSET $3",
            needle,
            limit,
            result.offset,
        )
        result.items = [_room(r) for r in rows]
        return result

    async def list_messages(
        self, room_id: str, page: int, limit: int, mark_read: bool = True
    ) -> Page[Message]:
        result = Page(items=[], page=page, limit=limit, total=0)
        result.total = await self.db.fetchval(
            "SELECT COUNT(*) FROM chat_messages WHERE room_id = $1", room_id
        )
        rows = await self.db.fetch(
            "SELECT id, room_id, role, text, ts FROM chat_messages WHERE room_id = $1 "
            "ORDER BY ts ASC, id ASC LIMIT $2 OFFSET $3",
            room_id,
            limit,
            result.offset,
        )
        result.items = [_message(r) for r in rows]
        if mark_read:
            await self.db.execute("UPDATE chat_rooms SET unread_count = 0 WHERE room_id = $1", room_id)
        return result

    async def all_messages(self, room_id: str) -> List[Message]:
        rows = await self.db.fetch(
            "SELECT id, room_id, role, text, ts FROM chat_messages WHERE room_id = $1 ORDER BY ts ASC, id ASC",
            room_id,
        )
        return [_message(r) for r in rows]

    async def delete_room(self, room_id: str) -> None:
        async with self.db.acquire() as conn:
            async with conn.transaction():
                deleted = await conn.execute("DELETE FROM chat_messages WHERE room_id = $1", room_id)
                await conn.execute("DELETE FROM chat_rooms WHERE room_id = $1", room_id)
        logger.info(f"Deleted room {room_id} ({deleted})")

    # === Inbox ===

    async def enqueue_inbox(self, room: str, email: str, question: str) -> InboxItem:
        row = await self.db.fetchrow(
            "INSERT INTO inbox_items (id, room, email, question, status, created_at) "
            "VALUES ($1, $2, $3, $4, $5, $6) "
            "RETURNING id, room, email, question, status, created_at",
            uuid.uuid4().hex,
            room,
            email,
            question,
            InboxStatus.QUEUED.value,
            utc_now(),
        )
        return _inbox_item(row)

    async def list_inbox(
        self, page: int, limit: int, status: Optional[InboxStatus] = None
    ) -> Page[InboxItem]:
        status_value = status.value if status else ""
        where = "($1::text = '' OR status = $1::text)"
        result = Page(items=[], page=page, limit=limit, total=0)
        result.total = await self.db.fetchval(f"SELECT COUNT(*) FROM inbox_items WHERE {where}", status_value)
        rows = await self.db.fetch(
            "SELECT id, room, email, question, status, created_at FROM inbox_items "
            f"WHERE {where} ORDER BY created_at DESC LIMIT $2 OFFSET $3",
            status_value,
            limit,
            result.offset,
        )
        result.items = [_inbox_item(r) for r in rows]
        return result

    async def update_inbox_status(self, item_id: str, status: InboxStatus) -> Optional[InboxItem]:
        row = await self.db.fetchrow(
            "UPDATE inbox_items SET status = $2 WHERE id = $1 "
            "RETURNING id, room, email, question, status, created_at",
            item_id,
            status.value,
        )
        return _inbox_item(row) if row else None
