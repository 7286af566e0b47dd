"""
In-memory chat store.

Used when PostgreSQL is disabled or unreachable, and as the test backend.
No method awaits between reading and writing its state, so each operation
is atomic with respect to other coroutines on the event loop.
"""

import logging
import uuid
from itertools import count
from typing import Dict, List, Optional

from agent.models import (
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

logger = logging.getLogger(__name__)


class MemoryChatStore(ChatStore):
    backend = "memory"

    def __init__(self):
        self._presence: Optional[PresenceRecord] = None
        self._rooms: Dict[str, Room] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._inbox: List[InboxItem] = []
        self._message_ids = count(1)

    # === Presence ===

    async def ensure_presence(self) -> PresenceRecord:
        if self._presence is None:
            self._presence = PresenceRecord(online=False)
        return self._presence

    async def get_presence(self) -> PresenceRecord:
        return self._presence or PresenceRecord(online=False)

    async def set_presence(self, online: bool) -> PresenceRecord:
        self._presence = PresenceRecord(online=bool(online), updated_at=utc_now())
        return self._presence

    # === Rooms and messages ===

    async def append_message(self, room_id: str, role: MessageRole, text: str) -> Message:
        now = utc_now()
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id, last_message_at=now, created_at=now)
            self._rooms[room_id] = room

        room.last_message_at = now
        if role == MessageRole.VISITOR:
            room.unread_count += 1
        elif role == MessageRole.ADMIN:
            room.unread_count = 0

        message = Message(room_id=room_id, role=role, text=text, ts=now, id=next(self._message_ids))
        self._messages.setdefault(room_id, []).append(message)
        return message

    async def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    async def list_rooms(self, page: int, limit: int, search: str = "") -> Page[Room]:
        needle = (search or "").strip().lower()
        rooms = [r for r in self._rooms.values() if needle in r.room_id.lower()]
        rooms.sort(key=lambda r: r.last_message_at, reverse=True)
        result = Page(items=[], page=page, limit=limit, total=len(rooms))
        result.items = rooms[result.offset:result.offset + limit]
        return result

    async def list_messages(
        self, room_id: str, page: int, limit: int, mark_read: bool = True
    ) -> Page[Message]:
        messages = await self.all_messages(room_id)
        result = Page(items=[], page=page, limit=limit, total=len(messages))
        result.items = messages[result.offset:result.offset + limit]
        if mark_read and room_id in self._rooms:
            self._rooms[room_id].unread_count = 0
        return result

    async def all_messages(self, room_id: str) -> List[Message]:
        # sorted() is stable, so equal timestamps keep append order
        return sorted(self._messages.get(room_id, []), key=lambda m: m.ts)

    async def delete_room(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)
        removed = self._messages.pop(room_id, [])
        logger.info(f"Deleted room {room_id} ({len(removed)} messages)")

    # === Inbox ===

    async def enqueue_inbox(self, room: str, email: str, question: str) -> InboxItem:
        item = InboxItem(id=uuid.uuid4().hex, room=room, email=email, question=question)
        self._inbox.append(item)
        return item

    async def list_inbox(
        self, page: int, limit: int, status: Optional[InboxStatus] = None
    ) -> Page[InboxItem]:
        items = [i for i in reversed(self._inbox) if status is None or i.status == status]
        items.sort(key=lambda i: i.created_at, reverse=True)
        result = Page(items=[], page=page, limit=limit, total=len(items))
        result.items = items[result.offset:result.offset + limit]
        return result

    async def update_inbox_status(self, item_id: str, status: InboxStatus) -> Optional[InboxItem]:
        for item in self._inbox:
            if item.id == item_id:
                item.status = status
                return item
        return None
