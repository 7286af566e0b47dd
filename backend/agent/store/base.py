"""
Storage interface shared by the in-memory and PostgreSQL chat stores.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from agent.models import (
    InboxItem,
    InboxStatus,
    Message,
    MessageRole,
    Page,
    PresenceRecord,
    Room,
)


class ChatStore(ABC):
    """Presence singleton, rooms, messages and the offline inbox.

    Implementations must make append_message atomic per room: a room is
    created or updated with a single insert-or-update, never read-then-write.

    Unread bookkeeping on append:
        visitor -> unread_count + 1
        admin   -> unread_count reset to 0
        agent / system -> unchanged
    Every append moves last_message_at forward.
    """

    backend: str = "abstract"

    # === Presence ===

    @abstractmethod
    async def ensure_presence(self) -> PresenceRecord:
        """Create the singleton presence record (offline) if it does not exist."""

    @abstractmethod
    async def get_presence(self) -> PresenceRecord:
        """Read the singleton record; an absent record reads as offline."""

    @abstractmethod
    async def set_presence(self, online: bool) -> PresenceRecord:
        """Upsert the singleton record."""

    # === Rooms and messages ===

    @abstractmethod
    async def append_message(self, room_id: str, role: MessageRole, text: str) -> Message:
        """Upsert the room, append the message and update unread bookkeeping."""

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[Room]:
        ...

    @abstractmethod
    async def list_rooms(self, page: int, limit: int, search: str = "") -> Page[Room]:
        """Rooms by last_message_at descending, optionally filtered by a
        case-insensitive substring of the room id."""

    @abstractmethod
    async def list_messages(
        self, room_id: str, page: int, limit: int, mark_read: bool = True
    ) -> Page[Message]:
        """Messages by timestamp ascending (ties keep insertion order).

        With mark_read the room's unread_count is reset to 0.
        """

    @abstractmethod
    async def all_messages(self, room_id: str) -> List[Message]:
        """Full message log of a room in timestamp order, without side effects."""

    @abstractmethod
    async def delete_room(self, room_id: str) -> None:
        """Delete a room and its messages. Deleting an unknown room is not an error."""

    # === Inbox ===

    @abstractmethod
    async def enqueue_inbox(self, room: str, email: str, question: str) -> InboxItem:
        ...

    @abstractmethod
    async def list_inbox(
        self, page: int, limit: int, status: Optional[InboxStatus] = None
    ) -> Page[InboxItem]:
        """Inbox items by created_at descending."""

    @abstractmethod
    async def update_inbox_status(self, item_id: str, status: InboxStatus) -> Optional[InboxItem]:
        """Set an item's status; None when the id is unknown."""

    async def close(self) -> None:
        return None
