"""
Chat domain records: presence, rooms, messages, inbox items, pages.

Rooms and messages are correlated only by the room id string; nothing
enforces that a message's room exists.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

PRESENCE_KEY = "global"

# Pagination bounds (rooms/inbox share one, messages have their own)
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_MESSAGE_LIMIT = 200
MAX_MESSAGE_LIMIT = 500

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class MessageRole(str, Enum):
    VISITOR = "visitor"
    AGENT = "agent"
    ADMIN = "admin"
    SYSTEM = "system"


class InboxStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["InboxStatus"]:
        """Return the status for a raw string, or None if it is not one of the three."""
        try:
            return cls((value or "").strip())
        except ValueError:
            return None


@dataclass
class PresenceRecord:
    online: bool = False
    updated_at: datetime = field(default_factory=utc_now)
    key: str = PRESENCE_KEY

    def to_dict(self) -> Dict[str, Any]:
        return {"online": self.online, "updated_at": isoformat(self.updated_at)}


@dataclass
class Room:
    room_id: str
    last_message_at: datetime = field(default_factory=utc_now)
    unread_count: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "room_id": self.room_id,
            "last_message_at": isoformat(self.last_message_at),
            "unread_count": self.unread_count,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class Message:
    room_id: str
    role: MessageRole
    text: str
    ts: datetime = field(default_factory=utc_now)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "role": self.role.value,
            "text": self.text,
            "ts": isoformat(self.ts),
        }


@dataclass
class InboxItem:
    id: str
    room: str
    email: str
    question: str
    status: InboxStatus = InboxStatus.QUEUED
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room": self.room,
            "email": self.email,
            "question": self.question,
            "status": self.status.value,
            "created_at": isoformat(self.created_at),
        }


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
        }


def clamp_paging(
    page: Optional[int],
    limit: Optional[int],
    default_limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> Tuple[int, int]:
    """Clamp page to >= 1 and limit to 1..max_limit (missing values use defaults)."""
    page = max(1, page or 1)
    limit = default_limit if limit is None else limit
    return page, max(1, min(max_limit, limit))
