"""
Realtime event contract.

Inbound frames are a closed union discriminated on "event"; anything that
does not validate (unknown event, missing room, blank text) parses to None
and is dropped by the hub. Outbound frames are flat dicts:
{"event": name, ...payload}.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, Literal, Optional, Union

from pydantic import BaseModel, Field, StringConstraints, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

RoomId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
MessageText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ClientRole(str, Enum):
    VISITOR = "visitor"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ClientRole"]:
        raw = (value or "").strip().lower()
        if raw == "user":  # legacy widget name for visitors
            raw = cls.VISITOR.value
        try:
            return cls(raw)
        except ValueError:
            return None


class _TextEvent(BaseModel):
    room: RoomId
    text: MessageText

    @field_validator("text")
    @classmethod
    def _limit_length(cls, value: str) -> str:
        from config import runtime_config

        if len(value) > runtime_config.max_message_length:
            raise ValueError(f"text longer than {runtime_config.max_message_length} characters")
        return value


class VisitorMessage(_TextEvent):
    event: Literal["visitor_message"]


class AdminReply(_TextEvent):
    event: Literal["admin_reply"]


class AgentReply(_TextEvent):
    event: Literal["agent_reply"]


class AdminRequestEmail(BaseModel):
    event: Literal["admin_request_email"]
    room: RoomId


class VisitorEnd(BaseModel):
    event: Literal["visitor_end"]
    room: RoomId


class JoinRoom(BaseModel):
    event: Literal["join_room"]
    room: RoomId


class PresenceQuery(BaseModel):
    event: Literal["presence_query"]


InboundEvent = Annotated[
    Union[VisitorMessage, AdminReply, AgentReply, AdminRequestEmail, VisitorEnd, JoinRoom, PresenceQuery],
    Field(discriminator="event"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundEvent)

# Which connection roles may send each event
ALLOWED_ROLES: Dict[type, FrozenSet[ClientRole]] = {
    VisitorMessage: frozenset({ClientRole.VISITOR}),
    VisitorEnd: frozenset({ClientRole.VISITOR}),
    JoinRoom: frozenset({ClientRole.VISITOR}),
    AdminReply: frozenset({ClientRole.ADMIN}),
    AdminRequestEmail: frozenset({ClientRole.ADMIN}),
    AgentReply: frozenset({ClientRole.ADMIN}),
    PresenceQuery: frozenset({ClientRole.VISITOR, ClientRole.ADMIN}),
}


def parse_event(data: Any) -> Optional[BaseModel]:
    """Validate one inbound frame; None if it is not a well-formed event."""
    if not isinstance(data, dict):
        return None
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        logger.debug(f"Dropped malformed event {data.get('event')!r}: {e.error_count()} error(s)")
        return None


def is_allowed(event: BaseModel, role: ClientRole) -> bool:
    return role in ALLOWED_ROLES.get(type(event), frozenset())


# === Outbound ===

class Outbound:
    ADMIN_STATUS = "admin_status"
    VISITOR_MESSAGE = "visitor_message"
    ECHO_VISITOR = "echo_visitor"
    ADMIN_REPLY = "admin_reply"
    AGENT_REPLY = "agent_reply"
    REQUEST_EMAIL = "request_email"
    SYSTEM = "system"
    VISITOR_ENDED = "visitor_ended"


def frame(event: str, **payload: Any) -> Dict[str, Any]:
    """Build an outbound frame; datetimes are sent as ISO-8601 strings."""
    body: Dict[str, Any] = {"event": event}
    for key, value in payload.items():
        body[key] = value.isoformat() if isinstance(value, datetime) else value
    return body
