"""
Agent HTTP endpoints: presence, automatic answers, offline inbox and the
admin console (rooms, messages, transcript forwarding).

Mounted under /api/agent. Admin endpoints require a bearer token with the
admin role; everything else is public.
"""

import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator

from agent.answers import Found
from agent.models import (
    DEFAULT_MESSAGE_LIMIT,
    MAX_MESSAGE_LIMIT,
    InboxStatus,
    clamp_paging,
)
from agent.runtime import AgentRuntime
from agent.transcript import default_subject, render_transcript
from errors import ConflictError, NotFoundError, ValidationError
from logging_config import log_answer
from services.admin_auth import verify_admin

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SEARCH_MIN_CHARS = 2
SEARCH_MAX_CHARS = 200


def get_runtime(request: Request) -> AgentRuntime:
    return request.app.state.agent


def _clean_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("must be a valid email address")
    return email


# =============================================================================
# Request models
# =============================================================================


class StatusUpdate(BaseModel):
    online: bool


class InboxCapture(BaseModel):
    room: str = Field(min_length=6, max_length=200)
    email: str
    question: str = Field(min_length=6, max_length=2000)

    @field_validator("room", "question", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _clean_email(value)


class InboxStatusUpdate(BaseModel):
    status: str


class ForwardRequest(BaseModel):
    to: str
    subject: Optional[str] = Field(default=None, max_length=200)

    @field_validator("to")
    @classmethod
    def _email(cls, value: str) -> str:
        return _clean_email(value)


# =============================================================================
# Presence
# =============================================================================


@router.get("/status")
async def get_status(runtime: AgentRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    """Current admin presence (public)."""
    return {"online": await runtime.presence.get()}


@router.put("/status")
async def set_status(
    request: StatusUpdate,
    current_user: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Set admin presence and broadcast it to every connected client."""
    online = await runtime.presence.set(request.online)
    logger.info(f"Presence set to {'online' if online else 'offline'} by {current_user['username']}")
    return {"online": online}


# =============================================================================
# Automatic answers
# =============================================================================


@router.get("/search")
async def search(
    q: str = Query(""),
    room: Optional[str] = Query(None),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Resolve a visitor question. An empty object means: offer chat or the inbox."""
    query = q.strip()
    if not SEARCH_MIN_CHARS <= len(query) <= SEARCH_MAX_CHARS:
        raise ValidationError(
            f"Query must be {SEARCH_MIN_CHARS}-{SEARCH_MAX_CHARS} characters",
            parameter="q",
            received=str(len(query)),
        )

    result = await runtime.resolver.resolve(query)
    if not isinstance(result, Found):
        log_answer(logger, "escalate", False, room=room or "-")
    return result.to_dict()


# =============================================================================
# Offline inbox
# =============================================================================


@router.post("/inbox")
async def capture_inbox(
    request: InboxCapture,
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Queue a question for follow-up by email; refused while an admin is online."""
    if await runtime.presence.get():
        raise ConflictError("Admin is online; continue in chat.")

    item = await runtime.store.enqueue_inbox(request.room, request.email, request.question)
    logger.info(f"Inbox item {item.id} queued for room {item.room}")
    return {"ok": True, "id": item.id}


@router.get("/inbox")
async def list_inbox(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    _: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Inbox items, newest first, optionally filtered by status."""
    status_filter = None
    if status:
        status_filter = InboxStatus.parse(status)
        if status_filter is None:
            raise ValidationError(
                "Invalid status",
                details="Must be queued, in_progress or done",
                parameter="status",
                received=status,
            )

    page, limit = clamp_paging(page, limit)
    result = await runtime.store.list_inbox(page, limit, status_filter)
    return result.to_dict()


@router.put("/inbox/{item_id}")
async def update_inbox(
    item_id: str,
    request: InboxStatusUpdate,
    _: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Move an inbox item to queued, in_progress or done."""
    status = InboxStatus.parse(request.status)
    if status is None:
        raise ValidationError(
            "Invalid status",
            details="Must be queued, in_progress or done",
            parameter="status",
            received=request.status,
        )

    item = await runtime.store.update_inbox_status(item_id, status)
    if item is None:
        raise NotFoundError("Inbox item not found", resource_type="inbox_item", resource_id=item_id)
    return item.to_dict()


# =============================================================================
# Rooms (admin console)
# =============================================================================


@router.get("/rooms")
async def list_rooms(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    search: str = Query(""),
    _: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Rooms with the most recent activity first."""
    page, limit = clamp_paging(page, limit)
    result = await runtime.store.list_rooms(page, limit, search.strip())
    return result.to_dict()


@router.get("/rooms/{room_id}/messages")
async def list_messages(
    room_id: str,
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    _: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Messages in timestamp order. Reading marks the room as read."""
    page, limit = clamp_paging(page, limit, DEFAULT_MESSAGE_LIMIT, MAX_MESSAGE_LIMIT)
    result = await runtime.store.list_messages(room_id, page, limit, mark_read=True)
    return result.to_dict()


@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: str,
    current_user: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    await runtime.store.delete_room(room_id)
    logger.info(f"Room {room_id} deleted by {current_user['username']}")
    return {"ok": True}


@router.post("/rooms/{room_id}/forward")
async def forward_transcript(
    room_id: str,
    request: ForwardRequest,
    _: dict = Depends(verify_admin),
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Email the room's plain-text transcript. SMTP failures surface as 502."""
    subject = (request.subject or "").strip() or default_subject(room_id)
    messages = await runtime.store.all_messages(room_id)
    body = render_transcript(room_id, messages, subject=subject)

    message_id = await runtime.mailer.send(request.to, subject, body)
    logger.info(f"Transcript for room {room_id} ({len(messages)} messages) sent to {request.to}")
    return {"ok": True, "message_id": message_id}
