"""Plain-text chat transcripts for email forwarding."""

from typing import Iterable, Optional

from agent.models import Message, MessageRole

SENDER_LABELS = {
    MessageRole.VISITOR: "Visitor",
    MessageRole.ADMIN: "Admin",
    MessageRole.AGENT: "Agent",
    MessageRole.SYSTEM: "System",
}


def default_subject(room_id: str) -> str:
    return f"Chat transcript - Room {room_id}"


def render_transcript(room_id: str, messages: Iterable[Message], subject: Optional[str] = None) -> str:
    """Render one line per message: `[timestamp] Sender: text`."""
    lines = [subject or default_subject(room_id), "=" * 40, ""]
    count = 0
    for message in messages:
        when = message.ts.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
        lines.append(f"[{when}] {SENDER_LABELS[message.role]}: {message.text}")
        count += 1
    if count == 0:
        lines.append("No messages")
    lines.extend(["", "Generated by the Khisima live agent."])
    return "\n".join(lines)
