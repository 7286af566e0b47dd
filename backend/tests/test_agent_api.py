"""
HTTP tests for /api/agent (TestClient with the in-memory store).
"""

import asyncio
from unittest.mock import AsyncMock, patch

from agent.models import MessageRole
from errors import ExternalServiceError

INBOX_BODY = {"room": "room-123456", "email": "  Visitor@Example.COM ", "question": "  Need a quote for Kinyarwanda  "}


def _append(runtime, room_id, role, text):
    return asyncio.run(runtime.store.append_message(room_id, role, text))


class TestStatus:
    """Test presence endpoints."""

    def test_public_get(self, client):
        """Presence starts offline and is public."""
        resp = client.get("/api/agent/status")
        assert resp.status_code == 200
        assert resp.json() == {"online": False}

    def test_admin_put(self, client, admin_headers):
        """Admins can toggle presence; the new value is returned and readable."""
        resp = client.put("/api/agent/status", json={"online": True}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"online": True}
        assert client.get("/api/agent/status").json() == {"online": True}

    def test_put_requires_auth(self, client):
        """No token is 401 and nothing changes."""
        resp = client.put("/api/agent/status", json={"online": True})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "AUTH_REQUIRED"
        assert client.get("/api/agent/status").json() == {"online": False}

    def test_put_rejects_bad_token(self, client):
        """A garbage token is 401 AUTH_INVALID_TOKEN."""
        resp = client.put("/api/agent/status", json={"online": True}, headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "AUTH_INVALID_TOKEN"

    def test_put_rejects_non_admin(self, client, visitor_token):
        """A valid non-admin token is 403."""
        resp = client.put(
            "/api/agent/status", json={"online": True}, headers={"Authorization": f"Bearer {visitor_token}"}
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AUTH_FORBIDDEN"

    def test_put_requires_body(self, client, admin_headers):
        """Missing body is a 400 validation error."""
        resp = client.put("/api/agent/status", json={}, headers=admin_headers)
        assert resp.status_code == 400


class TestSearch:
    """Test the public answer endpoint."""

    def test_greeting(self, client):
        """Greetings are answered by the quick stage."""
        resp = client.get("/api/agent/search", params={"q": "Hello"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "quick"
        assert "Hello" in body["answer"]

    def test_faq(self, client):
        """FAQ questions are answered despite the interrogative."""
        body = client.get("/api/agent/search", params={"q": "What languages do you support?"}).json()
        assert body["source"] == "quick"
        assert "Kinyarwanda" in body["answer"]

    def test_no_match_is_empty_object(self, client):
        """No answer anywhere is an empty object."""
        resp = client.get("/api/agent/search", params={"q": "asdkjasd", "room": "room-1"})
        assert resp.status_code == 200
        assert resp.json() == {}

    def test_query_length(self, client):
        """q must be 2-200 characters after trimming."""
        assert client.get("/api/agent/search", params={"q": " a "}).status_code == 400
        assert client.get("/api/agent/search").status_code == 400
        assert client.get("/api/agent/search", params={"q": "x" * 201}).status_code == 400

    def test_uses_runtime_resolver(self, client, runtime):
        """The endpoint returns whatever the resolver found."""
        from agent.answers import AnswerSource, Found

        found = Found("We're based in Kigali.", AnswerSource.SITE, url="https://www.khisima.com/about-us")
        with patch.object(runtime.resolver, "resolve", AsyncMock(return_value=found)):
            body = client.get("/api/agent/search", params={"q": "where are you"}).json()
        assert body == {
            "answer": "We're based in Kigali.",
            "source": "khisima",
            "url": "https://www.khisima.com/about-us",
        }


class TestInbox:
    """Test offline inbox capture and admin triage."""

    def test_capture_when_offline(self, client, admin_headers):
        """Offline capture succeeds and stores normalized fields."""
        resp = client.post("/api/agent/inbox", json=INBOX_BODY)
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["id"]

        items = client.get("/api/agent/inbox", headers=admin_headers).json()["items"]
        assert len(items) == 1
        assert items[0]["id"] == body["id"]
        assert items[0]["email"] == "visitor@example.com"
        assert items[0]["question"] == "Need a quote for Kinyarwanda"
        assert items[0]["status"] == "queued"

    def test_conflict_when_admin_online(self, client, admin_headers):
        """With an admin online the visitor is sent back to chat."""
        client.put("/api/agent/status", json={"online": True}, headers=admin_headers)

        resp = client.post("/api/agent/inbox", json=INBOX_BODY)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT_ADMIN_ONLINE"
        assert client.get("/api/agent/inbox", headers=admin_headers).json()["total"] == 0

    def test_capture_validation(self, client):
        """Bad email, short room or short question are 400."""
        for override in ({"email": "not-an-email"}, {"room": "abc"}, {"question": "hi"}):
            resp = client.post("/api/agent/inbox", json={**INBOX_BODY, **override})
            assert resp.status_code == 400, override
            assert resp.json()["success"] is False

    def test_list_requires_admin(self, client, visitor_token):
        """Listing is admin-only."""
        assert client.get("/api/agent/inbox").status_code == 401
        resp = client.get("/api/agent/inbox", headers={"Authorization": f"Bearer {visitor_token}"})
        assert resp.status_code == 403

    def test_list_status_filter(self, client, admin_headers):
        """Status filter must be a known state."""
        client.post("/api/agent/inbox", json=INBOX_BODY)
        assert client.get("/api/agent/inbox", params={"status": "queued"}, headers=admin_headers).json()["total"] == 1
        assert client.get("/api/agent/inbox", params={"status": "done"}, headers=admin_headers).json()["total"] == 0

        resp = client.get("/api/agent/inbox", params={"status": "archived"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_list_paging_is_clamped(self, client, admin_headers):
        """Out-of-range paging is clamped rather than rejected."""
        body = client.get("/api/agent/inbox", params={"page": 0, "limit": 1000}, headers=admin_headers).json()
        assert body["page"] == 1
        assert body["limit"] == 100

    def test_update_status(self, client, admin_headers):
        """Admins move items through the workflow."""
        item_id = client.post("/api/agent/inbox", json=INBOX_BODY).json()["id"]

        resp = client.put(f"/api/agent/inbox/{item_id}", json={"status": "in_progress"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "in_progress"

    def test_update_invalid_status(self, client, admin_headers):
        """Unknown states are rejected."""
        item_id = client.post("/api/agent/inbox", json=INBOX_BODY).json()["id"]
        resp = client.put(f"/api/agent/inbox/{item_id}", json={"status": "archived"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_unknown_item(self, client, admin_headers):
        """Unknown ids are 404."""
        resp = client.put("/api/agent/inbox/missing", json={"status": "done"}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND_INBOX_ITEM"


class TestRooms:
    """Test the admin room console."""

    def test_list_and_read(self, client, runtime, admin_headers):
        """Reading messages resets unread, visible on the next room listing."""
        _append(runtime, "room-1", MessageRole.VISITOR, "one")
        _append(runtime, "room-1", MessageRole.VISITOR, "two")

        rooms = client.get("/api/agent/rooms", headers=admin_headers).json()
        assert rooms["total"] == 1
        assert rooms["items"][0]["unread_count"] == 2

        messages = client.get("/api/agent/rooms/room-1/messages", headers=admin_headers).json()
        assert [m["text"] for m in messages["items"]] == ["one", "two"]
        assert messages["limit"] == 200

        rooms = client.get("/api/agent/rooms", headers=admin_headers).json()
        assert rooms["items"][0]["unread_count"] == 0

    def test_search(self, client, runtime, admin_headers):
        """Room search is a case-insensitive substring match."""
        _append(runtime, "Sales-Lead-42", MessageRole.VISITOR, "hi")
        _append(runtime, "support-7", MessageRole.VISITOR, "hi")

        body = client.get("/api/agent/rooms", params={"search": "lead"}, headers=admin_headers).json()
        assert [r["room_id"] for r in body["items"]] == ["Sales-Lead-42"]

    def test_rooms_require_admin(self, client):
        """Room endpoints are admin-only."""
        assert client.get("/api/agent/rooms").status_code == 401
        assert client.get("/api/agent/rooms/room-1/messages").status_code == 401
        assert client.delete("/api/agent/rooms/room-1").status_code == 401

    def test_delete_is_always_ok(self, client, runtime, admin_headers):
        """Deleting cascades and repeating the delete still succeeds."""
        _append(runtime, "room-1", MessageRole.VISITOR, "hi")

        for _ in range(2):
            resp = client.delete("/api/agent/rooms/room-1", headers=admin_headers)
            assert resp.status_code == 200
            assert resp.json() == {"ok": True}

        assert client.get("/api/agent/rooms", headers=admin_headers).json()["total"] == 0
        assert client.get("/api/agent/rooms/room-1/messages", headers=admin_headers).json()["items"] == []


class TestForward:
    """Test transcript forwarding by email."""

    def test_forward(self, client, runtime, admin_headers):
        """The transcript is rendered in order and mailed."""
        _append(runtime, "room-1", MessageRole.VISITOR, "Do you do Wolof?")
        _append(runtime, "room-1", MessageRole.ADMIN, "Yes we do.")

        send = AsyncMock(return_value="<abc@khisima.com>")
        with patch.object(runtime.mailer, "send", send):
            resp = client.post(
                "/api/agent/rooms/room-1/forward", json={"to": "Team@Khisima.com"}, headers=admin_headers
            )

        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "message_id": "<abc@khisima.com>"}

        to, subject, body = send.await_args.args
        assert to == "team@khisima.com"
        assert subject == "Chat transcript - Room room-1"
        assert body.index("Visitor: Do you do Wolof?") < body.index("Admin: Yes we do.")

    def test_custom_subject(self, client, runtime, admin_headers):
        """An explicit subject is used as given."""
        send = AsyncMock(return_value="<id@x>")
        with patch.object(runtime.mailer, "send", send):
            client.post(
                "/api/agent/rooms/room-1/forward",
                json={"to": "a@b.co", "subject": "Lead follow-up"},
                headers=admin_headers,
            )
        assert send.await_args.args[1] == "Lead follow-up"

    def test_bad_address(self, client, admin_headers):
        """Invalid recipients are 400."""
        resp = client.post("/api/agent/rooms/room-1/forward", json={"to": "nobody"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_smtp_failure_is_502(self, client, runtime, admin_headers):
        """Mail server failures surface as 502."""
        failure = AsyncMock(side_effect=ExternalServiceError("Failed to send email", service="smtp"))
        with patch.object(runtime.mailer, "send", failure):
            resp = client.post("/api/agent/rooms/room-1/forward", json={"to": "a@b.co"}, headers=admin_headers)

        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "EXTERNAL_SMTP_FAILED"

    def test_requires_admin(self, client):
        """Forwarding is admin-only."""
        assert client.post("/api/agent/rooms/room-1/forward", json={"to": "a@b.co"}).status_code == 401


class TestEscalationScenario:
    """Unanswered visitor question ends up in the inbox when no admin is online."""

    def test_urgent_help_needed(self, client, admin_headers):
        """Empty answer, room created with one unread, inbox capture accepted."""
        assert client.get("/api/agent/search", params={"q": "urgent help needed"}).json() == {}

        with client.websocket_connect("/ws/agent?role=visitor&room=room-777777") as ws:
            assert ws.receive_json() == {"event": "admin_status", "online": False}
            ws.send_json({"event": "visitor_message", "room": "room-777777", "text": "urgent help needed"})
            assert ws.receive_json()["event"] == "echo_visitor"

        rooms = client.get("/api/agent/rooms", headers=admin_headers).json()
        assert rooms["items"][0]["room_id"] == "room-777777"
        assert rooms["items"][0]["unread_count"] == 1

        assert client.get("/api/agent/status").json() == {"online": False}
        resp = client.post(
            "/api/agent/inbox",
            json={"room": "room-777777", "email": "visitor@example.com", "question": "urgent help needed"},
        )
        assert resp.status_code == 200


class TestHealth:
    """Test the service health endpoint."""

    def test_health(self, client):
        """Health reports the memory store, fallbacks and connection counts."""
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["store"] == "memory"
        assert body["checks"] == {"redis": "fallback", "postgres": "fallback"}
        assert body["realtime"]["connections"] == 0

    def test_security_headers(self, client):
        """Responses carry the security headers."""
        resp = client.get("/api/agent/status")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
