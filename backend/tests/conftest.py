"""
Shared pytest fixtures for the live agent tests.

PostgreSQL and Redis are disabled before any application module is
imported, so every test runs on the in-memory chat store with rate
limiting relaxed.
"""

import os

os.environ["DATABASE_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret-for-agent-tests-0123456789abcdef"
os.environ["WIKI_ANSWER_ENABLED"] = "false"
os.environ["AGENT_ENV"] = "development"

import pytest
from fastapi.testclient import TestClient

from agent.store import MemoryChatStore


class FakeWebSocket:
    """Collects frames sent by the hub."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)

    def events(self):
        return [frame["event"] for frame in self.sent]


@pytest.fixture
def store():
    """Fresh in-memory chat store."""
    return MemoryChatStore()


@pytest.fixture
def app():
    from main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (fresh runtime per test)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def runtime(client):
    return client.app.state.agent


@pytest.fixture
def admin_token():
    from services.admin_auth import get_auth_manager

    return get_auth_manager().create_token("1", "console-admin")["token"]


@pytest.fixture
def visitor_token():
    """Valid token without the admin role."""
    from services.admin_auth import get_auth_manager

    return get_auth_manager().create_token("2", "someone", role="visitor")["token"]


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def make_ws():
    return FakeWebSocket
