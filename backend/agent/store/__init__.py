"""
Chat storage: one interface, two interchangeable implementations.

- MemoryChatStore: process-local, used for tests and when PostgreSQL is down
- PostgresChatStore: asyncpg-backed, schema in migrations/init.sql
"""

import logging

from agent.store.base import ChatStore
from agent.store.memory import MemoryChatStore
from agent.store.postgres import PostgresChatStore

logger = logging.getLogger(__name__)


async def open_store() -> ChatStore:
    """Pick the PostgreSQL store when the database is reachable, else memory."""
    from services.database import get_database

    db = await get_database()
    if db.available:
        logger.info("Chat store: PostgreSQL")
        return PostgresChatStore(db)
    logger.info("Chat store: in-memory (history is lost on restart)")
    return MemoryChatStore()


__all__ = ["ChatStore", "MemoryChatStore", "PostgresChatStore", "open_store"]
