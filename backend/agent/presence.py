"""
Admin presence: one global online/offline flag.

Storage is the source of truth. Every successful set is pushed to the
attached broadcaster (the realtime hub); a failing or missing broadcaster
never fails the write.
"""

import logging
from typing import Awaitable, Callable, Optional

from agent.models import PresenceRecord
from agent.store.base import ChatStore
from logging_config import log_presence

logger = logging.getLogger(__name__)

# Receives the new value, returns how many clients it reached
PresenceBroadcaster = Callable[[bool], Awaitable[int]]


class PresenceService:
    def __init__(self, store: ChatStore):
        self.store = store
        self._broadcaster: Optional[PresenceBroadcaster] = None

    def attach_broadcaster(self, broadcaster: Optional[PresenceBroadcaster]) -> None:
        self._broadcaster = broadcaster

    async def initialize(self) -> PresenceRecord:
        """Make sure the singleton record exists. Call once at startup."""
        record = await self.store.ensure_presence()
        logger.info(f"Presence initialized: online={record.online}")
        return record

    async def get(self) -> bool:
        record = await self.store.get_presence()
        return record.online

    async def set(self, online: bool) -> bool:
        record = await self.store.set_presence(bool(online))
        listeners = 0
        if self._broadcaster is not None:
            try:
                listeners = await self._broadcaster(record.online)
            except Exception as e:
                logger.warning(f"Presence broadcast failed: {e}")
        log_presence(logger, record.online, listeners)
        return record.online
