"""
Process-wide wiring of the chat engine.

One AgentRuntime is built during the FastAPI lifespan and stored on
app.state.agent; routes and the socket endpoint read it from there.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from agent.answers import AnswerResolver, SiteSearch, WikiLookup
from agent.hub import RealtimeHub
from agent.presence import PresenceService
from agent.store import ChatStore, open_store
from services.mailer import Mailer, build_mailer

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    store: ChatStore
    presence: PresenceService
    hub: RealtimeHub
    resolver: AnswerResolver
    mailer: Mailer

    async def close(self) -> None:
        await self.resolver.aclose()
        await self.store.close()


def build_runtime(
    store: ChatStore,
    resolver: Optional[AnswerResolver] = None,
    mailer: Optional[Mailer] = None,
) -> AgentRuntime:
    """Assemble the runtime around a store; presence and hub are wired to each other here."""
    from config import runtime_config

    presence = PresenceService(store)
    hub = RealtimeHub(store, presence)
    presence.attach_broadcaster(hub.broadcast_presence)

    if resolver is None:
        wiki = WikiLookup.from_config() if runtime_config.wiki_enabled else None
        resolver = AnswerResolver(site=SiteSearch.from_config(), wiki=wiki)

    return AgentRuntime(
        store=store,
        presence=presence,
        hub=hub,
        resolver=resolver,
        mailer=mailer or build_mailer(),
    )


async def start_runtime() -> AgentRuntime:
    """Open storage, build the runtime and initialize presence."""
    store = await open_store()
    runtime = build_runtime(store)
    await runtime.presence.initialize()
    logger.info(f"Agent runtime ready (store={store.backend})")
    return runtime
