"""
Optional encyclopedia stage (Wikipedia REST page summaries).

Only definition-style questions are looked up ("what is X", "who is X",
"define X", "tell me about X"). Disambiguation pages and any fetch error
count as no answer.
"""

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import quote

import httpx

from agent.answers.result import NOT_FOUND, AnswerResult, AnswerSource, Found, NotFound
from logging_config import log_answer

logger = logging.getLogger(__name__)

MAX_EXTRACT_CHARS = 400

_DEFINITION_RE = re.compile(
    r"^\s*(?:what\s+is|what's|who\s+is|who\s+was|define|tell\s+me\s+about)\s+(?:an?\s+|the\s+)?(?P<topic>.+?)[\s?.!]*$",
    re.IGNORECASE,
)


def extract_topic(query: str) -> Optional[str]:
    """Pull the subject out of a definition-style question, else None."""
    match = _DEFINITION_RE.match(query or "")
    if not match:
        return None
    topic = match.group("topic").strip()
    return topic if len(topic) >= 2 else None


def truncate(text: str, limit: int = MAX_EXTRACT_CHARS) -> str:
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    cut = text[: limit - 1].rsplit(" ", 1)[0]
    return cut.rstrip(",;:") + "…"


class WikiLookup:
    def __init__(
        self,
        language: str = "en",
        timeout_s: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.language = language
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, client: Optional[httpx.AsyncClient] = None) -> "WikiLookup":
        from config import runtime_config

        return cls(
            language=runtime_config.wiki_language,
            timeout_s=runtime_config.search_timeout_s,
            client=client,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_s,
                follow_redirects=True,
                headers={"User-Agent": "khisima-agent/1.0"},
            )
        return self._client

    def summary_url(self, topic: str) -> str:
        title = quote(topic.replace(" ", "_"), safe="")
        return f"https://{self.language}.wikipedia.org/api/rest_v1/page/summary/{title}"

    async def lookup(self, query: str) -> AnswerResult:
        topic = extract_topic(query)
        if topic is None:
            return NOT_FOUND

        url = self.summary_url(topic)
        try:
            response = await asyncio.wait_for(self.client.get(url), timeout=self.timeout_s)
            if response.status_code == 404:
                log_answer(logger, "wiki", False, topic=topic)
                return NOT_FOUND
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Wikipedia lookup failed for {topic!r}: {type(e).__name__}: {e}")
            return NotFound("fetch_failed")

        extract = (data.get("extract") or "").strip()
        if data.get("type") == "disambiguation" or not extract:
            log_answer(logger, "wiki", False, topic=topic)
            return NOT_FOUND

        page_url = ((data.get("content_urls") or {}).get("desktop") or {}).get("page")
        log_answer(logger, "wiki", True, topic=topic)
        return Found(truncate(extract), AnswerSource.WIKI, url=page_url)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
