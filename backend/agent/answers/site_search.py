"""
Cached company-site lookup.

A handful of keyword categories (location, contact, services, countries)
each map to one seed page and a canned summary. A category only answers
when its page can be fetched, so a site outage degrades to "no answer".
Pages are cached process-wide by URL with a TTL; concurrent refreshes of
the same URL may both write, last one wins.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from html import unescape
from typing import Dict, List, Optional, Tuple

import httpx

from agent.answers.result import NOT_FOUND, AnswerResult, AnswerSource, Found, NotFound
from logging_config import log_answer

logger = logging.getLogger(__name__)

_DROP_BLOCKS_RE = re.compile(
    r"<(script|style|noscript|svg|iframe|video)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class SiteCategory:
    name: str
    keywords: Tuple[str, ...]
    path: str
    summary: str


# Checked in order against the lowercased raw query
CATEGORIES: List[SiteCategory] = [
    SiteCategory(
        "location",
        ("location", "where are you", "where do you"),
        "/about-us",
        "We're based in Kigali, Rwanda, with a distributed team across Africa.",
    ),
    SiteCategory(
        "contact",
        ("contact", "email", "phone"),
        "/contact",
        "Contact us at info@khisima.com or +250 789 619 370.",
    ),
    SiteCategory(
        "services",
        ("services", "what do you offer"),
        "/services",
        "Services: Translation & Localization • Language Data (collection/annotation/evaluation) "
        "• AI Language Consulting • Cultural Adaptation • Voice-over & Dubbing • Multilingual SEO.",
    ),
    SiteCategory(
        "countries",
        ("workplace", "countries"),
        "/workplace",
        "We operate across Africa and collaborate with partners in multiple countries.",
    ),
]


def html_to_text(markup: str) -> Tuple[str, str]:
    """Return (title, visible text) for an HTML document."""
    title_match = _TITLE_RE.search(markup or "")
    title = unescape(_TAG_RE.sub(" ", title_match.group(1))).strip() if title_match else ""
    body = _DROP_BLOCKS_RE.sub(" ", markup or "")
    body = _TITLE_RE.sub(" ", body)
    text = unescape(_TAG_RE.sub(" ", body))
    return re.sub(r"\s+", " ", title), re.sub(r"\s+", " ", text).strip()


@dataclass
class CachedPage:
    url: str
    title: str
    text: str
    fetched_at: float


class PageCache:
    """URL -> page text with a time-to-live (monotonic clock)."""

    def __init__(self, ttl_s: float):
        self.ttl_s = ttl_s
        self._pages: Dict[str, CachedPage] = {}

    def get(self, url: str) -> Optional[CachedPage]:
        page = self._pages.get(url)
        if page is None:
            return None
        if time.monotonic() - page.fetched_at >= self.ttl_s:
            self._pages.pop(url, None)
            return None
        return page

    def put(self, page: CachedPage) -> None:
        self._pages[page.url] = page

    def __len__(self) -> int:
        return len(self._pages)


class SiteSearch:
    def __init__(
        self,
        base_url: str,
        seed_paths: List[str],
        timeout_s: float = 8.0,
        cache_ttl_s: float = 900,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.seed_paths = set(seed_paths)
        self.timeout_s = timeout_s
        self.cache = PageCache(cache_ttl_s)
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, client: Optional[httpx.AsyncClient] = None) -> "SiteSearch":
        from config import runtime_config

        return cls(
            base_url=runtime_config.site_base_url,
            seed_paths=runtime_config.search_seed_paths,
            timeout_s=runtime_config.search_timeout_s,
            cache_ttl_s=runtime_config.search_cache_ttl_s,
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

    def url_for(self, path: str) -> str:
        return self.base_url + ("" if path == "/" else path)

    def match_category(self, query: str) -> Optional[SiteCategory]:
        q = (query or "").lower()
        for category in CATEGORIES:
            if category.path not in self.seed_paths:
                continue
            if any(keyword in q for keyword in category.keywords):
                return category
        return None

    async def fetch_page(self, url: str) -> CachedPage:
        """Fetch (or serve from cache) one page. Raises on network/HTTP errors and timeout."""
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        response = await asyncio.wait_for(self.client.get(url), timeout=self.timeout_s)
        response.raise_for_status()
        title, text = html_to_text(response.text)
        page = CachedPage(url=url, title=title, text=text, fetched_at=time.monotonic())
        self.cache.put(page)
        logger.debug(f"Cached {url} ({len(text)} chars)")
        return page

    async def search(self, query: str) -> AnswerResult:
        category = self.match_category(query)
        if category is None:
            log_answer(logger, "site", False)
            return NOT_FOUND

        url = self.url_for(category.path)
        try:
            page = await self.fetch_page(url)
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Site page fetch failed for {url}: {type(e).__name__}: {e}")
            log_answer(logger, "site", False, category=category.name, error="fetch")
            return NotFound("fetch_failed")

        log_answer(logger, "site", True, category=category.name)
        return Found(category.summary, AnswerSource.SITE, url=page.url)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
