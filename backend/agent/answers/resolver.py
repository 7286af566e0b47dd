"""
Answer resolver: quick replies, then (optionally) Wikipedia, then the
cached company site. First Found wins; NotFound means escalate to a
human via chat or the offline inbox.
"""

import logging
from typing import Optional

from agent.answers.quick import quick_answer
from agent.answers.result import NOT_FOUND, AnswerResult, Found
from agent.answers.site_search import SiteSearch
from agent.answers.wiki import WikiLookup
from logging_config import log_answer

logger = logging.getLogger(__name__)


class AnswerResolver:
    def __init__(self, site: Optional[SiteSearch] = None, wiki: Optional[WikiLookup] = None):
        self.site = site
        self.wiki = wiki

    async def resolve(self, query: str) -> AnswerResult:
        text = (query or "").strip()
        if not text:
            return NOT_FOUND

        quick = quick_answer(text)
        log_answer(logger, "quick", isinstance(quick, Found))
        if isinstance(quick, Found):
            return quick

        if self.wiki is not None:
            wiki = await self.wiki.lookup(text)
            if isinstance(wiki, Found):
                return wiki

        if self.site is not None:
            site = await self.site.search(text)
            if isinstance(site, Found):
                return site

        return NOT_FOUND

    async def aclose(self) -> None:
        if self.wiki is not None:
            await self.wiki.aclose()
        if self.site is not None:
            await self.site.aclose()
