"""
Automatic answers for visitor questions.

Usage:
    from agent.answers import AnswerResolver, Found

    result = await resolver.resolve("What languages do you support?")
    if isinstance(result, Found):
        ...
"""

from agent.answers.quick import quick_answer
from agent.answers.resolver import AnswerResolver
from agent.answers.result import NOT_FOUND, AnswerResult, AnswerSource, Found, NotFound
from agent.answers.site_search import SiteSearch
from agent.answers.wiki import WikiLookup

__all__ = [
    "AnswerResolver",
    "AnswerResult",
    "AnswerSource",
    "Found",
    "NotFound",
    "NOT_FOUND",
    "SiteSearch",
    "WikiLookup",
    "quick_answer",
]
