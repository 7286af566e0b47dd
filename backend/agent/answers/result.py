"""Answer lookup outcomes: Found carries the reply, NotFound means escalate."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class AnswerSource(str, Enum):
    QUICK = "quick"
    WIKI = "wiki"
    SITE = "khisima"


@dataclass(frozen=True)
class Found:
    answer: str
    source: AnswerSource
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"answer": self.answer, "source": self.source.value}
        if self.url:
            data["url"] = self.url
        return data


@dataclass(frozen=True)
class NotFound:
    reason: str = "no_match"

    def to_dict(self) -> Dict[str, Any]:
        return {}


NOT_FOUND = NotFound()

AnswerResult = Union[Found, NotFound]
