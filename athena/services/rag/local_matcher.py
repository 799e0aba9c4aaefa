"""
First-pass local matcher: answers pure greetings without touching any provider.

Everything else needs retrieval. The matcher never produces sources, so it
cannot bypass the citation guarantees of the retrieval path.
"""

import re
from dataclasses import dataclass
from typing import Union

from athena.services.llm.prompts import GREETING_ANSWER
from athena.services.rag.models import Answer

GREETINGS = (
    "hello",
    "hi",
    "hey",
    "good morning",
    "good afternoon",
    "good evening",
)

_GREETING_RE = re.compile(
    r"^\s*(?:" + "|".join(re.escape(g) for g in GREETINGS) + r")"
    r"(?:\s+(?:there|athena))?\s*[!.,?]*\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LocalMatch:
    answer: Answer


@dataclass(frozen=True)
class NeedsRetrieval:
    question: str


MatchResult = Union[LocalMatch, NeedsRetrieval]


class LocalMatcher:
    def match(self, question: str) -> MatchResult:
        if _GREETING_RE.match(question):
            return LocalMatch(Answer(text=GREETING_ANSWER, sources=(), confidence=0.0))
        return NeedsRetrieval(question)
