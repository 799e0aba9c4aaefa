from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Category(str, Enum):
    STATUTE = "statute"
    CASE_LAW = "case-law"
    REGULATION = "regulation"
    GUIDE = "guide"


@dataclass(frozen=True)
class Chunk:
    """A retrievable unit of source text with provenance and a precomputed embedding."""

    id: str
    content: str
    title: str
    url: str
    category: Category
    embedding: tuple[float, ...]
    embedding_model: str
    document_id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Chunk id must not be empty")
        if not self.content or not self.content.strip():
            raise ValueError(f"Chunk {self.id} has empty content")
        # accepts "case-law" as well as Category.CASE_LAW
        object.__setattr__(self, "category", Category(self.category))
        object.__setattr__(self, "embedding", tuple(float(v) for v in self.embedding))

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class ScoredChunk:
    """Chunk plus its cosine similarity to the current query. Never persisted."""

    chunk: Chunk
    similarity: float


@dataclass(frozen=True)
class SourceCitation:
    title: str
    url: str
    snippet: str
    category: Category
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "category": self.category.value,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Answer:
    """Pipeline output: answer text, ordered citations and aggregate confidence."""

    text: str
    sources: tuple[SourceCitation, ...] = field(default_factory=tuple)
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sources": [s.to_dict() for s in self.sources],
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ConversationTurn:
    speaker: str  # user | athena
    message: str
