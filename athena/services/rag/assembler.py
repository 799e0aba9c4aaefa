"""
Response assembler: refusal, grounded answer, or degraded apology.

Sources are built from the same ScoredChunk list that fed the prompt, in the
same order (similarity descending). Confidence is the mean of the
per-source similarities, or exactly 0.0 when there are no sources.
"""

from typing import Optional, Sequence

from athena.config import settings
from athena.services.llm.prompts import FIXED_REFUSAL, GENERATION_APOLOGY
from athena.services.rag.models import Answer, ScoredChunk, SourceCitation

ELLIPSIS = "..."


def make_snippet(content: str, max_chars: int) -> str:
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + ELLIPSIS


def mean_confidence(sources: Sequence[SourceCitation]) -> float:
    if not sources:
        return 0.0
    avg = sum(s.confidence for s in sources) / len(sources)
    return max(0.0, min(1.0, avg))


class ResponseAssembler:
    def __init__(self, snippet_max_chars: Optional[int] = None) -> None:
        self.snippet_max_chars = (
            settings.RAG_SNIPPET_MAX_CHARS if snippet_max_chars is None else snippet_max_chars
        )

    def refusal(self) -> Answer:
        return Answer(text=FIXED_REFUSAL, sources=(), confidence=0.0)

    def build_sources(self, scored_chunks: Sequence[ScoredChunk]) -> tuple[SourceCitation, ...]:
        return tuple(
            SourceCitation(
                title=s.chunk.title,
                url=s.chunk.url,
                snippet=make_snippet(s.chunk.content, self.snippet_max_chars),
                category=s.chunk.category,
                confidence=s.similarity,
            )
            for s in scored_chunks
        )

    def assemble(self, text: str, scored_chunks: Sequence[ScoredChunk]) -> Answer:
        if not scored_chunks:
            return self.refusal()
        sources = self.build_sources(scored_chunks)
        return Answer(text=text, sources=sources, confidence=mean_confidence(sources))

    def degraded(self, scored_chunks: Sequence[ScoredChunk]) -> Answer:
        """Generation failed after retrieval succeeded: keep the citations."""
        return self.assemble(GENERATION_APOLOGY, scored_chunks)
