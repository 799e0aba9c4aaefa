"""
Grounded answer pipeline: embed -> retrieve -> compose -> generate -> assemble.

All collaborators are injected, so every query runs against the same
read-only corpus and keeps its intermediate results to itself. When nothing
clears the relevance threshold the pipeline returns the fixed refusal
without ever calling the generator.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from athena.config import Settings, settings as default_settings
from athena.core.exceptions import (
    AppError,
    EmbeddingFailure,
    GenerationFailure,
    InvalidInputError,
)
from athena.core.validators import validate_question
from athena.services.rag.assembler import ResponseAssembler
from athena.services.rag.composer import History, PromptComposer, render_history
from athena.services.rag.corpus import (
    CorpusStore,
    InMemoryCorpusStore,
    QdrantCorpusStore,
    create_qdrant_client,
)
from athena.services.rag.local_matcher import LocalMatch, LocalMatcher
from athena.services.rag.models import Answer, ConversationTurn
from athena.services.rag.retriever import VectorRetriever

logger = logging.getLogger("athena.pipeline")


class Embedder(Protocol):
    model: str

    async def embed(self, text: str) -> List[float]: ...


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class RAGPipeline:
    def __init__(
        self,
        embedder: Embedder,
        corpus: CorpusStore,
        generator: TextGenerator,
        composer: Optional[PromptComposer] = None,
        assembler: Optional[ResponseAssembler] = None,
        local_matcher: Optional[LocalMatcher] = None,
        threshold: Optional[float] = None,
        top_k: Optional[int] = None,
        allow_mixed_models: Optional[bool] = None,
        max_question_chars: Optional[int] = None,
        history_window: Optional[int] = None,
    ) -> None:
        self.embedder = embedder
        self.corpus = corpus
        self.generator = generator
        self.composer = composer or PromptComposer(history_window=history_window)
        self.assembler = assembler or ResponseAssembler()
        self.local_matcher = local_matcher
        self.retriever = VectorRetriever(
            corpus,
            threshold=threshold,
            top_k=top_k,
            allow_mixed_models=allow_mixed_models,
        )
        self.max_question_chars = max_question_chars or default_settings.MAX_QUESTION_CHARS
        self.history_window = (
            default_settings.RAG_HISTORY_WINDOW if history_window is None else history_window
        )

    async def ask_question(
        self,
        question: str,
        context: Optional[str] = None,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> Answer:
        try:
            question = validate_question(question, self.max_question_chars)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e

        if self.local_matcher is not None:
            result = self.local_matcher.match(question)
            if isinstance(result, LocalMatch):
                logger.debug("Answered locally without retrieval")
                return result.answer

        try:
            query_embedding = await self.embedder.embed(question)
        except AppError:
            raise
        except Exception as e:
            logger.error("Embedding failed: %s", e)
            raise EmbeddingFailure(f"embedding failed: {e}") from e

        scored = await self.retriever.retrieve(
            query_embedding, query_model=getattr(self.embedder, "model", None)
        )
        if not scored:
            logger.info("No source above %.2f, returning refusal", self.retriever.threshold)
            return self.assembler.refusal()

        prompt_history: History = history if history else context
        prompt = self.composer.compose(question, scored, prompt_history)

        try:
            text = await self.generator.generate(prompt)
        except GenerationFailure as e:
            logger.warning("Generation failed, returning sources only: %s", e)
            return self.assembler.degraded(scored)
        except AppError:
            raise
        except Exception as e:
            logger.warning("Generator raised %s, returning sources only: %s", type(e).__name__, e)
            return self.assembler.degraded(scored)

        answer = self.assembler.assemble(text, scored)
        logger.info(
            "Answered with %d sources (confidence %.3f)", len(answer.sources), answer.confidence
        )
        return answer

    async def process_message(
        self, message: str, history: Sequence[ConversationTurn]
    ) -> Answer:
        """Conversation variant: the last few turns become the prompt context."""
        context = render_history(history, self.history_window)
        return await self.ask_question(message, context=context or None)


def build_pipeline(settings: Optional[Settings] = None) -> RAGPipeline:
    """Wire the production collaborators from settings."""
    from athena.services.llm.generator import Generator
    from athena.services.rag.embeddings import EmbeddingService

    s = settings or default_settings
    if s.CORPUS_BACKEND == "qdrant":
        corpus: CorpusStore = QdrantCorpusStore(
            client=create_qdrant_client(s),
            collection=s.QDRANT_COLLECTION,
            dimension=s.EMBEDDING_DIM,
        )
    elif s.CORPUS_BACKEND == "memory":
        corpus = InMemoryCorpusStore()
    else:
        raise ValueError(f"Unknown CORPUS_BACKEND: {s.CORPUS_BACKEND}")

    return RAGPipeline(
        embedder=EmbeddingService(
            model=s.EMBEDDING_MODEL,
            dimension=s.EMBEDDING_DIM,
            api_key=s.VOYAGE_API_KEY,
            base_url=s.VOYAGE_BASE_URL,
            timeout=s.EMBEDDING_TIMEOUT_SECONDS,
        ),
        corpus=corpus,
        generator=Generator(settings=s),
        composer=PromptComposer(history_window=s.RAG_HISTORY_WINDOW),
        assembler=ResponseAssembler(snippet_max_chars=s.RAG_SNIPPET_MAX_CHARS),
        local_matcher=LocalMatcher() if s.RAG_LOCAL_MATCHER_ENABLED else None,
        threshold=s.RAG_RELEVANCE_THRESHOLD,
        top_k=s.RAG_TOP_K,
        allow_mixed_models=s.RAG_ALLOW_MIXED_EMBEDDING_MODELS,
        max_question_chars=s.MAX_QUESTION_CHARS,
        history_window=s.RAG_HISTORY_WINDOW,
    )
