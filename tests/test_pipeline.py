"""End-to-end pipeline behaviour with fake embedder and generator."""

from unittest.mock import patch

import pytest

from athena.config import Settings
from athena.core.exceptions import (
    CorpusConfigurationError,
    EmbeddingFailure,
    GenerationFailure,
    InvalidInputError,
    RetrievalFailure,
)
from athena.services.llm.prompts import FIXED_REFUSAL, GENERATION_APOLOGY, GREETING_ANSWER
from athena.services.rag.corpus import InMemoryCorpusStore, QdrantCorpusStore
from athena.services.rag.local_matcher import LocalMatcher
from athena.services.rag.models import ConversationTurn
from athena.services.rag.pipeline import RAGPipeline, build_pipeline


class TestAskQuestion:
    @pytest.mark.asyncio
    async def test_single_relevant_chunk(self, make_pipeline, make_chunk):
        chunk = make_chunk(0.95, title="SRA Handbook - SQE Requirements")
        pipeline = make_pipeline([chunk])

        answer = await pipeline.ask_question("How do I qualify as a solicitor?")

        assert answer.text.startswith("Under the SRA rules")
        assert len(answer.sources) == 1
        assert answer.sources[0].title == "SRA Handbook - SQE Requirements"
        assert answer.confidence == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_only_chunks_above_threshold_are_cited(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        corpus = [make_chunk(0.9), make_chunk(0.75), make_chunk(0.6)]
        pipeline = make_pipeline(corpus, generator=generator)

        answer = await pipeline.ask_question("What does a tenancy deposit cover?")

        assert [s.title for s in answer.sources] == [corpus[0].title, corpus[1].title]
        assert answer.confidence == pytest.approx(0.825)
        prompt = generator.prompts[0]
        assert corpus[0].content in prompt
        assert corpus[1].content in prompt
        assert corpus[2].content not in prompt

    @pytest.mark.asyncio
    async def test_empty_corpus_refuses_without_generating(self, make_pipeline, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([], generator=generator)

        answer = await pipeline.ask_question("What is adverse possession?")

        assert answer.text == FIXED_REFUSAL
        assert answer.sources == ()
        assert answer.confidence == 0
        assert generator.call_count == 0

    @pytest.mark.asyncio
    async def test_nothing_relevant_refuses(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.5), make_chunk(0.69)], generator=generator)
        answer = await pipeline.ask_question("Can I appeal a parking ticket?")
        assert answer.text == FIXED_REFUSAL
        assert generator.call_count == 0

    @pytest.mark.asyncio
    async def test_generation_failure_returns_sources_with_apology(
        self, make_pipeline, make_chunk, make_generator
    ):
        generator = make_generator(error=GenerationFailure("all providers down"))
        pipeline = make_pipeline([make_chunk(0.9), make_chunk(0.8)], generator=generator)

        answer = await pipeline.ask_question("What is the limitation period for contract claims?")

        assert answer.text == GENERATION_APOLOGY
        assert len(answer.sources) == 2
        assert answer.confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_unexpected_generator_error_degrades(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator(error=RuntimeError("socket closed"))
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator)
        answer = await pipeline.ask_question("Question?")
        assert answer.text == GENERATION_APOLOGY
        assert len(answer.sources) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   ", None, 42])
    async def test_invalid_question_never_reaches_providers(
        self, question, make_pipeline, make_embedder, make_chunk
    ):
        embedder = make_embedder()
        pipeline = make_pipeline([make_chunk(0.9)], embedder=embedder)
        with pytest.raises(InvalidInputError):
            await pipeline.ask_question(question)
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_too_long_question_rejected(self, make_pipeline, make_embedder):
        embedder = make_embedder()
        pipeline = make_pipeline([], embedder=embedder, max_question_chars=20)
        with pytest.raises(InvalidInputError):
            await pipeline.ask_question("x" * 21)
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_question_is_stripped_before_embedding(self, make_pipeline, make_embedder):
        embedder = make_embedder()
        await make_pipeline([], embedder=embedder).ask_question("  What is a lease?  ")
        assert embedder.calls == ["What is a lease?"]

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, make_pipeline, make_embedder, make_generator):
        generator = make_generator()
        embedder = make_embedder(error=EmbeddingFailure("voyage 503"))
        pipeline = make_pipeline([], embedder=embedder, generator=generator)
        with pytest.raises(EmbeddingFailure):
            await pipeline.ask_question("Question?")
        assert generator.call_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_embedder_error_is_wrapped(self, make_pipeline, make_embedder):
        pipeline = make_pipeline([], embedder=make_embedder(error=ConnectionError("reset")))
        with pytest.raises(EmbeddingFailure) as exc:
            await pipeline.ask_question("Question?")
        assert isinstance(exc.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_retrieval_failure_propagates(self, make_embedder, make_generator):
        class DownStore:
            async def list_chunks_with_embeddings(self):
                raise OSError("disk gone")

        generator = make_generator()
        pipeline = RAGPipeline(
            embedder=make_embedder(), corpus=DownStore(), generator=generator,
            threshold=0.7, top_k=5,
        )
        with pytest.raises(RetrievalFailure):
            await pipeline.ask_question("Question?")
        assert generator.call_count == 0

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_fatal(self, make_pipeline, make_chunk, make_embedder):
        pipeline = make_pipeline([make_chunk(0.9)], embedder=make_embedder(vector=[1.0, 0.0, 0.0]))
        with pytest.raises(CorpusConfigurationError):
            await pipeline.ask_question("Question?")

    @pytest.mark.asyncio
    async def test_model_mismatch_is_fatal_by_default(self, make_pipeline, make_chunk):
        pipeline = make_pipeline([make_chunk(0.9, model="voyage-law-1")])
        with pytest.raises(CorpusConfigurationError):
            await pipeline.ask_question("Question?")

    @pytest.mark.asyncio
    async def test_context_reaches_prompt(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator)
        await pipeline.ask_question("And after that?", context="user: I passed SQE1")
        assert "Previous conversation context:\nuser: I passed SQE1" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_history_preferred_over_context(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator, history_window=3)
        await pipeline.ask_question(
            "Next?",
            context="ignored context",
            history=[ConversationTurn("user", "earlier question")],
        )
        assert "user: earlier question" in generator.prompts[0]
        assert "ignored context" not in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_repeated_questions_share_nothing(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator)
        first = await pipeline.ask_question("Question one?")
        second = await pipeline.ask_question("Question two?")
        assert first.sources == second.sources
        assert "Question one?" not in generator.prompts[1]


class TestProcessMessage:
    @pytest.mark.asyncio
    async def test_last_turns_become_context(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator, history_window=2)
        history = [
            ConversationTurn("user", "turn one"),
            ConversationTurn("athena", "turn two"),
            ConversationTurn("user", "turn three"),
        ]

        answer = await pipeline.process_message("What next?", history)

        prompt = generator.prompts[0]
        assert "turn one" not in prompt
        assert "athena: turn two\nuser: turn three" in prompt
        assert len(answer.sources) == 1

    @pytest.mark.asyncio
    async def test_without_history(self, make_pipeline, make_chunk, make_generator):
        generator = make_generator()
        pipeline = make_pipeline([make_chunk(0.9)], generator=generator)
        await pipeline.process_message("What next?", [])
        assert "Previous conversation context" not in generator.prompts[0]


class TestLocalMatcherIntegration:
    @pytest.mark.asyncio
    async def test_greeting_answered_without_providers(self, make_pipeline, make_embedder, make_generator):
        embedder, generator = make_embedder(), make_generator()
        pipeline = make_pipeline(
            [], embedder=embedder, generator=generator, local_matcher=LocalMatcher()
        )

        answer = await pipeline.ask_question("Hello!")

        assert answer.text == GREETING_ANSWER
        assert answer.sources == ()
        assert embedder.calls == []
        assert generator.call_count == 0

    @pytest.mark.asyncio
    async def test_legal_question_still_retrieves(self, make_pipeline, make_chunk, make_embedder):
        embedder = make_embedder()
        pipeline = make_pipeline([make_chunk(0.9)], embedder=embedder, local_matcher=LocalMatcher())
        answer = await pipeline.ask_question("Hello, how do I become a barrister?")
        assert embedder.calls == ["Hello, how do I become a barrister?"]
        assert len(answer.sources) == 1

    @pytest.mark.asyncio
    async def test_greeting_goes_through_retrieval_when_disabled(self, make_pipeline, make_embedder):
        embedder = make_embedder()
        answer = await make_pipeline([], embedder=embedder).ask_question("Hello!")
        assert answer.text == FIXED_REFUSAL
        assert embedder.calls == ["Hello!"]


class TestBuildPipeline:
    def test_memory_backend(self):
        pipeline = build_pipeline(Settings(CORPUS_BACKEND="memory", RAG_TOP_K=3))
        assert isinstance(pipeline.corpus, InMemoryCorpusStore)
        assert pipeline.retriever.top_k == 3
        assert pipeline.local_matcher is None

    def test_qdrant_backend(self):
        pipeline = build_pipeline(
            Settings(CORPUS_BACKEND="qdrant", QDRANT_COLLECTION="test_chunks", EMBEDDING_DIM=8)
        )
        assert isinstance(pipeline.corpus, QdrantCorpusStore)
        assert pipeline.corpus.collection == "test_chunks"
        assert pipeline.corpus.dimension == 8

    def test_local_matcher_enabled(self):
        pipeline = build_pipeline(Settings(RAG_LOCAL_MATCHER_ENABLED=True))
        assert isinstance(pipeline.local_matcher, LocalMatcher)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_pipeline(Settings(CORPUS_BACKEND="elasticsearch"))

    def test_embedder_uses_given_settings(self):
        pipeline = build_pipeline(
            Settings(
                VOYAGE_API_KEY="k-from-settings",
                VOYAGE_BASE_URL="http://voyage.test/v1",
                EMBEDDING_TIMEOUT_SECONDS=3.0,
                EMBEDDING_MODEL="voyage-law-2",
                EMBEDDING_DIM=16,
            )
        )
        embedder = pipeline.embedder
        assert embedder.api_key == "k-from-settings"
        assert embedder.base_url == "http://voyage.test/v1"
        assert embedder.timeout == 3.0
        assert embedder.dimension == 16

    def test_qdrant_client_built_from_given_settings(self):
        s = Settings(CORPUS_BACKEND="qdrant", QDRANT_URL="http://qdrant.test:6333", QDRANT_API_KEY="q-key")
        with patch("athena.services.rag.pipeline.create_qdrant_client") as factory:
            pipeline = build_pipeline(s)
        factory.assert_called_once_with(s)
        assert pipeline.corpus.client is factory.return_value
