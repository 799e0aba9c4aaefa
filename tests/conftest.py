"""Pytest fixtures: fake providers, chunk factory and an HTTP client."""

import math

import pytest
from httpx import ASGITransport, AsyncClient

from athena.core.rate_limit import limiter
from athena.dependencies import get_audit_service, get_pipeline
from athena.main import app
from athena.services.rag.corpus import InMemoryCorpusStore
from athena.services.rag.models import Category, Chunk
from athena.services.rag.pipeline import RAGPipeline

EMBED_MODEL = "test-embed-1"
QUERY_VECTOR = [1.0, 0.0]


def vector_at(similarity: float) -> list[float]:
    """Unit vector whose cosine similarity to QUERY_VECTOR is `similarity`."""
    return [similarity, math.sqrt(max(0.0, 1.0 - similarity * similarity))]


class FakeEmbedder:
    model = EMBED_MODEL

    def __init__(self, vector=None, error=None):
        self.vector = vector if vector is not None else QUERY_VECTOR
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return list(self.vector)


class FakeGenerator:
    def __init__(self, text="Under the SRA rules you must pass SQE1 and SQE2 [Source 1].", error=None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text


class RecordingAudit:
    def __init__(self):
        self.records = []

    async def record(self, question, answer, user_id=None):
        self.records.append((question, answer))


@pytest.fixture
def make_chunk():
    counter = {"n": 0}

    def _make(
        similarity=None,
        *,
        embedding=None,
        title=None,
        content=None,
        category=Category.GUIDE,
        url="https://example.org/source",
        model=EMBED_MODEL,
        document_id="doc-1",
        chunk_id=None,
    ) -> Chunk:
        counter["n"] += 1
        n = counter["n"]
        if embedding is None:
            embedding = vector_at(similarity if similarity is not None else 0.0)
        return Chunk(
            id=chunk_id or f"{document_id}:{n}",
            content=content or f"Passage number {n} about legal practice.",
            title=title or f"Source title {n}",
            url=url,
            category=category,
            embedding=tuple(embedding),
            embedding_model=model,
            document_id=document_id,
        )

    return _make


@pytest.fixture
def make_embedder():
    return FakeEmbedder


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def make_pipeline(make_embedder, make_generator):
    """Pipeline over an in-memory corpus with fake embedder and generator."""

    def _build(chunks=(), embedder=None, generator=None, **kwargs) -> RAGPipeline:
        kwargs.setdefault("threshold", 0.7)
        kwargs.setdefault("top_k", 5)
        kwargs.setdefault("allow_mixed_models", False)
        return RAGPipeline(
            embedder=embedder or make_embedder(),
            corpus=InMemoryCorpusStore(chunks),
            generator=generator or make_generator(),
            **kwargs,
        )

    return _build


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def use_pipeline(audit):
    """Route the HTTP layer to the given pipeline for one test."""

    def _use(pipeline: RAGPipeline) -> RAGPipeline:
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        return pipeline

    app.dependency_overrides[get_audit_service] = lambda: audit
    limiter.enabled = False
    yield _use
    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
async def client():
    """Async HTTP client bound to the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
