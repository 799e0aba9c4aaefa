"""
Corpus stores: chunk id -> (content, provenance, embedding, model tag).

Readers only ever see whole chunks. The in-memory store swaps an immutable
snapshot tuple on every write; the Qdrant store relies on Qdrant's atomic
point upserts and reads pages through scroll.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HasIdCondition,
    MatchValue,
    PointStruct,
    VectorParams,
)

from athena.config import Settings, settings as default_settings
from athena.core.exceptions import RetrievalFailure
from athena.services.rag.models import Chunk

logger = logging.getLogger("athena.corpus")


@runtime_checkable
class CorpusStore(Protocol):
    async def list_chunks_with_embeddings(self) -> List[Chunk]: ...

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int: ...

    async def replace_document(self, document_id: str, chunks: Iterable[Chunk]) -> int: ...

    async def delete_document(self, document_id: str) -> int: ...


class InMemoryCorpusStore:
    """Copy-on-write corpus held in process memory, kept in insertion order."""

    def __init__(self, chunks: Optional[Iterable[Chunk]] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot: tuple[Chunk, ...] = ()
        if chunks:
            self._commit(list(chunks), remove_document=None)

    def __len__(self) -> int:
        return len(self._snapshot)

    async def list_chunks_with_embeddings(self) -> List[Chunk]:
        return list(self._snapshot)

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int:
        new = list(chunks)
        self._commit(new, remove_document=None)
        return len(new)

    async def replace_document(self, document_id: str, chunks: Iterable[Chunk]) -> int:
        new = list(chunks)
        self._commit(new, remove_document=document_id)
        return len(new)

    async def delete_document(self, document_id: str) -> int:
        with self._lock:
            kept = tuple(c for c in self._snapshot if c.document_id != document_id)
            removed = len(self._snapshot) - len(kept)
            self._snapshot = kept
        return removed

    def _commit(self, new: List[Chunk], remove_document: Optional[str]) -> None:
        with self._lock:
            current = self._snapshot
            if remove_document is not None:
                current = tuple(c for c in current if c.document_id != remove_document)
            ids = {c.id for c in current}
            for chunk in new:
                if chunk.id in ids:
                    raise ValueError(f"Duplicate chunk id: {chunk.id}")
                ids.add(chunk.id)
            self._snapshot = current + tuple(new)


def _point_id(chunk_id: str) -> str:
    """Qdrant only accepts UUIDs or integers as point ids."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, chunk_id))


def _document_condition(document_id: str) -> FieldCondition:
    return FieldCondition(key="document_id", match=MatchValue(value=document_id))


def create_qdrant_client(settings: Optional[Settings] = None) -> AsyncQdrantClient:
    s = settings or default_settings
    kwargs: dict = {"url": s.QDRANT_URL}
    if s.QDRANT_API_KEY:
        kwargs["api_key"] = s.QDRANT_API_KEY
    return AsyncQdrantClient(**kwargs)


class QdrantCorpusStore:
    """Corpus persisted in a Qdrant collection; the pipeline scores chunks itself."""

    SCROLL_PAGE_SIZE = 256

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        collection: Optional[str] = None,
        dimension: Optional[int] = None,
    ) -> None:
        self.client = client or create_qdrant_client()
        self.collection = collection or default_settings.QDRANT_COLLECTION
        self.dimension = dimension or default_settings.EMBEDDING_DIM

    async def ensure_collection(self) -> None:
        """Create the collection if it does not exist."""
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}
        if self.collection not in existing:
            await self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=self.dimension, distance=Distance.COSINE),
            )
            logger.info("Created Qdrant collection: %s", self.collection)

    async def list_chunks_with_embeddings(self) -> List[Chunk]:
        ordered: List[tuple[int, Chunk]] = []
        offset = None
        try:
            while True:
                points, offset = await self.client.scroll(
                    collection_name=self.collection,
                    limit=self.SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=True,
                )
                for point in points:
                    ordered.append(self._to_chunk(point))
                if offset is None:
                    break
        except (KeyError, ValueError) as e:
            raise RetrievalFailure(f"malformed chunk in {self.collection}: {e}") from e
        except Exception as e:
            logger.error("Qdrant scroll failed on %s: %s", self.collection, e)
            raise RetrievalFailure(f"qdrant unavailable: {e}") from e

        # scroll pages come back in point-id order; restore insertion order
        ordered.sort(key=lambda item: item[0])
        return [chunk for _, chunk in ordered]

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int:
        points = self._to_points(chunks)
        if not points:
            return 0
        await self._reject_collisions(points)
        await self.client.upsert(collection_name=self.collection, points=points, wait=True)
        return len(points)

    async def replace_document(self, document_id: str, chunks: Iterable[Chunk]) -> int:
        """Upsert the new chunks, then drop the document's points that were not rewritten."""
        points = self._to_points(chunks)
        if not points:
            await self.delete_document(document_id)
            return 0
        await self._reject_collisions(points, owner=document_id)

        # old chunks stay in place until the new ones are written
        await self.client.upsert(collection_name=self.collection, points=points, wait=True)
        await self.client.delete(
            collection_name=self.collection,
            points_selector=FilterSelector(
                filter=Filter(
                    must=[_document_condition(document_id)],
                    must_not=[HasIdCondition(has_id=[p.id for p in points])],
                )
            ),
            wait=True,
        )
        logger.info("Replaced document %s with %d chunks", document_id, len(points))
        return len(points)

    async def delete_document(self, document_id: str) -> int:
        doc_filter = Filter(must=[_document_condition(document_id)])
        counted = await self.client.count(
            collection_name=self.collection, count_filter=doc_filter, exact=True
        )
        if not counted.count:
            return 0
        await self.client.delete(
            collection_name=self.collection,
            points_selector=FilterSelector(filter=doc_filter),
            wait=True,
        )
        logger.info("Deleted %d chunks of document %s", counted.count, document_id)
        return counted.count

    async def _reject_collisions(
        self, points: List[PointStruct], owner: Optional[str] = None
    ) -> None:
        """Chunk ids are unique across the collection; only `owner` may rewrite its own."""
        seen: set = set()
        for p in points:
            if p.id in seen:
                raise ValueError(f"Duplicate chunk id: {p.payload['chunk_id']}")
            seen.add(p.id)

        records = await self.client.retrieve(
            collection_name=self.collection,
            ids=[p.id for p in points],
            with_payload=True,
            with_vectors=False,
        )
        for record in records:
            payload = record.payload or {}
            if owner is None or payload.get("document_id") != owner:
                raise ValueError(f"Duplicate chunk id: {payload.get('chunk_id', record.id)}")

    def _to_points(self, chunks: Iterable[Chunk]) -> List[PointStruct]:
        base = time.time_ns()
        return [self._to_point(c, base + i) for i, c in enumerate(chunks)]

    def _to_point(self, chunk: Chunk, seq: int) -> PointStruct:
        return PointStruct(
            id=_point_id(chunk.id),
            vector=list(chunk.embedding),
            payload={
                "chunk_id": chunk.id,
                "content": chunk.content,
                "title": chunk.title,
                "url": chunk.url,
                "category": chunk.category.value,
                "embedding_model": chunk.embedding_model,
                "document_id": chunk.document_id,
                "seq": seq,
            },
        )

    def _to_chunk(self, point) -> tuple[int, Chunk]:
        payload = point.payload or {}
        return int(payload.get("seq", 0)), Chunk(
            id=payload["chunk_id"],
            content=payload["content"],
            title=payload.get("title", ""),
            url=payload.get("url", ""),
            category=payload["category"],
            embedding=tuple(point.vector or ()),
            embedding_model=payload.get("embedding_model", ""),
            document_id=payload.get("document_id", ""),
        )
