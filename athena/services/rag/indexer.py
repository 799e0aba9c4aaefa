"""
Corpus indexer for plain-text legal documents.

Splits a document into overlapping word windows, embeds them in batches and
replaces the document's chunks in the store in one step, tagging every
embedding with the embedder's model name.
"""

import logging
from typing import List

from athena.services.rag.corpus import CorpusStore
from athena.services.rag.embeddings import EmbeddingService
from athena.services.rag.models import Category, Chunk

logger = logging.getLogger("athena.indexer")


def split_into_windows(text: str, chunk_size: int = 500, overlap: int = 50) -> List[str]:
    """Overlapping windows of `chunk_size` words, stepping `chunk_size - overlap`."""
    if chunk_size <= 0 or overlap < 0 or overlap >= chunk_size:
        raise ValueError("chunk_size must be positive and larger than overlap")
    words = text.split()
    windows: List[str] = []
    step = chunk_size - overlap
    for i in range(0, len(words), step):
        window = " ".join(words[i : i + chunk_size])
        if window.strip():
            windows.append(window)
        if i + chunk_size >= len(words):
            break
    return windows


class CorpusIndexer:
    """Turns documents into embedded chunks and stores them."""

    EMBED_BATCH_SIZE = 32
    CHUNK_WORDS = 500
    OVERLAP_WORDS = 50

    def __init__(self, embedder: EmbeddingService, store: CorpusStore) -> None:
        self.embedder = embedder
        self.store = store

    async def index_document(
        self,
        document_id: str,
        text: str,
        *,
        title: str,
        url: str = "",
        category: Category | str = Category.GUIDE,
    ) -> int:
        """
        Index a single document: chunk -> embed -> replace in store.

        Returns the number of chunks stored.
        """
        if not document_id:
            raise ValueError("document_id is required")
        category = Category(category)

        windows = split_into_windows(text, self.CHUNK_WORDS, self.OVERLAP_WORDS)
        if not windows:
            logger.debug("Document %s has no text, nothing indexed", document_id)
            return 0

        embeddings = await self._embed_batched(windows)
        chunks = [
            Chunk(
                id=f"{document_id}:{i}",
                content=content,
                title=title,
                url=url,
                category=category,
                embedding=tuple(embedding),
                embedding_model=self.embedder.model,
                document_id=document_id,
            )
            for i, (content, embedding) in enumerate(zip(windows, embeddings))
        ]

        stored = await self.store.replace_document(document_id, chunks)
        logger.info("Indexed %d chunks for doc %s", stored, document_id)
        return stored

    async def delete_document(self, document_id: str) -> int:
        removed = await self.store.delete_document(document_id)
        logger.info("Removed document %s from corpus", document_id)
        return removed

    async def _embed_batched(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in batches to respect API limits."""
        all_embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.EMBED_BATCH_SIZE):
            batch = texts[i : i + self.EMBED_BATCH_SIZE]
            all_embeddings.extend(await self.embedder.embed_documents(batch))
        return all_embeddings
