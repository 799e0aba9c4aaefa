"""
Index plain-text legal documents into the Qdrant corpus.

Input is a JSON list of documents:
    [{"id": "sra-sqe", "title": "SRA Handbook - SQE Requirements",
      "url": "https://sra.org.uk/sqe", "category": "regulation", "text": "..."}]

Usage:
    python scripts/index_corpus.py documents.json
    python scripts/index_corpus.py documents.json --delete sra-sqe
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from athena.services.rag.corpus import QdrantCorpusStore
from athena.services.rag.embeddings import EmbeddingService
from athena.services.rag.indexer import CorpusIndexer

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger("index_corpus")


async def main(path: Path, delete: list[str]) -> None:
    store = QdrantCorpusStore()
    await store.ensure_collection()
    indexer = CorpusIndexer(EmbeddingService(), store)

    for document_id in delete:
        await indexer.delete_document(document_id)

    documents = json.loads(path.read_text(encoding="utf-8"))
    total = 0
    for doc in documents:
        try:
            total += await indexer.index_document(
                doc["id"],
                doc["text"],
                title=doc["title"],
                url=doc.get("url", ""),
                category=doc.get("category", "guide"),
            )
        except (KeyError, ValueError) as e:
            logger.error("  skipping %s: %s", doc.get("id", "?"), e)
    logger.info("Indexed %d chunks from %d documents", total, len(documents))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Index legal documents into the Athena corpus")
    parser.add_argument("path", type=Path, help="JSON file with documents")
    parser.add_argument("--delete", nargs="*", default=[], help="document ids to remove first")
    args = parser.parse_args()
    asyncio.run(main(args.path, args.delete))
