from athena.services.rag.models import Answer, Category, Chunk, ScoredChunk, SourceCitation
from athena.services.rag.retriever import VectorRetriever, cosine_similarity, retrieve
from athena.services.rag.embeddings import EmbeddingService
from athena.services.rag.corpus import CorpusStore, InMemoryCorpusStore, QdrantCorpusStore
from athena.services.rag.pipeline import RAGPipeline, build_pipeline

__all__ = [
    "Answer",
    "Category",
    "Chunk",
    "ScoredChunk",
    "SourceCitation",
    "VectorRetriever",
    "cosine_similarity",
    "retrieve",
    "EmbeddingService",
    "CorpusStore",
    "InMemoryCorpusStore",
    "QdrantCorpusStore",
    "RAGPipeline",
    "build_pipeline",
]
