from functools import lru_cache

from athena.config import settings
from athena.services.audit import AuditService
from athena.services.rag.pipeline import RAGPipeline, build_pipeline


@lru_cache()
def get_pipeline() -> RAGPipeline:
    """One pipeline per process; its collaborators are read-only and shared."""
    return build_pipeline(settings)


@lru_cache()
def get_audit_service() -> AuditService:
    return AuditService(settings)


__all__ = ["get_pipeline", "get_audit_service"]
