"""
Audit log for answered questions.

Every answer is recorded with its question, sources, confidence and a UTC
timestamp. Records always go to the "athena.audit" logger and, when
Supabase is configured, to the PostgREST table `ai_interactions`.
A failing audit write is logged and never fails the request.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from athena.config import Settings, settings as default_settings
from athena.services.rag.models import Answer

logger = logging.getLogger("athena.audit")


class InteractionRecord(BaseModel):
    question: str
    answer: str
    sources: list[dict[str, Any]] = []
    confidence: float
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_answer(
        cls, question: str, answer: Answer, user_id: Optional[str] = None
    ) -> "InteractionRecord":
        return cls(
            question=question,
            answer=answer.text,
            sources=[s.to_dict() for s in answer.sources],
            confidence=answer.confidence,
            user_id=user_id,
        )


class AuditService:
    """Writes interaction records to the log and optionally to Supabase."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        s = settings or default_settings
        self.table = s.AUDIT_TABLE
        self.base_url = f"{s.SUPABASE_URL}/rest/v1" if s.SUPABASE_URL else ""
        self.headers = {
            "apikey": s.SUPABASE_ANON_KEY,
            "Authorization": f"Bearer {s.SUPABASE_ANON_KEY}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }
        self._transport = transport

    async def record(
        self, question: str, answer: Answer, user_id: Optional[str] = None
    ) -> InteractionRecord:
        entry = InteractionRecord.from_answer(question, answer, user_id=user_id)
        logger.info(
            "interaction",
            extra={
                "question": entry.question,
                "source_count": len(entry.sources),
                "confidence": entry.confidence,
                "user_id": entry.user_id,
            },
        )
        if self.base_url:
            await self._persist(entry)
        return entry

    async def _persist(self, entry: InteractionRecord) -> None:
        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/{self.table}",
                    headers=self.headers,
                    json=entry.model_dump(mode="json"),
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to persist interaction to %s: %s", self.table, e)
