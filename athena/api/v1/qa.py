import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel, Field, field_validator

from athena.config import settings
from athena.core.rate_limit import limiter
from athena.core.validators import validate_question, validate_speaker
from athena.dependencies import get_audit_service, get_pipeline
from athena.services.audit import AuditService
from athena.services.rag.models import Answer, ConversationTurn
from athena.services.rag.pipeline import RAGPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/qa", tags=["qa"])


class AskRequest(BaseModel):
    question: str
    context: Optional[str] = Field(default=None, max_length=settings.MAX_QUESTION_CHARS)

    @field_validator("question", mode="before")
    @classmethod
    def _question(cls, v):
        return validate_question(v, settings.MAX_QUESTION_CHARS)


class TurnIn(BaseModel):
    speaker: str
    message: str

    @field_validator("speaker")
    @classmethod
    def _speaker(cls, v: str) -> str:
        return validate_speaker(v)


class MessageRequest(BaseModel):
    message: str
    history: list[TurnIn] = []

    @field_validator("message", mode="before")
    @classmethod
    def _message(cls, v):
        return validate_question(v, settings.MAX_QUESTION_CHARS)


class SourceOut(BaseModel):
    title: str
    url: str
    snippet: str
    category: str
    confidence: float


class AnswerResponse(BaseModel):
    text: str
    sources: list[SourceOut] = []
    confidence: float = Field(ge=0.0, le=1.0)

    @classmethod
    def from_answer(cls, answer: Answer) -> "AnswerResponse":
        return cls(**answer.to_dict())


@router.post("/ask", response_model=AnswerResponse)
@limiter.limit(settings.RATE_LIMIT_QA)
async def ask_question(
    request: Request,
    body: AskRequest,
    background_tasks: BackgroundTasks,
    pipeline: RAGPipeline = Depends(get_pipeline),
    audit: AuditService = Depends(get_audit_service),
):
    answer = await pipeline.ask_question(body.question, context=body.context)
    background_tasks.add_task(audit.record, body.question, answer)
    return AnswerResponse.from_answer(answer)


@router.post("/message", response_model=AnswerResponse)
@limiter.limit(settings.RATE_LIMIT_QA)
async def process_message(
    request: Request,
    body: MessageRequest,
    background_tasks: BackgroundTasks,
    pipeline: RAGPipeline = Depends(get_pipeline),
    audit: AuditService = Depends(get_audit_service),
):
    history = [ConversationTurn(speaker=t.speaker, message=t.message) for t in body.history]
    answer = await pipeline.process_message(body.message, history)
    background_tasks.add_task(audit.record, body.message, answer)
    return AnswerResponse.from_answer(answer)
