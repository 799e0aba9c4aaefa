"""
Structured exception classes for the answer pipeline and the HTTP layer.

Every pipeline failure maps to one of four kinds (invalid input, embedding,
retrieval, generation) plus the fatal corpus configuration error. Rendered as:
  {"error": {"code": "EMBEDDING_FAILURE", "message": "...", "details": ...}}

"No relevant sources" is not an error: it is the refusal answer.
"""

from typing import Any, Optional

GENERIC_FAILURE_MESSAGE = (
    "Sorry, I could not get an answer right now. Please try again in a moment."
)


class AppError(Exception):
    """Base exception with structured fields."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "Internal server error",
        details: Optional[Any] = None,
    ) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class PipelineError(AppError):
    """A failure the caller may retry by asking the whole question again."""

    status_code = 503
    code = "PIPELINE_FAILURE"

    def __init__(self, reason: str = "", details: Optional[Any] = None) -> None:
        self.reason = reason
        super().__init__(message=GENERIC_FAILURE_MESSAGE, details=details)

    def __str__(self) -> str:
        return f"{self.code}: {self.reason}" if self.reason else self.code


class InvalidInputError(PipelineError):
    status_code = 422
    code = "INVALID_INPUT"


class EmbeddingFailure(PipelineError):
    code = "EMBEDDING_FAILURE"


class RetrievalFailure(PipelineError):
    code = "RETRIEVAL_FAILURE"


class GenerationFailure(PipelineError):
    code = "GENERATION_FAILURE"


class CorpusConfigurationError(AppError):
    """Corpus and embedder disagree on dimensionality or model version."""

    status_code = 500
    code = "CORPUS_CONFIGURATION_ERROR"

    def __init__(self, reason: str, details: Optional[Any] = None) -> None:
        self.reason = reason
        super().__init__(message=GENERIC_FAILURE_MESSAGE, details=details)

    def __str__(self) -> str:
        return f"{self.code}: {self.reason}"
