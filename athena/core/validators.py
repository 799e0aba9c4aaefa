"""
Input validators for questions, conversation turns and embedding vectors.

Raise ValueError so they can back Pydantic field_validator usage; the
pipeline re-raises them as InvalidInputError.
"""

import math
from typing import Any, Optional, Sequence

SPEAKERS = ("user", "athena")


def validate_question(value: Optional[Any], max_chars: int = 4000) -> str:
    """Question must be a non-empty string within the length limit. Returns it stripped."""
    if value is None:
        raise ValueError("Question is required")
    if not isinstance(value, str):
        raise ValueError(f"Question must be a string, got {type(value).__name__}")
    v = value.strip()
    if not v:
        raise ValueError("Question must not be empty")
    if len(v) > max_chars:
        raise ValueError(
            f"Question is too long: {len(v)} characters (max {max_chars})"
        )
    return v


def validate_speaker(value: str) -> str:
    v = value.strip().lower()
    if v not in SPEAKERS:
        raise ValueError(f"Unknown speaker '{value}'. Expected one of: {', '.join(SPEAKERS)}")
    return v


def validate_embedding(values: Sequence[Any]) -> list[float]:
    """Embedding must be a non-empty sequence of finite numbers."""
    if not values:
        raise ValueError("Embedding must not be empty")
    out: list[float] = []
    for i, v in enumerate(values):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"Embedding value at {i} is not a number: {v!r}")
        f = float(v)
        if not math.isfinite(f):
            raise ValueError(f"Embedding value at {i} is not finite: {v!r}")
        out.append(f)
    return out
