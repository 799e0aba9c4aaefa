"""
Prompt composer: grounding rules, numbered passages, recent history, question.
"""

from typing import Optional, Sequence, Union

from athena.config import settings
from athena.services.llm.prompts import ANSWER_INSTRUCTION, GROUNDED_SYSTEM_PROMPT
from athena.services.rag.models import ConversationTurn, ScoredChunk

History = Union[str, Sequence[ConversationTurn], None]


def render_history(turns: Sequence[ConversationTurn], window: int) -> str:
    """Last `window` turns as 'speaker: message' lines."""
    if window <= 0 or not turns:
        return ""
    return "\n".join(f"{t.speaker}: {t.message}" for t in turns[-window:])


class PromptComposer:
    """Builds the single instruction block sent to the generator."""

    def __init__(self, history_window: Optional[int] = None) -> None:
        self.history_window = (
            settings.RAG_HISTORY_WINDOW if history_window is None else history_window
        )

    def compose(
        self,
        question: str,
        scored_chunks: Sequence[ScoredChunk],
        history: History = None,
    ) -> str:
        if not scored_chunks:
            raise ValueError("compose() needs at least one retrieved passage")

        passages = "\n".join(
            f"[Source {i}] {s.chunk.title}\n{s.chunk.content}\n"
            for i, s in enumerate(scored_chunks, 1)
        )

        if isinstance(history, str):
            history_text = history.strip()
        elif history:
            history_text = render_history(history, self.history_window)
        else:
            history_text = ""

        parts = [
            GROUNDED_SYSTEM_PROMPT,
            f"Retrieved Legal Sources:\n{passages}",
        ]
        if history_text:
            parts.append(f"Previous conversation context:\n{history_text}\n")
        parts.append(f"User Question: {question}")
        parts.append(ANSWER_INSTRUCTION)
        return "\n\n".join(parts)
