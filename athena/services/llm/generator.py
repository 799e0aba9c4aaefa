"""
Answer generator: one LiteLLM completion under fixed, low-randomness decoding.

Providers are tried in order (preferred first, then any other configured
provider). Empty or malformed model output becomes FALLBACK_ANSWER; when
every provider errors or times out the call raises GenerationFailure.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import litellm
from litellm import acompletion

from athena.config import Settings, settings as default_settings
from athena.core.exceptions import GenerationFailure
from athena.services.llm.prompts import FALLBACK_ANSWER
from athena.services.llm.providers import provider_chain

logger = logging.getLogger(__name__)

if default_settings.LANGFUSE_PUBLIC_KEY and default_settings.LANGFUSE_SECRET_KEY:
    os.environ["LANGFUSE_PUBLIC_KEY"] = default_settings.LANGFUSE_PUBLIC_KEY
    os.environ["LANGFUSE_SECRET_KEY"] = default_settings.LANGFUSE_SECRET_KEY
    os.environ["LANGFUSE_HOST"] = default_settings.LANGFUSE_HOST
    litellm.success_callback = ["langfuse"]
    litellm.failure_callback = ["langfuse"]
    logger.info("Langfuse observability enabled")


@dataclass(frozen=True)
class DecodingConfig:
    temperature: float = 0.1
    top_p: float = 0.8
    top_k: int = 40
    max_tokens: int = 1024

    @classmethod
    def from_settings(cls, s: Settings) -> "DecodingConfig":
        return cls(
            temperature=s.GENERATION_TEMPERATURE,
            top_p=s.GENERATION_TOP_P,
            top_k=s.GENERATION_TOP_K,
            max_tokens=s.GENERATION_MAX_TOKENS,
        )


def _extract_text(response: Any) -> Optional[str]:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError):
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    return content.strip()


class Generator:
    """Grounded-answer generation via LiteLLM with provider fallback."""

    def __init__(
        self,
        providers: Optional[list[dict[str, Any]]] = None,
        decoding: Optional[DecodingConfig] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self._providers = providers
        self.decoding = decoding or DecodingConfig.from_settings(self.settings)
        self.timeout = timeout or self.settings.GENERATION_TIMEOUT_SECONDS

    @property
    def providers(self) -> list[dict[str, Any]]:
        if self._providers is not None:
            return self._providers
        return provider_chain(self.settings.GENERATION_PROVIDER, self.settings)

    async def generate(self, prompt: str) -> str:
        try:
            chain = self.providers
        except RuntimeError as e:
            raise GenerationFailure(str(e)) from e
        if not chain:
            raise GenerationFailure("no LLM provider configured")

        last_error: Optional[Exception] = None
        for config in chain:
            try:
                response = await asyncio.wait_for(
                    acompletion(
                        model=config["model"],
                        messages=[{"role": "user", "content": prompt}],
                        api_base=config.get("api_base"),
                        api_key=config.get("api_key"),
                        temperature=self.decoding.temperature,
                        top_p=self.decoding.top_p,
                        top_k=self.decoding.top_k,
                        max_tokens=self.decoding.max_tokens,
                        drop_params=True,
                    ),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError as e:
                logger.warning(
                    "LLM provider '%s' timed out after %.1fs", config.get("provider"), self.timeout
                )
                last_error = e
                continue
            except Exception as e:
                logger.warning(
                    "LLM provider '%s' (%s) failed: %s", config.get("provider"), config["model"], e
                )
                last_error = e
                continue

            text = _extract_text(response)
            if text is None:
                logger.warning("Empty or malformed output from %s, using fallback", config["model"])
                return FALLBACK_ANSWER
            return text

        raise GenerationFailure(
            f"all {len(chain)} providers failed: {last_error}"
        ) from last_error
