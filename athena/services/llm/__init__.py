from athena.services.llm.generator import DecodingConfig, Generator
from athena.services.llm.providers import provider_chain
from athena.services.llm.prompts import FIXED_REFUSAL, GROUNDED_SYSTEM_PROMPT

__all__ = [
    "DecodingConfig",
    "Generator",
    "provider_chain",
    "FIXED_REFUSAL",
    "GROUNDED_SYSTEM_PROMPT",
]
