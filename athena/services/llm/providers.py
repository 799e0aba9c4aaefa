"""
LLM provider configurations for LiteLLM routing.
"""

from typing import Any, Optional

from athena.config import Settings, settings as default_settings

FALLBACK_ORDER = ["gemini", "anthropic", "openai"]


def configured_providers(settings: Optional[Settings] = None) -> dict[str, dict[str, Any]]:
    """Provider name -> LiteLLM call config, for every provider with an API key."""
    s = settings or default_settings
    configs: dict[str, dict[str, Any]] = {}

    if s.GOOGLE_API_KEY:
        configs["gemini"] = {
            "model": "gemini/gemini-1.5-pro",
            "api_key": s.GOOGLE_API_KEY,
        }

    if s.ANTHROPIC_API_KEY:
        configs["anthropic"] = {
            "model": "anthropic/claude-sonnet-4-20250514",
            "api_key": s.ANTHROPIC_API_KEY,
        }

    if s.OPENAI_API_KEY:
        configs["openai"] = {
            "model": "gpt-4o",
            "api_key": s.OPENAI_API_KEY,
        }

    return configs


def provider_chain(
    preferred: str, settings: Optional[Settings] = None
) -> list[dict[str, Any]]:
    """Configs to try in order: the preferred provider first, then the fallbacks."""
    configs = configured_providers(settings)
    order = [preferred] + [name for name in FALLBACK_ORDER if name != preferred]
    chain = [dict(configs[name], provider=name) for name in order if name in configs]
    if not chain:
        raise RuntimeError("No LLM provider configured. Set at least one API key.")
    return chain
