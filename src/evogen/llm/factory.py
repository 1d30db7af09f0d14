"""Factory for creating an ``LLMEngine`` from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from evogen.llm.builtin import BuiltinLLM, BuiltinLLMConfig, RateLimitConfig, RetryConfig
from evogen.llm.engine import LLMEngine, LLMError

if TYPE_CHECKING:
    from evogen.config import LLMConfig


def create_engine(config: LLMConfig) -> LLMEngine:
    """Instantiate the ``LLMEngine`` described by an ``LLMConfig``.

    Raises:
        LLMError: If no model is configured.
    """
    model = config.model
    if not model:
        raise LLMError(
            "No LLM model configured. Set 'llm.model' in .evogen.yml or EVOGEN_LLM_MODEL."
        )

    return BuiltinLLM(
        BuiltinLLMConfig(
            model=_qualified_model(config.provider, model),
            provider=config.provider or None,
            api_key=config.api_key or None,
            base_url=config.base_url or None,
            retry=RetryConfig(max_retries=config.max_retries),
            rate_limit=RateLimitConfig(requests_per_minute=config.requests_per_minute),
        )
    )


def _qualified_model(provider: str, model: str) -> str:
    """Prefix *model* with its LiteLLM provider route unless already routed.

    OpenAI models need no prefix; ``groq``, ``gemini``, ``ollama`` and others
    are routed by a ``provider/`` prefix.
    """
    if not provider or provider == "openai" or model.startswith(f"{provider}/"):
        return model
    return f"{provider}/{model}"
