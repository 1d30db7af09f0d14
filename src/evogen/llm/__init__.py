"""LLM integration: engine abstraction, LiteLLM backend, prompts and synthesis."""

from evogen.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMEngine,
    LLMError,
    LLMMessage,
    LLMRateLimitError,
    LLMResponse,
)

__all__ = [
    "GenerationRequest",
    "LLMAuthError",
    "LLMConnectionError",
    "LLMEngine",
    "LLMError",
    "LLMMessage",
    "LLMRateLimitError",
    "LLMResponse",
]
