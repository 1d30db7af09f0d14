"""Chat-completion engine interface used by the synthesizer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class LLMMessage:
    """One chat message."""

    role: str
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class GenerationRequest:
    """A synthesis prompt plus the sampling settings from ``llm`` config."""

    messages: list[LLMMessage]
    temperature: float = 0.2
    max_tokens: int = 4096


@dataclass(frozen=True)
class LLMResponse:
    """Text returned by the model, with token usage when the provider reports it."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class LLMEngine(ABC):
    """Backend that turns a ``GenerationRequest`` into an ``LLMResponse``."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> LLMResponse:
        """Raises ``LLMError`` (or a subclass) when the provider call fails."""

    @property
    @abstractmethod
    def model_name(self) -> str: ...


class LLMError(Exception):
    """The provider call failed; the unit is reported as a synthesis failure."""


class LLMAuthError(LLMError):
    """Invalid or missing API key. Never retried."""


class LLMRateLimitError(LLMError):
    """Rate limit still hit after every retry."""


class LLMConnectionError(LLMError):
    """Provider unreachable after every retry."""
