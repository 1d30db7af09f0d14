"""Built-in LLM adapter using LiteLLM for multi-provider support."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import litellm
from litellm.exceptions import (
    APIConnectionError as LiteLLMConnectionError,
)
from litellm.exceptions import (
    APIError as LiteLLMAPIError,
)
from litellm.exceptions import (
    AuthenticationError as LiteLLMAuthError,
)
from litellm.exceptions import (
    RateLimitError as LiteLLMRateLimitError,
)

from evogen.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMEngine,
    LLMError,
    LLMRateLimitError,
    LLMResponse,
)

logger = logging.getLogger(__name__)

# Suppress litellm's noisy default logging
litellm.suppress_debug_info = True

_SERVER_ERROR_THRESHOLD = 500


@dataclass
class RetryConfig:
    """Configuration for retry behaviour on transient failures."""

    max_retries: int = 3
    """Maximum number of retry attempts."""

    base_delay: float = 1.0
    """Base delay in seconds for exponential backoff."""

    max_delay: float = 60.0
    """Maximum delay cap in seconds."""

    backoff_factor: float = 2.0
    """Multiplier applied to the delay on each retry."""


@dataclass
class RateLimitConfig:
    """Token-bucket rate limiter configuration."""

    requests_per_minute: int = 30
    """Maximum requests allowed per minute, shared by all workers."""


@dataclass
class _TokenBucket:
    """Simple token-bucket rate limiter."""

    capacity: int
    tokens: float = 0.0
    last_refill: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        self.tokens = float(self.capacity)

    async def acquire(self) -> None:
        """Wait until a token is available, then consume one."""
        while True:
            self._refill()
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return
            wait = (1.0 - self.tokens) / (self.capacity / 60.0)
            await asyncio.sleep(min(wait, 1.0))

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.last_refill = now
        self.tokens = min(float(self.capacity), self.tokens + elapsed * (self.capacity / 60.0))


@dataclass
class BuiltinLLMConfig:
    """Constructor arguments for :class:`BuiltinLLM`."""

    model: str
    provider: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)


class BuiltinLLM(LLMEngine):
    """LiteLLM-backed engine supporting Groq, OpenAI, Anthropic, Gemini, Ollama and more.

    Provider selection happens entirely through the LiteLLM ``model`` string
    (e.g. ``"groq/meta-llama/llama-4-scout-17b-16e-instruct"``,
    ``"gemini/gemini-2.5-pro"``, ``"ollama/codellama"``).
    """

    def __init__(self, config: BuiltinLLMConfig) -> None:
        self._model = config.model
        self._provider = config.provider
        self._api_key = config.api_key
        self._base_url = config.base_url
        self._retry = config.retry
        self._bucket = _TokenBucket(capacity=max(config.rate_limit.requests_per_minute, 1))

    # ── Public API ────────────────────────────────────────────────

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [message.as_dict() for message in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["api_base"] = self._base_url

        raw = await self._call_with_retry(kwargs)
        return self._parse_response(raw, self._model)

    # ── Internal helpers ──────────────────────────────────────────

    async def _call_with_retry(self, kwargs: dict[str, Any]) -> Any:
        """Call ``litellm.acompletion`` with rate limiting and retries."""
        last_exc: Exception | None = None
        attempts = self._retry.max_retries + 1

        for attempt in range(attempts):
            await self._bucket.acquire()

            try:
                return await litellm.acompletion(**kwargs)
            except LiteLLMAuthError as exc:
                raise LLMAuthError(str(exc)) from exc
            except LiteLLMRateLimitError as exc:
                last_exc = exc
                kind = "Rate limit hit"
            except LiteLLMConnectionError as exc:
                last_exc = exc
                kind = "Connection error"
            except LiteLLMAPIError as exc:
                last_exc = exc
                if not _is_transient(exc):
                    raise LLMError(str(exc)) from exc
                kind = "Transient API error"

            if attempt + 1 < attempts:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    "%s (attempt %d/%d), retrying in %.1fs", kind, attempt + 1, attempts, delay
                )
                await asyncio.sleep(delay)

        if isinstance(last_exc, LiteLLMRateLimitError):
            raise LLMRateLimitError(str(last_exc)) from last_exc
        if isinstance(last_exc, LiteLLMConnectionError):
            raise LLMConnectionError(str(last_exc)) from last_exc
        raise LLMError(str(last_exc)) from last_exc

    def _backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay for the given attempt."""
        delay = self._retry.base_delay * (self._retry.backoff_factor**attempt)
        return min(delay, self._retry.max_delay)

    @staticmethod
    def _parse_response(raw: Any, model: str) -> LLMResponse:
        """Extract an ``LLMResponse`` from a LiteLLM completion result."""
        if not raw.choices:
            return LLMResponse(text="", model=raw.model or model)
        choice = raw.choices[0]
        usage = getattr(raw, "usage", None)

        return LLMResponse(
            text=choice.message.content or "",
            model=raw.model or model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


def _is_transient(exc: Exception) -> bool:
    """Return ``True`` if the API error looks transient (5xx or timeout)."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and status >= _SERVER_ERROR_THRESHOLD:
        return True
    msg = str(exc).lower()
    return "timeout" in msg or "overloaded" in msg
