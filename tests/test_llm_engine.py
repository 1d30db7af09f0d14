"""Tests for the LLM engine abstraction and the LiteLLM-backed adapter."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
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

from evogen.llm.builtin import (
    BuiltinLLM,
    BuiltinLLMConfig,
    RateLimitConfig,
    RetryConfig,
    _TokenBucket,
)
from evogen.llm.engine import (
    GenerationRequest,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMMessage,
    LLMRateLimitError,
)

_MODEL = "groq/meta-llama/llama-4-scout-17b-16e-instruct"


def _mock_completion(
    text: str | None = "```java\nclass FooTest {}\n```",
    model: str = _MODEL,
    prompt_t: int = 10,
    comp_t: int = 5,
) -> SimpleNamespace:
    """Build a fake LiteLLM completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model=model,
        usage=SimpleNamespace(prompt_tokens=prompt_t, completion_tokens=comp_t),
    )


def _request(**overrides: Any) -> GenerationRequest:
    return GenerationRequest(
        messages=[
            LLMMessage(role="system", content="You write JUnit 5 tests."),
            LLMMessage(role="user", content="Test com.acme.Calculator"),
        ],
        **overrides,
    )


def _engine(**retry: float) -> BuiltinLLM:
    return BuiltinLLM(
        BuiltinLLMConfig(
            model=_MODEL,
            api_key="gsk-test",
            retry=RetryConfig(base_delay=0.01, **retry),  # type: ignore[arg-type]
        )
    )


def _rate_limited() -> LiteLLMRateLimitError:
    return LiteLLMRateLimitError(message="rate limited", llm_provider="groq", model=_MODEL)


def _connection_refused() -> LiteLLMConnectionError:
    return LiteLLMConnectionError(
        message="connection refused", llm_provider="groq", model=_MODEL
    )


# ── Dataclasses ──────────────────────────────────────────────────


def test_message_as_dict() -> None:
    message = LLMMessage(role="user", content="Test com.acme.Calculator")

    assert message.as_dict() == {"role": "user", "content": "Test com.acme.Calculator"}


def test_config_defaults() -> None:
    assert RetryConfig().max_retries == 3
    assert RetryConfig().backoff_factor == 2.0
    assert RateLimitConfig().requests_per_minute == 30


async def test_token_bucket_allows_burst() -> None:
    bucket = _TokenBucket(capacity=10)
    for _ in range(10):
        await bucket.acquire()

    assert bucket.tokens < 1.0


# ── generate ─────────────────────────────────────────────────────


async def test_generate_returns_parsed_response() -> None:
    engine = _engine()

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion(prompt_t=20, comp_t=10)
        response = await engine.generate(_request(temperature=0.1, max_tokens=2048))

    assert response.text == "```java\nclass FooTest {}\n```"
    assert (response.prompt_tokens, response.completion_tokens) == (20, 10)
    kwargs = mock_ac.call_args.kwargs
    assert kwargs["model"] == _MODEL
    assert kwargs["api_key"] == "gsk-test"
    assert kwargs["temperature"] == 0.1
    assert kwargs["max_tokens"] == 2048
    assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
    assert "api_base" not in kwargs


async def test_generate_passes_base_url_without_api_key() -> None:
    engine = BuiltinLLM(
        BuiltinLLMConfig(model="ollama/codellama", base_url="http://localhost:11434")
    )

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = _mock_completion(model="ollama/codellama")
        await engine.generate(_request())

    kwargs = mock_ac.call_args.kwargs
    assert kwargs["model"] == "ollama/codellama"
    assert kwargs["api_base"] == "http://localhost:11434"
    assert "api_key" not in kwargs


async def test_generate_handles_empty_choices_and_content() -> None:
    engine = _engine()

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.return_value = SimpleNamespace(choices=[], model=None, usage=None)
        empty = await engine.generate(_request())
        mock_ac.return_value = _mock_completion(text=None)
        none_content = await engine.generate(_request())

    assert empty.text == ""
    assert empty.model == _MODEL
    assert none_content.text == ""


# ── Retry / error handling ───────────────────────────────────────


async def test_retries_on_rate_limit_then_succeeds() -> None:
    engine = _engine(max_retries=2)

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = [_rate_limited(), _rate_limited(), _mock_completion(text="ok")]
        response = await engine.generate(_request())

    assert response.text == "ok"
    assert mock_ac.await_count == 3


async def test_exhausted_rate_limit_retries_raise() -> None:
    engine = _engine(max_retries=1)

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = _rate_limited()
        with pytest.raises(LLMRateLimitError):
            await engine.generate(_request())

    assert mock_ac.await_count == 2


async def test_exhausted_connection_retries_raise() -> None:
    engine = _engine(max_retries=1)

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = _connection_refused()
        with pytest.raises(LLMConnectionError):
            await engine.generate(_request())


async def test_auth_error_is_not_retried() -> None:
    engine = _engine(max_retries=3)

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = LiteLLMAuthError(
            message="invalid key", llm_provider="groq", model=_MODEL
        )
        with pytest.raises(LLMAuthError):
            await engine.generate(_request())

    assert mock_ac.await_count == 1


async def test_transient_api_error_is_retried() -> None:
    engine = _engine(max_retries=1)
    server_error = LiteLLMAPIError(
        status_code=503, message="overloaded", llm_provider="groq", model=_MODEL
    )

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = [server_error, _mock_completion(text="ok")]
        response = await engine.generate(_request())

    assert response.text == "ok"


async def test_client_api_error_fails_immediately() -> None:
    engine = _engine(max_retries=3)
    bad_request = LiteLLMAPIError(
        status_code=400, message="context length exceeded", llm_provider="groq", model=_MODEL
    )

    with patch("evogen.llm.builtin.litellm.acompletion", new_callable=AsyncMock) as mock_ac:
        mock_ac.side_effect = bad_request
        with pytest.raises(LLMError, match="context length"):
            await engine.generate(_request())

    assert mock_ac.await_count == 1
