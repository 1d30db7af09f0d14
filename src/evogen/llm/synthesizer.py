"""LLM synthesizer: ask the model for a JUnit 5 test of one unit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from evogen.llm.engine import GenerationRequest
from evogen.llm.prompts.synthesis import JUnit5SynthesisTemplate

if TYPE_CHECKING:
    from evogen.llm.engine import LLMEngine
    from evogen.llm.prompts.base import PromptTemplate
    from evogen.models.unit import CompilationUnit

logger = logging.getLogger(__name__)


class SynthesisError(Exception):
    """Raised when the model returns nothing usable."""


@dataclass(frozen=True)
class SynthesisRequest:
    """Inputs for one synthesis call."""

    unit: CompilationUnit
    source: str
    """Source of the class under test."""

    inspiration: str | None = None
    """EvoSuite-generated test, when the generator succeeded."""

    existing_test: str | None = None
    """Hand-written test already in the project, used as style guide and merge base."""


class LLMSynthesizer:
    """Render the synthesis prompt and return the model's raw response text."""

    def __init__(
        self,
        engine: LLMEngine,
        *,
        template: PromptTemplate | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ) -> None:
        self._engine = engine
        self._template = template or JUnit5SynthesisTemplate()
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def synthesize(self, request: SynthesisRequest) -> str:
        """Return the raw model response for *request*.

        Raises:
            LLMError: On provider failures.
            SynthesisError: If the response body is empty.
        """
        prompt = self._template.render(request)
        logger.info(
            "[%s] Synthesizing JUnit 5 test with %s", request.unit, self._engine.model_name
        )

        response = await self._engine.generate(
            GenerationRequest(
                messages=prompt.messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        )
        text = response.text.strip()
        if not text:
            raise SynthesisError("LLM response was empty")

        logger.debug(
            "[%s] Received %d characters (%d prompt + %d completion tokens)",
            request.unit,
            len(text),
            response.prompt_tokens,
            response.completion_tokens,
        )
        return text
