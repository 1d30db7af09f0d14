"""Unit pipeline: inspiration, synthesis and self-healing validation of one class.

Every unit walks the same states::

    Discovered -> GeneratingInspiration -> Synthesizing -> Validating -> {Saved, Failed}

and always ends in exactly one :class:`JobOutcome`.  Failures are classified
by the stage that produced them; nothing but cancellation escapes
:meth:`UnitPipeline.process`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from evogen.llm.engine import LLMError
from evogen.llm.extraction import extract_code_block
from evogen.llm.synthesizer import SynthesisError, SynthesisRequest
from evogen.models.outcome import FailureCategory, JobOutcome
from evogen.models.unit import Candidate, CompilationUnit

if TYPE_CHECKING:
    from evogen.config import ProjectConfig
    from evogen.generators.evosuite import InspirationGenerator
    from evogen.healers.self_healing import SelfHealingCompiler
    from evogen.llm.synthesizer import LLMSynthesizer
    from evogen.utils.subprocess_runner import ProcessTracker

logger = logging.getLogger(__name__)

INSPIRATION_UNAVAILABLE_PREFIX = "[inspiration unavailable] "


@dataclass
class _Context:
    unit: CompilationUnit
    inspiration_available: bool = True


class UnitPipeline:
    """Drive one compilation unit from discovery to a recorded outcome."""

    def __init__(
        self,
        project: ProjectConfig,
        synthesizer: LLMSynthesizer,
        healer: SelfHealingCompiler,
        *,
        generator: InspirationGenerator | None = None,
        generator_required: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            project: Source, test and classes directories of the project.
            synthesizer: Produces candidate test text from the inputs.
            healer: Validates candidates and resolves missing dependencies.
            generator: Inspiration generator; ``None`` synthesizes from source alone.
            generator_required: Fail the unit when no inspiration is produced.
        """
        if generator_required and generator is None:
            raise ValueError("generator_required needs a generator")
        self._project = project
        self._synthesizer = synthesizer
        self._healer = healer
        self._generator = generator
        self._generator_required = generator_required

    async def process(
        self, unit: CompilationUnit | str, *, tracker: ProcessTracker | None = None
    ) -> JobOutcome:
        """Run the full pipeline for *unit* and return its outcome."""
        if isinstance(unit, str):
            unit = CompilationUnit(unit)
        ctx = _Context(unit=unit)
        try:
            return await self._run(ctx, tracker)
        except Exception as exc:
            logger.exception("[%s] Unexpected error", unit)
            return self._failure(ctx, FailureCategory.OTHER, f"{type(exc).__name__}: {exc}")

    async def _run(self, ctx: _Context, tracker: ProcessTracker | None) -> JobOutcome:
        unit = ctx.unit

        source_path = unit.source_path(self._project.source_dir)
        if not source_path.is_file():
            return self._failure(
                ctx, FailureCategory.SYNTHESIS, f"source file not found: {source_path}"
            )
        source = source_path.read_text(encoding="utf-8")

        inspiration = await self._inspiration(ctx, tracker)
        if inspiration is None and self._generator_required:
            return self._failure(ctx, FailureCategory.GENERATOR, "inspiration generation failed")

        test_path = unit.test_path(self._project.test_dir)
        existing_test = test_path.read_text(encoding="utf-8") if test_path.is_file() else None
        if existing_test is not None:
            logger.info("[%s] Found existing test %s, merging into it", unit, test_path)

        try:
            response = await self._synthesizer.synthesize(
                SynthesisRequest(
                    unit=unit,
                    source=source,
                    inspiration=inspiration,
                    existing_test=existing_test,
                )
            )
        except (LLMError, SynthesisError) as exc:
            logger.warning("[%s] Synthesis failed: %s", unit, exc)
            return self._failure(ctx, FailureCategory.SYNTHESIS, f"synthesis failed: {exc}")

        code = extract_code_block(response)
        if not code:
            return self._failure(
                ctx, FailureCategory.SYNTHESIS, "no extractable code block", detail=response
            )

        candidate = Candidate(unit=unit, source=code, save_path=test_path)
        healing = await self._healer.heal(candidate, self._project.classes_dir, tracker=tracker)
        if healing.accepted:
            logger.info("[%s] Saved accepted test to %s", unit, test_path)
            return JobOutcome.succeeded(
                unit.name,
                test_path,
                inspiration_available=ctx.inspiration_available,
                compile_attempts=healing.attempts,
            )

        return self._failure(
            ctx,
            FailureCategory.COMPILATION,
            healing.reason,
            detail=healing.transcript,
            compile_attempts=healing.attempts,
        )

    async def _inspiration(self, ctx: _Context, tracker: ProcessTracker | None) -> str | None:
        if self._generator is None:
            ctx.inspiration_available = False
            logger.info("[%s] Generator disabled, synthesizing from source alone", ctx.unit)
            return None

        inspiration = await self._generator.generate(ctx.unit, tracker=tracker)
        if inspiration is None:
            ctx.inspiration_available = False
            logger.warning(
                "[%s] Inspiration generation failed, continuing without it", ctx.unit
            )
        return inspiration

    def _failure(
        self,
        ctx: _Context,
        category: FailureCategory,
        reason: str,
        *,
        detail: str = "",
        compile_attempts: int = 0,
    ) -> JobOutcome:
        if not ctx.inspiration_available and self._generator is not None:
            if category is not FailureCategory.GENERATOR:
                reason = f"{INSPIRATION_UNAVAILABLE_PREFIX}{reason}"
        logger.info("[%s] Failed (%s): %s", ctx.unit, category.value, reason)
        return JobOutcome.failed(
            ctx.unit.name,
            category,
            reason,
            detail,
            inspiration_available=ctx.inspiration_available,
            compile_attempts=compile_attempts,
        )
