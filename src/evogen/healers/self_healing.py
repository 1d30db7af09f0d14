"""Self-healing compilation loop.

A candidate that fails to compile only because a package is missing is not
given up on: the missing package is looked up in the registry, its archive is
appended to the classpath and the compile is retried.  The loop is bounded by
``max_attempts`` and never asks the resolver about the same package twice, so
it always terminates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from evogen.compiler.validator import ValidationStatus
from evogen.deps.resolver import DependencyResolutionError
from evogen.models.classpath import ClasspathSet

if TYPE_CHECKING:
    from collections.abc import Sequence

    from evogen.compiler.validator import CompilationValidator
    from evogen.deps.resolver import DependencyResolver
    from evogen.models.unit import Candidate
    from evogen.utils.subprocess_runner import ProcessTracker

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class HealingResult:
    """Outcome of validating one candidate with self-healing."""

    accepted: bool
    """Whether the candidate compiled and was published."""

    reason: str = ""
    """Failure reason, empty on success."""

    transcript: str = ""
    """Last compiler transcript."""

    attempts: int = 0
    """Number of compile attempts made."""

    resolved_packages: list[str] = field(default_factory=list)
    """Missing identifiers sent to the resolver, in order."""

    added_archives: list[Path] = field(default_factory=list)
    """Archives appended to the classpath by the resolver."""


class SelfHealingCompiler:
    """Compose a validator and a resolver into a bounded retry loop."""

    def __init__(
        self,
        validator: CompilationValidator,
        resolver: DependencyResolver,
        *,
        base_jars: Sequence[Path] = (),
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        """Initialize the self-healing compiler.

        Args:
            validator: Compiles a candidate once against a classpath.
            resolver: Turns a missing package into a cached archive.
            base_jars: Test-framework archives every candidate needs.
            max_attempts: Maximum compile attempts per candidate.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._validator = validator
        self._resolver = resolver
        self._base_jars = tuple(base_jars)
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def initial_classpath(self, classes_dir: Path) -> ClasspathSet:
        """Unit output directory, baseline jars present on disk, then cached archives."""
        classpath = ClasspathSet([classes_dir])
        for jar in self._base_jars:
            if jar.is_file():
                classpath.add(jar)
            else:
                logger.warning("Base dependency JAR not found, skipping: %s", jar)
        classpath.extend(self._resolver.cached_archives())
        return classpath

    async def heal(
        self,
        candidate: Candidate,
        classes_dir: Path,
        *,
        tracker: ProcessTracker | None = None,
    ) -> HealingResult:
        """Validate *candidate*, resolving missing packages between attempts."""
        classpath = self.initial_classpath(classes_dir)
        attempted: set[str] = set()
        result = HealingResult(accepted=False)

        logger.info("[%s] Validating synthesized code (with self-healing)", candidate.unit)

        for attempt in range(1, self._max_attempts + 1):
            result.attempts = attempt
            logger.info(
                "[%s] Compile attempt %d/%d with %d archive(s) on classpath",
                candidate.unit,
                attempt,
                self._max_attempts,
                len(classpath.archives),
            )

            validation = await self._validator.validate(candidate, classpath, tracker=tracker)
            result.transcript = validation.transcript

            if validation.status is ValidationStatus.ACCEPTED:
                result.accepted = True
                return result

            if validation.status is ValidationStatus.UNRECOVERABLE:
                result.reason = (
                    "compiler timed out" if validation.timed_out else "compilation error"
                )
                return result

            missing = validation.missing_package
            if missing in attempted:
                result.reason = f"repeated unresolved dependency {missing}"
                return result

            attempted.add(missing)
            result.resolved_packages.append(missing)
            logger.info("[%s] Resolving missing package '%s'", candidate.unit, missing)

            try:
                archive = await self._resolver.resolve(missing)
            except DependencyResolutionError as exc:
                logger.info("[%s] %s", candidate.unit, exc)
                result.reason = f"unresolvable dependency {missing}"
                return result

            classpath.add(archive)
            result.added_archives.append(archive)
            logger.info(
                "[%s] Added %s to classpath, retrying compilation", candidate.unit, archive.name
            )

        result.reason = "exceeded retry budget"
        return result
