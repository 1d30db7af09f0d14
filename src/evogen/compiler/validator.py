"""Compilation validator: compile a candidate in isolation and classify the result.

The candidate is written to a private scratch directory and compiled there, so
a failed attempt can never touch a previously accepted test.  Only when the
compiler exits cleanly is the candidate published to its final save path.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import shutil
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from evogen.utils.subprocess_runner import run_subprocess

if TYPE_CHECKING:
    from evogen.models.classpath import ClasspathSet
    from evogen.models.unit import Candidate
    from evogen.utils.subprocess_runner import ProcessTracker

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0
_SCRATCH_PREFIX = "evogen-validate-"

_MISSING_PACKAGE_RE = re.compile(r"error: package ([\w.]+) does not exist")

MissingDependencyDetector = Callable[[str], str | None]


def parse_missing_package(transcript: str) -> str | None:
    """Return the first package ``javac`` reports as missing, if any.

    This is the only place that knows what a missing-dependency diagnostic
    looks like; the retry loop consumes its result and nothing else.
    """
    match = _MISSING_PACKAGE_RE.search(transcript)
    return match.group(1) if match else None


class ValidationStatus(Enum):
    """Classification of one compile attempt."""

    ACCEPTED = "accepted"
    """Compiled cleanly; the candidate has been published."""

    MISSING_DEPENDENCY = "missing_dependency"
    """Failed only because a package could not be found on the classpath."""

    UNRECOVERABLE = "unrecoverable"
    """Syntax or semantic error (or timeout) no dependency can fix."""


@dataclass
class ValidationResult:
    """Result of one compile attempt."""

    status: ValidationStatus
    """Outcome classification."""

    transcript: str = ""
    """Combined compiler output."""

    missing_package: str = ""
    """Identifier reported missing, for ``MISSING_DEPENDENCY``."""

    timed_out: bool = False
    """True if the compiler was killed after exceeding its timeout."""

    @property
    def accepted(self) -> bool:
        return self.status is ValidationStatus.ACCEPTED


def publish(candidate: Candidate) -> Path:
    """Write the candidate to its save path, replacing any previous file atomically."""
    target = candidate.save_path
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
    try:
        staging.write_text(candidate.source, encoding="utf-8")
        os.replace(staging, target)
    finally:
        with contextlib.suppress(FileNotFoundError):
            staging.unlink()
    return target


class CompilationValidator:
    """Compile candidates with ``javac`` against an explicit classpath."""

    def __init__(
        self,
        *,
        javac: str = "javac",
        timeout: float = _DEFAULT_TIMEOUT,
        extra_args: tuple[str, ...] = (),
        detect_missing: MissingDependencyDetector = parse_missing_package,
        scratch_root: Path | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            javac: Compiler executable.
            timeout: Seconds before a compiler run is killed.
            extra_args: Additional compiler flags placed before the source file.
            detect_missing: Maps a transcript to a missing identifier (or ``None``).
            scratch_root: Parent directory for scratch directories
                (defaults to the system temp directory).
        """
        self._javac = javac
        self._timeout = timeout
        self._extra_args = extra_args
        self._detect_missing = detect_missing
        self._scratch_root = scratch_root

    async def validate(
        self,
        candidate: Candidate,
        classpath: ClasspathSet,
        *,
        tracker: ProcessTracker | None = None,
    ) -> ValidationResult:
        """Compile *candidate* once and publish it if it compiles.

        Raises:
            SubprocessError: If the compiler cannot be launched.
            OSError: If the scratch directory or the save path cannot be written.
        """
        if self._scratch_root is not None:
            self._scratch_root.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=_SCRATCH_PREFIX, dir=self._scratch_root))

        try:
            source_file = scratch / candidate.file_name
            source_file.write_text(candidate.source, encoding="utf-8")
            output_dir = scratch / "classes"
            output_dir.mkdir()

            command = [
                self._javac,
                "-cp",
                classpath.as_argument(),
                "-d",
                str(output_dir),
                *self._extra_args,
                str(source_file),
            ]
            result = await run_subprocess(
                command, cwd=scratch, timeout=self._timeout, tracker=tracker
            )

            if result.timed_out:
                logger.warning(
                    "[%s] Compiler timed out after %ss", candidate.unit, self._timeout
                )
                return ValidationResult(
                    status=ValidationStatus.UNRECOVERABLE,
                    transcript=f"Compilation timed out after {self._timeout}s\n{result.output}",
                    timed_out=True,
                )

            if result.success:
                saved = publish(candidate)
                logger.info("[%s] Validation successful, saved to %s", candidate.unit, saved)
                return ValidationResult(
                    status=ValidationStatus.ACCEPTED,
                    transcript=result.output,
                )

            missing = self._detect_missing(result.output)
            if missing:
                logger.info("[%s] Compiler reports missing package '%s'", candidate.unit, missing)
                return ValidationResult(
                    status=ValidationStatus.MISSING_DEPENDENCY,
                    transcript=result.output,
                    missing_package=missing,
                )

            logger.info("[%s] Compilation failed with a non-dependency error", candidate.unit)
            return ValidationResult(
                status=ValidationStatus.UNRECOVERABLE,
                transcript=result.output,
            )
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
