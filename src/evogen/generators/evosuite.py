"""EvoSuite inspiration generator.

Runs EvoSuite against one compiled class and returns the generated
``<Name>_ESTest.java`` source, which the synthesizer uses as a source of
test cases.  The project's runtime classpath is built once per run with
``mvn dependency:build-classpath`` and shared by every invocation.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from evogen.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from evogen.config import GeneratorConfig, ProjectConfig
    from evogen.models.unit import CompilationUnit
    from evogen.utils.subprocess_runner import ProcessTracker

logger = logging.getLogger(__name__)


class InspirationGenerator(Protocol):
    """Anything that can produce an inspiration test for a unit."""

    async def generate(
        self, unit: CompilationUnit, *, tracker: ProcessTracker | None = None
    ) -> str | None: ...


class EvoSuiteGenerator:
    """Generate inspiration tests by shelling out to EvoSuite."""

    def __init__(self, project: ProjectConfig, config: GeneratorConfig) -> None:
        self._project = project
        self._config = config
        self._classpath_lock = asyncio.Lock()
        self._classpath: str | None = None
        self._classpath_ready = False

    async def project_classpath(self, *, tracker: ProcessTracker | None = None) -> str | None:
        """Return the project classpath (classes dir plus runtime dependencies).

        Computed once; a failed Maven run is remembered so later units do not
        retry it.
        """
        async with self._classpath_lock:
            if not self._classpath_ready:
                self._classpath = await self._build_classpath(tracker)
                self._classpath_ready = True
            return self._classpath

    async def _build_classpath(self, tracker: ProcessTracker | None) -> str | None:
        logger.info("Generating project classpath with Maven")
        work_dir = Path(tempfile.mkdtemp(prefix="evogen-classpath-"))
        classpath_file = work_dir / "classpath.txt"
        try:
            result = await run_subprocess(
                [
                    self._config.mvn,
                    "dependency:build-classpath",
                    f"-Dmdep.outputFile={classpath_file}",
                    "-DincludeScope=runtime",
                    "-q",
                ],
                cwd=self._project.root,
                timeout=self._config.classpath_timeout,
                tracker=tracker,
            )
        except SubprocessError as exc:
            logger.warning("Maven classpath build failed: %s", exc)
            shutil.rmtree(work_dir, ignore_errors=True)
            return None

        try:
            if not result.success or not classpath_file.is_file():
                logger.warning(
                    "Maven classpath build failed (exit %d): %s",
                    result.returncode,
                    result.output.strip()[-2000:],
                )
                return None
            dependencies = classpath_file.read_text(encoding="utf-8").strip()
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        entries = [str(self._project.classes_dir.absolute())]
        if dependencies:
            entries.append(dependencies)
        return os.pathsep.join(entries)

    async def generate(
        self, unit: CompilationUnit, *, tracker: ProcessTracker | None = None
    ) -> str | None:
        """Run EvoSuite for *unit* and return the generated test source.

        Returns ``None`` when the classpath cannot be built, EvoSuite fails or
        times out, or the expected output file is missing.
        """
        classpath = await self.project_classpath(tracker=tracker)
        if classpath is None:
            return None

        out_dir = Path(tempfile.mkdtemp(prefix="evogen-evosuite-"))
        try:
            logger.info("[%s] Running EvoSuite", unit)
            try:
                result = await run_subprocess(
                    [
                        self._config.java,
                        "-jar",
                        str(self._config.evosuite_jar),
                        "-class",
                        unit.name,
                        "-projectCP",
                        classpath,
                        f"-Dtest_dir={out_dir}",
                        "-Dmock_if_no_generator=true",
                        f"-Dsearch_budget={self._config.search_budget}",
                    ],
                    cwd=self._project.root,
                    timeout=self._config.timeout,
                    tracker=tracker,
                )
            except SubprocessError as exc:
                logger.warning("[%s] EvoSuite could not be started: %s", unit, exc)
                return None

            if result.timed_out:
                logger.warning("[%s] EvoSuite timed out after %.0fs", unit, self._config.timeout)
                return None
            if not result.success:
                logger.warning("[%s] EvoSuite exited with code %d", unit, result.returncode)
                return None

            generated = unit.inspiration_path(out_dir)
            if not generated.is_file():
                logger.warning("[%s] EvoSuite produced no test file at %s", unit, generated)
                return None
            return generated.read_text(encoding="utf-8")
        finally:
            shutil.rmtree(out_dir, ignore_errors=True)
