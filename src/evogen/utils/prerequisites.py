"""Preflight checks for the external tools a run shells out to."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from evogen.config import EvoGenConfig

logger = logging.getLogger(__name__)


@dataclass
class PrerequisiteCheck:
    """Result of a prerequisite check."""

    missing_commands: list[str] = field(default_factory=list)
    problems: list[str] = field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return not self.missing_commands and not self.problems


def get_command_path(command: str) -> Path | None:
    """Find *command* either as an explicit path or on ``PATH``."""
    candidate = Path(command)
    if candidate.parent != Path() and candidate.is_file():
        return candidate

    system_cmd = shutil.which(command)
    if system_cmd:
        return Path(system_cmd)
    return None


def check_prerequisites(config: EvoGenConfig) -> PrerequisiteCheck:
    """Check that the toolchain and LLM settings needed by *config* are available.

    ``javac`` is always required.  ``java``, ``mvn`` and the EvoSuite jar
    are only needed when the inspiration generator is enabled.
    """
    commands = [config.compiler.javac]
    if config.generator.enabled:
        commands.extend([config.generator.java, config.generator.mvn])

    check = PrerequisiteCheck(
        missing_commands=[cmd for cmd in commands if get_command_path(cmd) is None]
    )

    if config.generator.enabled and not config.generator.evosuite_jar.is_file():
        check.problems.append(f"EvoSuite jar not found: {config.generator.evosuite_jar}")
    if not config.llm.is_configured:
        check.problems.append(
            "LLM is not configured (set llm.model and llm.api_key in .evogen.yml)"
        )

    for cmd in check.missing_commands:
        logger.warning("Required command not found on PATH: %s", cmd)
    for problem in check.problems:
        logger.warning(problem)
    return check
