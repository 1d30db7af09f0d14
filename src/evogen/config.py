"""Configuration parsing from ``.evogen.yml``.

All settings are collected into one immutable :class:`EvoGenConfig` that is
handed to the scheduler at construction time.  Values may reference
environment variables with ``${VAR}`` placeholders; the LLM section also falls
back to ``EVOGEN_LLM_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from evogen.deps.resolver import DEFAULT_REPOSITORY_URL, DEFAULT_SEARCH_URL

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".evogen.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_DEFAULT_BASE_JARS = (
    "junit-jupiter-api-5.10.2.jar",
    "junit-jupiter-engine-5.10.2.jar",
    "opentest4j-1.3.0.jar",
    "junit-platform-commons-1.10.2.jar",
)
_MAX_TEMPERATURE = 2.0


class ConfigError(Exception):
    """Raised when ``.evogen.yml`` cannot be read or parsed."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class ProjectConfig:
    """Layout of the Java project under test."""

    root: Path
    """Project root directory."""

    source_dir: Path
    """Main source root (``src/main/java``)."""

    test_dir: Path
    """Test source root where accepted tests are written (``src/test/java``)."""

    classes_dir: Path
    """Compiled output scanned for units and put on the classpath (``target/classes``)."""


@dataclass(frozen=True)
class GeneratorConfig:
    """EvoSuite inspiration generator settings."""

    enabled: bool = True
    """Run EvoSuite before synthesis; when off, synthesis uses source alone."""

    required: bool = False
    """Treat missing inspiration as a terminal generator failure."""

    evosuite_jar: Path = Path("evosuite-master.jar")
    java: str = "java"
    mvn: str = "mvn"

    search_budget: int = 60
    """EvoSuite search budget per class, in seconds."""

    timeout: float = 300.0
    """Wall-clock limit for one EvoSuite run."""

    classpath_timeout: float = 120.0
    """Wall-clock limit for ``mvn dependency:build-classpath``."""


@dataclass(frozen=True)
class CompilerConfig:
    """Compilation and self-healing settings."""

    javac: str = "javac"
    timeout: float = 30.0
    """Wall-clock limit for one ``javac`` run."""

    max_attempts: int = 5
    """Maximum compile attempts per candidate."""

    base_jars: tuple[Path, ...] = tuple(Path(jar) for jar in _DEFAULT_BASE_JARS)
    """Test-framework archives always put on the classpath when present."""

    extra_args: tuple[str, ...] = ()
    """Additional ``javac`` flags, e.g. ``--release 17`` or ``-proc:none``."""


@dataclass(frozen=True)
class DependencyConfig:
    """Remote registry and local archive cache settings."""

    cache_dir: Path = Path(".m2_local_cache")
    search_url: str = DEFAULT_SEARCH_URL
    repository_url: str = DEFAULT_REPOSITORY_URL
    timeout: float = 60.0


@dataclass(frozen=True)
class SchedulerConfig:
    """Parallelism and run-level limits."""

    workers: int = 4
    """Number of units processed concurrently."""

    run_timeout: float = 7200.0
    """Global wall-clock ceiling for the whole run, in seconds."""

    grace_period: float = 5.0
    """Seconds in-flight jobs get to unwind after cancellation."""


@dataclass(frozen=True)
class LLMConfig:
    """LLM configuration."""

    provider: str = "groq"
    """LiteLLM provider route (groq, openai, anthropic, gemini, ollama, ...)."""

    model: str = ""
    """Model identifier (e.g. ``meta-llama/llama-4-scout-17b-16e-instruct``)."""

    api_key: str = ""
    """API key for the provider (supports ``${ENV_VAR}`` expansion)."""

    base_url: str = ""
    """Custom base URL (useful for Ollama or proxied endpoints)."""

    temperature: float = 0.2
    max_tokens: int = 4096

    requests_per_minute: int = 30
    """Rate limit shared by all workers."""

    max_retries: int = 3
    """Maximum number of retry attempts on transient failures."""

    @property
    def is_configured(self) -> bool:
        """Return ``True`` when enough info is present for generation."""
        if self.provider == "ollama":
            return bool(self.model)
        return bool(self.model and self.api_key)


@dataclass(frozen=True)
class EvoGenConfig:
    """Complete, immutable evogen configuration."""

    project: ProjectConfig
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    dependencies: DependencyConfig = field(default_factory=DependencyConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_args(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(shlex.split(value))
    return tuple(str(arg) for arg in value)


def _resolve_path(root: Path, value: Any, default: str | Path) -> Path:
    path = Path(str(value if value not in (None, "") else default)).expanduser()
    return path if path.is_absolute() else root / path


def load_config(root: str | Path) -> EvoGenConfig:
    """Load and parse ``.evogen.yml`` from *root*.

    Falls back to defaults and environment variables when the file is missing
    or incomplete.  Relative paths are resolved against the project root.

    Raises:
        ConfigError: If the file exists but is not valid YAML.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        try:
            parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_file}: {exc}") from exc
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    project_raw = _section(raw, "project")
    project_root = _resolve_path(root_path, project_raw.get("root"), root_path)
    project = ProjectConfig(
        root=project_root,
        source_dir=_resolve_path(project_root, project_raw.get("source_dir"), "src/main/java"),
        test_dir=_resolve_path(project_root, project_raw.get("test_dir"), "src/test/java"),
        classes_dir=_resolve_path(project_root, project_raw.get("classes_dir"), "target/classes"),
    )

    return EvoGenConfig(
        project=project,
        generator=_parse_generator_config(_section(raw, "generator"), project_root),
        compiler=_parse_compiler_config(_section(raw, "compiler"), project_root),
        dependencies=_parse_dependency_config(_section(raw, "dependencies"), project_root),
        scheduler=_parse_scheduler_config(_section(raw, "scheduler")),
        llm=_parse_llm_config(_section(raw, "llm")),
    )


def _parse_generator_config(raw: dict[str, Any], root: Path) -> GeneratorConfig:
    defaults = GeneratorConfig()
    return GeneratorConfig(
        enabled=_as_bool(raw.get("enabled"), defaults.enabled),
        required=_as_bool(raw.get("required"), defaults.required),
        evosuite_jar=_resolve_path(root, raw.get("evosuite_jar"), defaults.evosuite_jar),
        java=str(raw.get("java", defaults.java)),
        mvn=str(raw.get("mvn", defaults.mvn)),
        search_budget=int(raw.get("search_budget", defaults.search_budget)),
        timeout=float(raw.get("timeout", defaults.timeout)),
        classpath_timeout=float(raw.get("classpath_timeout", defaults.classpath_timeout)),
    )


def _parse_compiler_config(raw: dict[str, Any], root: Path) -> CompilerConfig:
    defaults = CompilerConfig()
    base_jars_raw = raw.get("base_jars")
    if isinstance(base_jars_raw, list):
        base_jars = tuple(_resolve_path(root, jar, jar) for jar in base_jars_raw if jar)
    else:
        base_jars = tuple(root / jar for jar in defaults.base_jars)

    return CompilerConfig(
        javac=str(raw.get("javac", defaults.javac)),
        timeout=float(raw.get("timeout", defaults.timeout)),
        max_attempts=int(raw.get("max_attempts", defaults.max_attempts)),
        base_jars=base_jars,
        extra_args=_as_args(raw.get("extra_args")),
    )


def _parse_dependency_config(raw: dict[str, Any], root: Path) -> DependencyConfig:
    defaults = DependencyConfig()
    return DependencyConfig(
        cache_dir=_resolve_path(root, raw.get("cache_dir"), defaults.cache_dir),
        search_url=str(raw.get("search_url", defaults.search_url)),
        repository_url=str(raw.get("repository_url", defaults.repository_url)),
        timeout=float(raw.get("timeout", defaults.timeout)),
    )


def _parse_scheduler_config(raw: dict[str, Any]) -> SchedulerConfig:
    defaults = SchedulerConfig()
    return SchedulerConfig(
        workers=int(raw.get("workers", defaults.workers)),
        run_timeout=float(raw.get("run_timeout", defaults.run_timeout)),
        grace_period=float(raw.get("grace_period", defaults.grace_period)),
    )


def _parse_llm_config(raw: dict[str, Any]) -> LLMConfig:
    defaults = LLMConfig()
    return LLMConfig(
        provider=str(raw.get("provider", os.environ.get("EVOGEN_LLM_PROVIDER", defaults.provider))),
        model=str(raw.get("model", os.environ.get("EVOGEN_LLM_MODEL", ""))),
        api_key=str(raw.get("api_key", os.environ.get("EVOGEN_LLM_API_KEY", ""))),
        base_url=str(raw.get("base_url", os.environ.get("EVOGEN_LLM_BASE_URL", ""))),
        temperature=float(raw.get("temperature", defaults.temperature)),
        max_tokens=int(raw.get("max_tokens", defaults.max_tokens)),
        requests_per_minute=int(raw.get("requests_per_minute", defaults.requests_per_minute)),
        max_retries=int(raw.get("max_retries", defaults.max_retries)),
    )


# ── Validation ────────────────────────────────────────────────────


def _validate_llm_config(llm: LLMConfig) -> list[str]:
    errors: list[str] = []
    if not llm.model:
        errors.append("llm.model is required (set it in .evogen.yml or EVOGEN_LLM_MODEL)")
    if llm.provider != "ollama" and not llm.api_key:
        errors.append("llm.api_key is required (set it in .evogen.yml or EVOGEN_LLM_API_KEY)")
    if llm.temperature < 0 or llm.temperature > _MAX_TEMPERATURE:
        errors.append(
            f"llm.temperature should be between 0 and {_MAX_TEMPERATURE} "
            f"(got: {llm.temperature})"
        )
    if llm.requests_per_minute < 1:
        errors.append("llm.requests_per_minute must be >= 1")
    if llm.max_retries < 0:
        errors.append("llm.max_retries must be >= 0")
    return errors


def _validate_limits(config: EvoGenConfig) -> list[str]:
    errors: list[str] = []
    if config.compiler.max_attempts < 1:
        errors.append("compiler.max_attempts must be >= 1")
    if config.compiler.timeout <= 0:
        errors.append("compiler.timeout must be positive")
    if config.generator.enabled and config.generator.timeout <= 0:
        errors.append("generator.timeout must be positive")
    if config.generator.required and not config.generator.enabled:
        errors.append("generator.required cannot be set when generator.enabled is false")
    if config.scheduler.workers < 1:
        errors.append("scheduler.workers must be >= 1")
    if config.scheduler.run_timeout <= 0:
        errors.append("scheduler.run_timeout must be positive")
    if config.scheduler.grace_period < 0:
        errors.append("scheduler.grace_period must be >= 0")
    return errors


def validate_config(config: EvoGenConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []
    if not config.project.root.is_dir():
        errors.append(f"project.root does not exist: {config.project.root}")
    errors.extend(_validate_llm_config(config.llm))
    errors.extend(_validate_limits(config))
    return errors
