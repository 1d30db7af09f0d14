"""evogen CLI — top-level command group."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
from dataclasses import asdict, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.logging import RichHandler

from evogen import __version__
from evogen.compiler.validator import CompilationValidator
from evogen.config import ConfigError, EvoGenConfig, load_config, validate_config
from evogen.deps.resolver import DependencyResolver
from evogen.discovery import discover_units
from evogen.generators.evosuite import EvoSuiteGenerator
from evogen.healers.self_healing import SelfHealingCompiler
from evogen.llm.engine import LLMError
from evogen.llm.factory import create_engine
from evogen.llm.synthesizer import LLMSynthesizer
from evogen.pipeline.unit import UnitPipeline
from evogen.reporters.terminal import console, reporter
from evogen.scheduler import Scheduler
from evogen.utils.prerequisites import check_prerequisites

if TYPE_CHECKING:
    from collections.abc import Sequence

    from evogen.models.outcome import RunSummary

logger = logging.getLogger(__name__)

_MIN_MASKED_VALUE_LENGTH = 8
_SENSITIVE_KEYS = {"api_key"}

_path_option = click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)


def _setup_logging(*, verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # LiteLLM and httpx are very chatty at DEBUG level
    for noisy in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load(path: str) -> EvoGenConfig:
    try:
        return load_config(path)
    except ConfigError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _plain(value: Any) -> Any:
    """Convert paths and tuples so the config dict can be dumped as YAML/JSON."""
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _mask_sensitive_values(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask API keys, keeping the first and last 4 chars of long values."""
    masked: dict[str, Any] = {}
    for key, value in data.items():
        if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
            if len(value) > _MIN_MASKED_VALUE_LENGTH:
                masked[key] = f"{value[:4]}...{value[-4:]}"
            else:
                masked[key] = "***"
        elif isinstance(value, dict):
            masked[key] = _mask_sensitive_values(value)
        else:
            masked[key] = value
    return masked


def _apply_overrides(
    config: EvoGenConfig,
    *,
    workers: int | None,
    model: str | None,
    max_attempts: int | None,
    no_generator: bool,
) -> EvoGenConfig:
    """Return *config* with command-line options layered on top."""
    if workers is not None:
        config = replace(config, scheduler=replace(config.scheduler, workers=workers))
    if model:
        config = replace(config, llm=replace(config.llm, model=model))
    if max_attempts is not None:
        config = replace(config, compiler=replace(config.compiler, max_attempts=max_attempts))
    if no_generator:
        config = replace(
            config, generator=replace(config.generator, enabled=False, required=False)
        )
    return config


def _install_signal_handlers(scheduler: Scheduler) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on Windows event loops
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, scheduler.cancel)
            installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def _execute(config: EvoGenConfig, units: Sequence[str] | None) -> RunSummary:
    """Wire the components described by *config* and run the scheduler."""
    async with DependencyResolver(
        config.dependencies.cache_dir,
        search_url=config.dependencies.search_url,
        repository_url=config.dependencies.repository_url,
        timeout=config.dependencies.timeout,
    ) as resolver:
        healer = SelfHealingCompiler(
            CompilationValidator(
                javac=config.compiler.javac,
                timeout=config.compiler.timeout,
                extra_args=config.compiler.extra_args,
            ),
            resolver,
            base_jars=config.compiler.base_jars,
            max_attempts=config.compiler.max_attempts,
        )
        synthesizer = LLMSynthesizer(
            create_engine(config.llm),
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
        )
        generator = (
            EvoSuiteGenerator(config.project, config.generator)
            if config.generator.enabled
            else None
        )
        pipeline = UnitPipeline(
            config.project,
            synthesizer,
            healer,
            generator=generator,
            generator_required=config.generator.required,
        )
        scheduler = Scheduler(config, pipeline, on_outcome=reporter.print_unit_outcome)

        installed = _install_signal_handlers(scheduler)
        try:
            return await scheduler.run(units)
        finally:
            _remove_signal_handlers(installed)


@click.group()
@click.version_option(version=__version__, prog_name="evogen")
def cli() -> None:
    """evogen — EvoSuite-inspired, LLM-synthesized JUnit 5 tests that compile."""


@cli.command()
@_path_option
@click.option(
    "--class",
    "classes",
    multiple=True,
    help="Fully-qualified class to process (repeatable). Skips discovery.",
)
@click.option("--workers", type=click.IntRange(1), default=None, help="Parallel workers.")
@click.option("--model", default=None, help="LLM model (overrides .evogen.yml).")
@click.option(
    "--max-attempts",
    type=click.IntRange(1),
    default=None,
    help="Maximum compile attempts per class.",
)
@click.option(
    "--no-generator",
    is_flag=True,
    help="Skip EvoSuite and synthesize from source alone.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed log output.")
@click.pass_context
def run(  # noqa: PLR0913
    ctx: click.Context,
    path: str,
    classes: tuple[str, ...],
    workers: int | None,
    model: str | None,
    max_attempts: int | None,
    *,
    no_generator: bool,
    verbose: bool,
) -> None:
    """Generate, synthesize and compile-check JUnit 5 tests for a Maven project.

    Example:
      evogen run --path ../my-service
      evogen run --class com.acme.billing.Invoice --no-generator
    """
    _setup_logging(verbose=verbose)
    config = _apply_overrides(
        _load(path),
        workers=workers,
        model=model,
        max_attempts=max_attempts,
        no_generator=no_generator,
    )

    errors = validate_config(config)
    if errors:
        reporter.print_error(f"Found {len(errors)} configuration error(s):")
        for idx, error in enumerate(errors, start=1):
            console.print(f"  {idx}. [red]{error}[/red]")
        raise click.Abort

    check = check_prerequisites(config)
    if not check.satisfied:
        for cmd in check.missing_commands:
            reporter.print_error(f"Required command not found: {cmd}")
        for problem in check.problems:
            reporter.print_error(problem)
        raise click.Abort

    reporter.print_header(f"evogen {__version__}")
    reporter.print_info(f"Project: {config.project.root}")
    if not config.generator.enabled:
        reporter.print_info("EvoSuite disabled, synthesizing from source alone")

    units = list(classes) if classes else None
    try:
        summary = asyncio.run(_execute(config, units))
    except LLMError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    reporter.print_run_summary(summary)
    if not summary.ok:
        ctx.exit(1)


@cli.command()
@_path_option
@click.option("--json-output", "as_json", is_flag=True, help="Output a JSON list.")
def discover(path: str, *, as_json: bool) -> None:
    """List the classes a run would process."""
    config = _load(path)
    units = discover_units(config.project.classes_dir)

    if as_json:
        click.echo(json.dumps(units, indent=2))
        return
    if not units:
        reporter.print_warning(
            f"No classes found in {config.project.classes_dir}. Build the project first."
        )
        return
    for unit in units:
        click.echo(unit)
    reporter.print_info(f"{len(units)} classes")


@cli.group("config")
def config_group() -> None:
    """Inspect `.evogen.yml` configuration."""


@config_group.command("show")
@_path_option
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
@click.option(
    "--no-mask",
    is_flag=True,
    help="Show sensitive values unmasked (use with caution).",
)
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with masked API keys.

    Example:
      evogen config show
      evogen config show --json-output
    """
    config_dict = _plain(asdict(_load(path)))
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))
