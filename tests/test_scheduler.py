"""Tests for the scheduler worker pool."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import pytest

from evogen.config import EvoGenConfig, ProjectConfig, SchedulerConfig
from evogen.models import CompilationUnit, FailureCategory, JobOutcome
from evogen.scheduler import Scheduler
from evogen.utils.subprocess_runner import ProcessTracker, run_subprocess


def _config(root: Path, **scheduler: float) -> EvoGenConfig:
    return EvoGenConfig(
        project=ProjectConfig(
            root=root,
            source_dir=root / "src" / "main" / "java",
            test_dir=root / "src" / "test" / "java",
            classes_dir=root / "target" / "classes",
        ),
        scheduler=SchedulerConfig(**scheduler),  # type: ignore[arg-type]
    )


class _FakePipeline:
    """Pipeline double that records concurrency and can be told to misbehave."""

    def __init__(
        self,
        *,
        delays: dict[str, float] | None = None,
        fail: set[str] | None = None,
        crash: set[str] | None = None,
    ) -> None:
        self.delays = delays or {}
        self.fail = fail or set()
        self.crash = crash or set()
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0

    async def process(
        self, unit: CompilationUnit, *, tracker: ProcessTracker | None = None
    ) -> JobOutcome:
        self.calls.append(unit.name)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delays.get(unit.name, 0.01))
        finally:
            self.active -= 1
        if unit.name in self.crash:
            raise RuntimeError(f"crash in {unit.name}")
        if unit.name in self.fail:
            return JobOutcome.failed(
                unit.name, FailureCategory.SYNTHESIS, "no extractable code block"
            )
        return JobOutcome.succeeded(unit.name, Path(f"/tests/{unit.simple_name}Test.java"))


class _HangingPipeline:
    """Pipeline double whose jobs block on a long-running child process."""

    def __init__(self) -> None:
        self.trackers: list[ProcessTracker] = []

    async def process(
        self, unit: CompilationUnit, *, tracker: ProcessTracker | None = None
    ) -> JobOutcome:
        assert tracker is not None
        self.trackers.append(tracker)
        result = await run_subprocess(["sleep", "30"], tracker=tracker, timeout=60)
        return JobOutcome.failed(unit.name, FailureCategory.OTHER, f"exit {result.returncode}")


async def _until(predicate, timeout: float = 5.0) -> None:  # type: ignore[no-untyped-def]
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.02)


async def test_ten_units_four_workers_each_recorded_once(tmp_path: Path) -> None:
    units = [f"com.acme.Unit{i}" for i in range(10)]
    pipeline = _FakePipeline(delays={name: 0.01 * (10 - i) for i, name in enumerate(units)})
    seen: list[str] = []

    scheduler = Scheduler(
        _config(tmp_path, workers=4),
        pipeline,  # type: ignore[arg-type]
        on_outcome=lambda outcome: seen.append(outcome.unit),
    )
    summary = await scheduler.run(units)

    assert summary.total == 10
    assert sorted(o.unit for o in summary.successes) == sorted(units)
    assert sorted(pipeline.calls) == sorted(units)
    assert sorted(seen) == sorted(units)
    assert pipeline.peak == 4
    assert summary.ok
    assert summary.abandoned == ()


async def test_duplicate_units_processed_once(tmp_path: Path) -> None:
    pipeline = _FakePipeline()

    summary = await Scheduler(_config(tmp_path), pipeline).run(  # type: ignore[arg-type]
        ["com.acme.A", "com.acme.B", "com.acme.A"]
    )

    assert pipeline.calls.count("com.acme.A") == 1
    assert summary.total == 2


async def test_failures_and_crashes_do_not_affect_siblings(tmp_path: Path) -> None:
    pipeline = _FakePipeline(fail={"com.acme.B"}, crash={"com.acme.C"})

    summary = await Scheduler(_config(tmp_path, workers=2), pipeline).run(  # type: ignore[arg-type]
        ["com.acme.A", "com.acme.B", "com.acme.C", "com.acme.D"]
    )

    assert [o.unit for o in summary.successes] == ["com.acme.A", "com.acme.D"]
    assert summary.failures["com.acme.B"].category is FailureCategory.SYNTHESIS
    crash = summary.failures["com.acme.C"]
    assert crash.category is FailureCategory.OTHER
    assert crash.reason == "RuntimeError: crash in com.acme.C"


async def test_invalid_unit_name_recorded_as_failure(tmp_path: Path) -> None:
    pipeline = _FakePipeline()

    summary = await Scheduler(_config(tmp_path), pipeline).run(  # type: ignore[arg-type]
        ["com.acme.", "com.acme.A"]
    )

    assert summary.failures["com.acme."].category is FailureCategory.OTHER
    assert pipeline.calls == ["com.acme.A"]


async def test_units_discovered_when_not_supplied(java_project: Path) -> None:
    pipeline = _FakePipeline()

    summary = await Scheduler(_config(java_project), pipeline).run()  # type: ignore[arg-type]

    assert pipeline.calls == ["com.acme.Calculator"]
    assert summary.total == 1


async def test_nothing_to_do(tmp_path: Path) -> None:
    summary = await Scheduler(_config(tmp_path), _FakePipeline()).run([])  # type: ignore[arg-type]

    assert summary.total == 0
    assert summary.ok


async def test_scheduler_runs_once(tmp_path: Path) -> None:
    scheduler = Scheduler(_config(tmp_path), _FakePipeline())  # type: ignore[arg-type]
    await scheduler.run([])

    with pytest.raises(RuntimeError, match="only be called once"):
        await scheduler.run([])


async def test_cancel_kills_in_flight_processes_and_abandons_queue(tmp_path: Path) -> None:
    pipeline = _HangingPipeline()
    scheduler = Scheduler(
        _config(tmp_path, workers=2, grace_period=5.0), pipeline  # type: ignore[arg-type]
    )
    units = [f"com.acme.Slow{i}" for i in range(5)]

    run = asyncio.create_task(scheduler.run(units))
    await _until(lambda: len(pipeline.trackers) == 2 and all(len(t) for t in pipeline.trackers))
    processes = [p for t in pipeline.trackers for p in t._processes]

    started = time.monotonic()
    scheduler.cancel()
    summary = await run

    assert time.monotonic() - started < 5.0
    assert summary.cancelled
    assert not summary.timed_out
    assert summary.abandoned == tuple(units)
    assert summary.total == 0
    assert len(pipeline.trackers) == 2
    assert all(process.returncode is not None for process in processes)


async def test_cancel_preserves_finished_units(tmp_path: Path) -> None:
    pipeline = _FakePipeline(delays={"com.acme.Slow": 30.0})
    scheduler = Scheduler(_config(tmp_path, workers=2), pipeline)  # type: ignore[arg-type]

    run = asyncio.create_task(scheduler.run(["com.acme.Fast", "com.acme.Slow"]))
    await _until(lambda: "com.acme.Slow" in pipeline.calls and pipeline.active == 1)
    scheduler.cancel()
    summary = await run

    assert [o.unit for o in summary.successes] == ["com.acme.Fast"]
    assert summary.abandoned == ("com.acme.Slow",)
    assert not summary.ok


async def test_run_timeout_abandons_remaining_units(tmp_path: Path) -> None:
    pipeline = _FakePipeline(delays={"com.acme.A": 30.0, "com.acme.B": 30.0})
    scheduler = Scheduler(
        _config(tmp_path, workers=1, run_timeout=0.3), pipeline  # type: ignore[arg-type]
    )

    started = time.monotonic()
    summary = await scheduler.run(["com.acme.A", "com.acme.B"])

    assert time.monotonic() - started < 5.0
    assert summary.timed_out
    assert summary.abandoned == ("com.acme.A", "com.acme.B")
    assert pipeline.calls == ["com.acme.A"]


def test_cancel_is_idempotent(tmp_path: Path) -> None:
    scheduler = Scheduler(_config(tmp_path), _FakePipeline())  # type: ignore[arg-type]

    scheduler.cancel()
    scheduler.cancel()

    assert scheduler.cancelled


async def test_raising_outcome_callback_does_not_stop_workers(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    units = [f"com.acme.Unit{i}" for i in range(6)]
    pipeline = _FakePipeline()

    def _broken_reporter(outcome: JobOutcome) -> None:
        raise RuntimeError(f"terminal closed while printing {outcome.unit}")

    summary = await Scheduler(
        _config(tmp_path, workers=2),
        pipeline,  # type: ignore[arg-type]
        on_outcome=_broken_reporter,
    ).run(units)

    assert summary.total == 6
    assert summary.abandoned == ()
    assert not summary.cancelled
    assert sorted(pipeline.calls) == units
    assert "Outcome callback raised" in caplog.text
