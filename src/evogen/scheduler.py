"""Scheduler: run the unit pipeline over many classes with a fixed worker pool."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from evogen.discovery import discover_units
from evogen.models.outcome import FailureCategory, JobOutcome, OutcomeLog, RunSummary
from evogen.models.unit import CompilationUnit
from evogen.utils.subprocess_runner import ProcessTracker

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from evogen.config import EvoGenConfig
    from evogen.pipeline.unit import UnitPipeline

logger = logging.getLogger(__name__)


class Scheduler:
    """Async worker pool with an in-memory unit queue.

    ``W`` workers pull units from one queue and hand each to the pipeline.
    The run ends when the queue is exhausted, when ``run_timeout`` elapses or
    when :meth:`cancel` is called; in the latter two cases queued units are
    dropped, child processes of in-flight units are killed and the workers get
    ``grace_period`` seconds to unwind.  A scheduler runs once.
    """

    def __init__(
        self,
        config: EvoGenConfig,
        pipeline: UnitPipeline,
        *,
        on_outcome: Callable[[JobOutcome], None] | None = None,
    ) -> None:
        self._config = config
        self._pipeline = pipeline
        self._on_outcome = on_outcome
        self._queue: asyncio.Queue[CompilationUnit] = asyncio.Queue()
        self._in_flight: dict[str, ProcessTracker] = {}
        self._cancel_event = asyncio.Event()
        self._started = False

    @property
    def workers(self) -> int:
        return self._config.scheduler.workers

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Request shutdown.  Safe to call from a signal handler, more than once."""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested, shutting down workers")
            self._cancel_event.set()

    async def run(self, units: Iterable[str] | None = None) -> RunSummary:
        """Process every unit once and return the run summary.

        When *units* is ``None`` the project's classes directory is scanned.
        """
        if self._started:
            raise RuntimeError("Scheduler.run() may only be called once")
        self._started = True

        started_at = time.monotonic()
        log = OutcomeLog()
        names = list(units) if units is not None else discover_units(
            self._config.project.classes_dir
        )
        queued = self._enqueue(names, log)

        if not queued:
            logger.info("No units to process")
            return RunSummary.from_log(log, duration_s=time.monotonic() - started_at)

        worker_count = min(self.workers, len(queued))
        logger.info("Processing %d units with %d workers", len(queued), worker_count)
        workers = [
            asyncio.create_task(self._worker(log), name=f"evogen-worker-{i}")
            for i in range(worker_count)
        ]

        timed_out = await self._wait(workers)
        if timed_out or self.cancelled:
            await self._shutdown(workers)

        abandoned = [unit.name for unit in queued if unit.name not in log]
        if abandoned:
            logger.warning("%d units abandoned before completion", len(abandoned))

        return RunSummary.from_log(
            log,
            abandoned=abandoned,
            cancelled=self.cancelled,
            timed_out=timed_out,
            duration_s=time.monotonic() - started_at,
        )

    def _enqueue(self, names: Iterable[str], log: OutcomeLog) -> list[CompilationUnit]:
        queued: list[CompilationUnit] = []
        seen: set[str] = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            try:
                unit = CompilationUnit(name)
            except ValueError as exc:
                self._record(log, JobOutcome.failed(name, FailureCategory.OTHER, str(exc)))
                continue
            queued.append(unit)
            self._queue.put_nowait(unit)
        return queued

    async def _wait(self, workers: list[asyncio.Task[None]]) -> bool:
        """Wait for the workers, a cancel request or the run timeout.

        Returns ``True`` if the run timeout elapsed first.
        """
        all_done = asyncio.gather(*workers, return_exceptions=True)
        cancel_requested = asyncio.create_task(self._cancel_event.wait())
        try:
            done, _pending = await asyncio.wait(
                {all_done, cancel_requested},
                timeout=self._config.scheduler.run_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_requested.cancel()

        if not done:
            logger.warning(
                "Run timeout of %.0fs reached, cancelling remaining work",
                self._config.scheduler.run_timeout,
            )
            return True
        return False

    async def _shutdown(self, workers: list[asyncio.Task[None]]) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

        killed = sum(tracker.kill_all() for tracker in list(self._in_flight.values()))
        if killed:
            logger.info("Killed %d child processes", killed)

        for worker in workers:
            worker.cancel()
        grace = self._config.scheduler.grace_period
        _done, pending = await asyncio.wait(workers, timeout=grace)
        if pending:
            logger.warning("%d workers did not stop within %.1fs", len(pending), grace)

    async def _worker(self, log: OutcomeLog) -> None:
        """Pull units until the queue is empty or the run is cancelled."""
        while not self.cancelled:
            try:
                unit = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            tracker = ProcessTracker()
            self._in_flight[unit.name] = tracker
            try:
                logger.info("[%s] Processing", unit)
                outcome = await self._pipeline.process(unit, tracker=tracker)
            except Exception as exc:
                logger.exception("[%s] Pipeline raised", unit)
                outcome = JobOutcome.failed(
                    unit.name, FailureCategory.OTHER, f"{type(exc).__name__}: {exc}"
                )
            finally:
                self._in_flight.pop(unit.name, None)
                self._queue.task_done()

            self._record(log, outcome)

    def _record(self, log: OutcomeLog, outcome: JobOutcome) -> None:
        log.record(outcome)
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except Exception:
            logger.exception("[%s] Outcome callback raised", outcome.unit)
