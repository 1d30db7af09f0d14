"""Per-unit job outcomes and the aggregated run summary."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path


class FailureCategory(Enum):
    """Why a unit did not produce an accepted test."""

    GENERATOR = "generator"
    """Inspiration generation failed and was required."""

    SYNTHESIS = "synthesis"
    """No usable candidate text came back from the language model."""

    COMPILATION = "compilation"
    """Candidate did not compile within the retry budget."""

    OTHER = "other"
    """Process-level fault (I/O error, process launch failure, ...)."""

    @property
    def title(self) -> str:
        return _CATEGORY_TITLES[self]


_CATEGORY_TITLES = {
    FailureCategory.GENERATOR: "Generator Failures",
    FailureCategory.SYNTHESIS: "Synthesis Failures",
    FailureCategory.COMPILATION: "Compilation Failures",
    FailureCategory.OTHER: "Other Failures",
}


@dataclass(frozen=True)
class JobOutcome:
    """Tagged result for one compilation unit: success or failure."""

    unit: str
    """Fully-qualified name of the unit."""

    success: bool
    """Whether an accepted test was persisted."""

    category: FailureCategory | None = None
    """Failure category, ``None`` on success."""

    reason: str = ""
    """One-line failure reason."""

    detail: str = ""
    """Diagnostic detail (compiler transcript for compilation failures)."""

    saved_path: Path | None = None
    """Where the accepted test was written, on success."""

    inspiration_available: bool = True
    """Whether generator inspiration was used for synthesis."""

    compile_attempts: int = 0
    """Number of compiler invocations made for this unit."""

    @classmethod
    def succeeded(
        cls,
        unit: str,
        saved_path: Path,
        *,
        inspiration_available: bool = True,
        compile_attempts: int = 0,
    ) -> JobOutcome:
        return cls(
            unit=unit,
            success=True,
            saved_path=saved_path,
            inspiration_available=inspiration_available,
            compile_attempts=compile_attempts,
        )

    @classmethod
    def failed(  # noqa: PLR0913
        cls,
        unit: str,
        category: FailureCategory,
        reason: str,
        detail: str = "",
        *,
        inspiration_available: bool = True,
        compile_attempts: int = 0,
    ) -> JobOutcome:
        return cls(
            unit=unit,
            success=False,
            category=category,
            reason=reason,
            detail=detail,
            inspiration_available=inspiration_available,
            compile_attempts=compile_attempts,
        )

    @property
    def diagnostic(self) -> str:
        """Detail worth showing under the reason; empty when it only repeats it."""
        detail = self.detail.rstrip()
        return "" if detail == self.reason else detail


class OutcomeLog:
    """Thread-safe success list and failure map for one scheduler run.

    Callers never need their own locking.  Recording the same unit twice is a
    programming error and raises ``ValueError``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._successes: list[JobOutcome] = []
        self._failures: dict[str, JobOutcome] = {}
        self._seen: set[str] = set()

    def record(self, outcome: JobOutcome) -> None:
        with self._lock:
            if outcome.unit in self._seen:
                raise ValueError(f"Outcome already recorded for {outcome.unit}")
            self._seen.add(outcome.unit)
            if outcome.success:
                self._successes.append(outcome)
            else:
                self._failures[outcome.unit] = outcome

    def __contains__(self, unit: object) -> bool:
        with self._lock:
            return unit in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    @property
    def successes(self) -> list[JobOutcome]:
        with self._lock:
            return list(self._successes)

    @property
    def failures(self) -> dict[str, JobOutcome]:
        with self._lock:
            return dict(self._failures)


@dataclass(frozen=True)
class RunSummary:
    """Aggregate of every job outcome of one run."""

    successes: tuple[JobOutcome, ...] = ()
    failures: Mapping[str, JobOutcome] = field(default_factory=dict)
    abandoned: tuple[str, ...] = ()
    """Units that never produced an outcome (cancellation or run timeout)."""

    cancelled: bool = False
    timed_out: bool = False
    duration_s: float = 0.0

    @classmethod
    def from_log(
        cls,
        log: OutcomeLog,
        *,
        abandoned: Iterable[str] = (),
        cancelled: bool = False,
        timed_out: bool = False,
        duration_s: float = 0.0,
    ) -> RunSummary:
        successes = sorted(log.successes, key=lambda outcome: outcome.unit)
        failures = dict(sorted(log.failures.items()))
        return cls(
            successes=tuple(successes),
            failures=failures,
            abandoned=tuple(sorted(abandoned)),
            cancelled=cancelled,
            timed_out=timed_out,
            duration_s=duration_s,
        )

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def ok(self) -> bool:
        """True when every unit succeeded and the run was not cut short."""
        return not self.failures and not self.abandoned and not self.cancelled

    def by_category(self) -> dict[FailureCategory, list[JobOutcome]]:
        """Failures grouped by category, in category declaration order."""
        grouped: dict[FailureCategory, list[JobOutcome]] = {}
        for category in FailureCategory:
            members = [o for o in self.failures.values() if o.category is category]
            if members:
                grouped[category] = members
        return grouped

    @property
    def without_inspiration(self) -> list[str]:
        """Units synthesized from source alone because the generator failed."""
        outcomes = [*self.successes, *self.failures.values()]
        return sorted(o.unit for o in outcomes if not o.inspiration_available)
