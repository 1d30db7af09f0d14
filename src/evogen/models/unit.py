"""Compilation unit and candidate models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

_TEST_SUFFIX = "Test"
_INSPIRATION_SUFFIX = "_ESTest"


@dataclass(frozen=True)
class CompilationUnit:
    """One compiled top-level class targeted for test synthesis."""

    name: str
    """Fully-qualified class name (e.g. ``com.acme.billing.Invoice``)."""

    def __post_init__(self) -> None:
        if not self.name or self.name.startswith(".") or self.name.endswith("."):
            raise ValueError(f"Invalid compilation unit name: {self.name!r}")

    @property
    def package(self) -> str:
        """Package part of the name, empty for the default package."""
        head, _, _tail = self.name.rpartition(".")
        return head

    @property
    def simple_name(self) -> str:
        return self.name.rpartition(".")[2]

    @property
    def package_path(self) -> Path:
        """Directory path the package maps to (``com/acme/billing``)."""
        if not self.package:
            return Path()
        return Path(*self.package.split("."))

    def source_path(self, source_root: Path) -> Path:
        """Location of the unit's ``.java`` file under *source_root*."""
        return source_root / self.package_path / f"{self.simple_name}.java"

    def test_path(self, test_root: Path) -> Path:
        """Canonical location of the unit's JUnit test under *test_root*."""
        return test_root / self.package_path / f"{self.simple_name}{_TEST_SUFFIX}.java"

    def inspiration_path(self, output_dir: Path) -> Path:
        """Where EvoSuite writes its generated test for this unit."""
        return output_dir / self.package_path / f"{self.simple_name}{_INSPIRATION_SUFFIX}.java"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Candidate:
    """Synthesized test source proposed for a unit, not yet proven to compile."""

    unit: CompilationUnit
    """The unit this candidate tests."""

    source: str
    """Full text of the test file."""

    save_path: Path
    """Final location the source is published to once it compiles."""

    @property
    def file_name(self) -> str:
        return self.save_path.name
