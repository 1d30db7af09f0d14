"""Tests for class discovery."""

from __future__ import annotations

from pathlib import Path

from evogen.discovery import discover_units


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xca\xfe\xba\xbe")


def test_discovers_sorted_top_level_classes(tmp_path: Path) -> None:
    _touch(tmp_path / "com/acme/billing/Invoice.class")
    _touch(tmp_path / "com/acme/billing/Invoice$Line.class")
    _touch(tmp_path / "com/acme/Calculator.class")
    _touch(tmp_path / "com/acme/Calculator$1.class")
    _touch(tmp_path / "Main.class")
    _touch(tmp_path / "META-INF/MANIFEST.MF")

    assert discover_units(tmp_path) == [
        "Main",
        "com.acme.Calculator",
        "com.acme.billing.Invoice",
    ]


def test_missing_directory_is_empty(tmp_path: Path) -> None:
    assert discover_units(tmp_path / "target" / "classes") == []


def test_empty_directory_is_empty(tmp_path: Path) -> None:
    assert discover_units(tmp_path) == []


def test_package_and_module_descriptors_are_skipped(tmp_path: Path) -> None:
    _touch(tmp_path / "com/acme/Invoice.class")
    _touch(tmp_path / "com/acme/package-info.class")
    _touch(tmp_path / "module-info.class")

    assert discover_units(tmp_path) == ["com.acme.Invoice"]
