"""Shared fixtures for evogen tests."""

from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

ScriptFactory = Callable[[str, str], Path]


@pytest.fixture
def make_script(tmp_path: Path) -> ScriptFactory:
    """Write an executable ``/bin/sh`` script standing in for a Java tool."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _make


@pytest.fixture
def java_project(tmp_path: Path) -> Path:
    """A minimal Maven-shaped project with one compiled class and its source."""
    root = tmp_path / "project"
    source = root / "src" / "main" / "java" / "com" / "acme"
    source.mkdir(parents=True)
    (source / "Calculator.java").write_text(
        "package com.acme;\n\npublic class Calculator {\n"
        "    public int add(int a, int b) { return a + b; }\n}\n",
        encoding="utf-8",
    )
    classes = root / "target" / "classes" / "com" / "acme"
    classes.mkdir(parents=True)
    (classes / "Calculator.class").write_bytes(b"\xca\xfe\xba\xbe")
    (root / "src" / "test" / "java").mkdir(parents=True)
    return root
