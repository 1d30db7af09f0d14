"""Discover compilation units from a compiled classes directory."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_DESCRIPTOR_NAMES = frozenset({"package-info", "module-info"})


def discover_units(classes_dir: Path) -> list[str]:
    """Return the sorted fully-qualified names of top-level classes under *classes_dir*.

    Nested and anonymous classes (file names containing ``$``) are skipped, as are
    ``package-info`` and ``module-info`` descriptors.
    A missing directory yields an empty list.
    """
    if not classes_dir.is_dir():
        logger.warning("Classes directory not found: %s", classes_dir)
        return []

    names: set[str] = set()
    for class_file in classes_dir.rglob("*.class"):
        if "$" in class_file.name or class_file.stem in _DESCRIPTOR_NAMES:
            continue
        relative = class_file.relative_to(classes_dir).with_suffix("")
        names.add(".".join(relative.parts))

    logger.info("Discovered %d classes in %s", len(names), classes_dir)
    return sorted(names)
