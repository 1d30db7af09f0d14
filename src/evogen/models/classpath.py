"""Ordered, append-only classpath used across compile attempts."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class ClasspathSet:
    """Classpath entries kept in insertion order, unique by absolute path.

    Entries are only ever appended.  The set is scoped to one candidate's
    validation sequence and never shared between units.
    """

    def __init__(self, entries: Iterable[Path] = ()) -> None:
        self._entries: list[Path] = []
        self._seen: set[Path] = set()
        for entry in entries:
            self.add(entry)

    def add(self, entry: Path) -> bool:
        """Append *entry* unless an entry with the same absolute path exists.

        Returns:
            ``True`` when the entry was added.
        """
        resolved = Path(entry).absolute()
        if resolved in self._seen:
            return False
        self._seen.add(resolved)
        self._entries.append(resolved)
        return True

    def extend(self, entries: Iterable[Path]) -> int:
        """Append several entries; returns how many were new."""
        return sum(1 for entry in entries if self.add(entry))

    @property
    def archives(self) -> list[Path]:
        """Entries that are archive files rather than directories."""
        return [entry for entry in self._entries if entry.suffix == ".jar"]

    def as_argument(self) -> str:
        """Serialise for ``javac -cp`` using the platform path separator."""
        return os.pathsep.join(str(entry) for entry in self._entries)

    def __contains__(self, entry: object) -> bool:
        if not isinstance(entry, (str, Path)):
            return False
        return Path(entry).absolute() in self._seen

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ClasspathSet({len(self._entries)} entries)"
