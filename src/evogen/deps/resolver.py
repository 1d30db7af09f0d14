"""Dependency resolver: missing package name → cached Maven Central archive.

Given a package identifier pulled from a compiler diagnostic, the resolver asks
the Maven Central search API for the single most relevant artifact containing
that package, then makes the artifact's jar available in a local cache
directory.  Cache entries are keyed by ``<artifact>-<version>.jar``, are never
evicted and survive across runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = "https://search.maven.org/solrsearch/select"
DEFAULT_REPOSITORY_URL = "https://repo1.maven.org/maven2"
_DEFAULT_TIMEOUT = 60.0
_HTTP_SUCCESS_MIN = 200
_HTTP_SUCCESS_MAX = 300
_PARTIAL_SUFFIX = ".part"


class DependencyResolutionError(Exception):
    """Raised when a missing package cannot be turned into a local archive."""

    def __init__(self, identifier: str, message: str) -> None:
        super().__init__(message)
        self.identifier = identifier


class DependencyNotFoundError(DependencyResolutionError):
    """The registry returned no match (or a non-success status) for the identifier."""


class DownloadFailedError(DependencyResolutionError):
    """A match was found but its archive could not be downloaded."""


@dataclass(frozen=True)
class ArtifactCoordinates:
    """Maven ``group:artifact:version`` coordinates of a published archive."""

    group: str
    artifact: str
    version: str

    @property
    def file_name(self) -> str:
        return f"{self.artifact}-{self.version}.jar"

    def download_url(self, repository_url: str) -> str:
        """Deterministic repository URL of the archive."""
        base = repository_url.rstrip("/")
        group_path = self.group.replace(".", "/")
        return f"{base}/{group_path}/{self.artifact}/{self.version}/{self.file_name}"

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"


def _is_success(status_code: int) -> bool:
    return _HTTP_SUCCESS_MIN <= status_code < _HTTP_SUCCESS_MAX


def _parse_first_doc(payload: Any) -> ArtifactCoordinates | None:
    """Extract coordinates of the first search hit, if any."""
    if not isinstance(payload, dict):
        return None
    response = payload.get("response")
    if not isinstance(response, dict):
        return None
    docs = response.get("docs")
    if not isinstance(docs, list) or not docs:
        return None
    doc = docs[0]
    if not isinstance(doc, dict):
        return None

    group = doc.get("g")
    artifact = doc.get("a")
    # Class/package searches return "v"; artifact searches return "latestVersion".
    version = doc.get("v") or doc.get("latestVersion")
    if not (group and artifact and version):
        return None
    return ArtifactCoordinates(group=str(group), artifact=str(artifact), version=str(version))


class DependencyResolver:
    """Resolve missing packages against Maven Central with an on-disk cache.

    Concurrent resolutions inside one process that land on the same cache file
    are serialised by a per-file-name lock, and every download is written to a
    unique temporary file that is atomically renamed into place, so no caller
    can observe a truncated archive.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        search_url: str = DEFAULT_SEARCH_URL,
        repository_url: str = DEFAULT_REPOSITORY_URL,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cache_dir = cache_dir
        self._search_url = search_url
        self._repository_url = repository_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._file_locks: dict[str, asyncio.Lock] = {}

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    # ── Public API ────────────────────────────────────────────────

    async def resolve(self, identifier: str) -> Path:
        """Find the best archive for *identifier* and return its cached path.

        Raises:
            ValueError: If *identifier* is empty.
            DependencyNotFoundError: If the registry has no match.
            DownloadFailedError: If the archive download fails.
            DependencyResolutionError: On transport errors.
        """
        if not identifier or not identifier.strip():
            raise ValueError("Missing identifier must not be empty")

        coordinates = await self.search(identifier)
        local_path = self._cache_dir / coordinates.file_name

        lock = self._file_locks.setdefault(coordinates.file_name, asyncio.Lock())
        async with lock:
            if local_path.is_file():
                logger.info("Found %s in local cache: %s", coordinates, local_path)
                return local_path
            await self._download(identifier, coordinates, local_path)

        return local_path

    async def search(self, identifier: str) -> ArtifactCoordinates:
        """Query the registry for the single best match of *identifier*."""
        params = {"q": f'fc:"{identifier}"', "rows": "1", "wt": "json"}
        logger.info("Searching Maven Central for package '%s'", identifier)

        try:
            response = await self._http().get(self._search_url, params=params)
        except httpx.HTTPError as exc:
            raise DependencyResolutionError(
                identifier, f"Registry search failed for '{identifier}': {exc}"
            ) from exc

        if not _is_success(response.status_code):
            raise DependencyNotFoundError(
                identifier,
                f"Registry search for '{identifier}' returned HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise DependencyNotFoundError(
                identifier, f"Registry search for '{identifier}' returned invalid JSON"
            ) from exc

        coordinates = _parse_first_doc(payload)
        if coordinates is None:
            raise DependencyNotFoundError(identifier, f"No archive found for '{identifier}'")

        logger.debug("Best match for '%s': %s", identifier, coordinates)
        return coordinates

    def cached_archives(self) -> list[Path]:
        """Every archive currently in the cache, sorted by name."""
        if not self._cache_dir.is_dir():
            return []
        return sorted(path for path in self._cache_dir.glob("*.jar") if path.is_file())

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> DependencyResolver:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    # ── Internal helpers ──────────────────────────────────────────

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    async def _download(
        self,
        identifier: str,
        coordinates: ArtifactCoordinates,
        local_path: Path,
    ) -> None:
        url = coordinates.download_url(self._repository_url)
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        partial = local_path.with_name(f"{local_path.name}.{uuid.uuid4().hex}{_PARTIAL_SUFFIX}")
        logger.info("Downloading %s from %s", coordinates, url)

        try:
            async with self._http().stream("GET", url) as response:
                if not _is_success(response.status_code):
                    raise DownloadFailedError(
                        identifier,
                        f"Download of {coordinates} failed with HTTP {response.status_code}",
                    )
                with partial.open("wb") as handle:
                    async for chunk in response.aiter_bytes():
                        handle.write(chunk)
            os.replace(partial, local_path)
        except httpx.HTTPError as exc:
            raise DownloadFailedError(
                identifier, f"Download of {coordinates} failed: {exc}"
            ) from exc
        finally:
            with contextlib.suppress(FileNotFoundError):
                partial.unlink()

        logger.info("Cached %s as %s", coordinates, local_path.name)
