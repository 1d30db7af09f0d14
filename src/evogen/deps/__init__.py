"""Dependency resolution against remote package registries."""

from evogen.deps.resolver import (
    ArtifactCoordinates,
    DependencyNotFoundError,
    DependencyResolutionError,
    DependencyResolver,
    DownloadFailedError,
)

__all__ = [
    "ArtifactCoordinates",
    "DependencyNotFoundError",
    "DependencyResolutionError",
    "DependencyResolver",
    "DownloadFailedError",
]
