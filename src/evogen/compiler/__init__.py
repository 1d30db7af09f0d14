"""Compilation of candidate tests."""

from evogen.compiler.validator import (
    CompilationValidator,
    ValidationResult,
    ValidationStatus,
    parse_missing_package,
    publish,
)

__all__ = [
    "CompilationValidator",
    "ValidationResult",
    "ValidationStatus",
    "parse_missing_package",
    "publish",
]
