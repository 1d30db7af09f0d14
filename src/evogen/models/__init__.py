"""Data models for evogen."""

from evogen.models.classpath import ClasspathSet
from evogen.models.outcome import FailureCategory, JobOutcome, OutcomeLog, RunSummary
from evogen.models.unit import Candidate, CompilationUnit

__all__ = [
    "Candidate",
    "ClasspathSet",
    "CompilationUnit",
    "FailureCategory",
    "JobOutcome",
    "OutcomeLog",
    "RunSummary",
]
