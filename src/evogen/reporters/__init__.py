"""Terminal reporting."""

from evogen.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
