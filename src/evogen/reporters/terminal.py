"""Terminal reporter with rich output formatting."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from evogen.models.outcome import JobOutcome, RunSummary

console = Console()

_SECONDS_PER_MINUTE = 60.0
_MAX_DETAIL_LINES = 40


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


def _indent_detail(detail: str) -> str:
    lines = detail.rstrip().splitlines()
    if len(lines) > _MAX_DETAIL_LINES:
        omitted = len(lines) - _MAX_DETAIL_LINES
        lines = [*lines[:_MAX_DETAIL_LINES], f"... ({omitted} more lines)"]
    return textwrap.indent("\n".join(lines), "      ")


class CLIReporter:
    """Rich terminal output for a test synthesis run."""

    def __init__(self, output: Console | None = None) -> None:
        self.console = output or console

    def print_header(self, title: str) -> None:
        """Print a styled banner."""
        self.console.print()
        self.console.print(
            Panel(f"[bold white]{escape(title)}[/bold white]", border_style="cyan", padding=(0, 2))
        )

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def print_unit_outcome(self, outcome: JobOutcome) -> None:
        """Print the one-line result of a finished unit."""
        if outcome.success:
            note = "" if outcome.inspiration_available else " [dim](no inspiration)[/dim]"
            self.console.print(
                f"  [green]✓[/green] {escape(outcome.unit)} "
                f"[dim]→ {escape(str(outcome.saved_path))}[/dim]{note}"
            )
            return
        category = outcome.category.value if outcome.category else "failure"
        self.console.print(
            f"  [red]✗[/red] {escape(outcome.unit)} "
            f"[dim]({category})[/dim] {escape(outcome.reason)}"
        )

    def print_run_summary(self, summary: RunSummary) -> None:
        """Print counts, failures grouped by category and total run time."""
        self.console.print()
        table = Table(title="Run Summary", show_header=False, title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Units processed", str(summary.total))
        table.add_row("Succeeded", f"[green]{len(summary.successes)}[/green]")
        table.add_row(
            "Failed",
            f"[red]{len(summary.failures)}[/red]" if summary.failures else "0",
        )
        if summary.abandoned:
            table.add_row("Abandoned", f"[yellow]{len(summary.abandoned)}[/yellow]")
        if summary.without_inspiration:
            table.add_row("Without inspiration", str(len(summary.without_inspiration)))
        table.add_row("Total time", _format_duration(summary.duration_s))
        self.console.print(table)

        for category, outcomes in summary.by_category().items():
            self.console.print(
                f"\n[bold red]{category.title}[/bold red] [dim]({len(outcomes)})[/dim]"
            )
            for outcome in outcomes:
                self.console.print(
                    f"  • [bold]{escape(outcome.unit)}[/bold]: {escape(outcome.reason)}"
                )
                if outcome.diagnostic:
                    detail = escape(_indent_detail(outcome.diagnostic))
                    self.console.print(detail, highlight=False)

        if summary.abandoned:
            self.console.print("\n[bold yellow]Abandoned[/bold yellow]")
            for unit in summary.abandoned:
                self.console.print(f"  • {escape(unit)}")

        self.console.print()
        if summary.timed_out:
            self.print_warning("Run timeout reached before all units finished.")
        elif summary.cancelled:
            self.print_warning("Run cancelled before all units finished.")
        elif summary.ok:
            self.print_success(f"All {summary.total} units produced a compiling test.")


# Singleton instance for easy import
reporter = CLIReporter()
