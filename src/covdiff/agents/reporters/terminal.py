"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from covdiff.agents.analyzers.diff import Trend
from covdiff.agents.reporters.github_comment import (
    format_change,
    format_count_change,
    format_percent,
)

if TYPE_CHECKING:
    from covdiff.agents.analyzers.diff import DiffResult, MetricDelta

console = Console(stderr=True)

_TREND_COLORS = {
    Trend.POSITIVE: "green",
    Trend.NEGATIVE: "red",
    Trend.NEUTRAL: "dim",
}

_MAX_FILE_PATH_LENGTH = 60


class CLIReporter:
    """Rich terminal output reporter for coverage comparisons."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_diff_summary(self, diff: DiffResult, base_branch: str, head_branch: str) -> None:
        """Print overall and per-file coverage changes as tables."""
        table = Table(title="Coverage Diff", title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column(base_branch, justify="right")
        table.add_column(head_branch, justify="right")
        table.add_column("+/-", justify="right")

        overall = diff.overall
        table.add_row(*self._metric_cells("Coverage", overall.coverage, percent=True))
        table.add_section()
        for label, metric in (
            ("Files", overall.files),
            ("Lines", overall.lines),
            ("Branches", overall.branches),
        ):
            table.add_row(*self._metric_cells(label, metric))
        table.add_section()
        for label, metric in (
            ("Hits", overall.hits),
            ("Misses", overall.misses),
            ("Partials", overall.partials),
        ):
            table.add_row(*self._metric_cells(label, metric))

        self.console.print(table)
        self.print_info(f"New lines covered in {head_branch}: {diff.new_lines_covered}")

        if diff.files:
            files_table = Table(title="Changed Files", title_style="bold cyan")
            files_table.add_column("File", style="bold")
            files_table.add_column(base_branch, justify="right")
            files_table.add_column(head_branch, justify="right")
            files_table.add_column("+/-", justify="right")

            for entry in diff.files:
                path = entry.filename
                if len(path) > _MAX_FILE_PATH_LENGTH:
                    path = "..." + path[-(_MAX_FILE_PATH_LENGTH - 3) :]
                color = _TREND_COLORS[entry.trend]
                files_table.add_row(
                    path,
                    format_percent(entry.base_coverage),
                    format_percent(entry.head_coverage),
                    f"[{color}]{format_change(entry.change)}[/{color}]",
                )

            self.console.print(files_table)

        for path in diff.uncovered_files:
            self.print_warning(f"No coverage data for changed file {path}")

    def _metric_cells(
        self, label: str, metric: MetricDelta, *, percent: bool = False
    ) -> tuple[str, str, str, str]:
        color = _TREND_COLORS[metric.trend]
        if percent:
            values = (
                format_percent(metric.base),
                format_percent(metric.head),
                format_change(metric.change),
            )
        else:
            values = (
                str(round(metric.base)),
                str(round(metric.head)),
                format_count_change(metric.change),
            )
        return label, values[0], values[1], f"[{color}]{values[2]}[/{color}]"


# Singleton instance for easy import
reporter = CLIReporter()
