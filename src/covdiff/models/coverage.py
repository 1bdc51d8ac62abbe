"""Coverage statistics derived from parsed documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covdiff.adapters.coverage.base import CoverageDocument, FileCoverage


@dataclass
class FileStats:
    """Line statistics for a single source file."""

    path: str
    """File path as it appears in the document."""

    total_lines: int = 0
    """Number of instrumented lines."""

    covered_lines: int = 0
    """Lines executed at least once."""

    misses: int = 0
    """Lines never executed."""

    partials: int = 0
    """Branch lines where only some conditions were taken."""

    missing_lines: list[int] = field(default_factory=list)
    """Sorted, distinct numbers of lines with zero hits."""

    @property
    def coverage(self) -> float:
        """Return line coverage percentage (0.0-100.0); 0 for a file without lines."""
        if self.total_lines == 0:
            return 0.0
        return (self.covered_lines / self.total_lines) * 100.0


@dataclass
class OverallStats:
    """Totals for a whole coverage document."""

    total_files: int = 0
    """Number of files in the document."""

    total_lines: int = 0
    """Instrumented lines across all files."""

    covered_lines: int = 0
    """Executed lines across all files (the "hits" row)."""

    misses: int = 0
    """Never-executed lines across all files."""

    partials: int = 0
    """Partially covered branch lines across all files."""

    branches_valid: int = 0
    """Root ``branches-valid`` attribute."""

    branches_covered: int = 0
    """Root ``branches-covered`` attribute."""

    line_rate: float = 0.0
    """Overall line rate (0.0 to 1.0)."""

    @property
    def coverage(self) -> float:
        """Return overall line coverage as a percentage."""
        return self.line_rate * 100.0


def build_file_stats(file: FileCoverage) -> FileStats:
    """Compute line statistics for one file."""
    total = len(file.lines)
    covered = sum(1 for line in file.lines if line.is_covered)
    missing = sorted({line.number for line in file.lines if not line.is_covered})
    return FileStats(
        path=file.path,
        total_lines=total,
        covered_lines=covered,
        misses=total - covered,
        partials=sum(1 for line in file.lines if line.is_partial),
        missing_lines=missing,
    )


def build_stats_map(document: CoverageDocument) -> dict[str, FileStats]:
    """Return per-path statistics, preserving document order."""
    return {file.path: build_file_stats(file) for file in document.files}


def build_overall_stats(document: CoverageDocument) -> OverallStats:
    """Sum file statistics and root attributes of a document.

    The root ``line-rate`` attribute wins when present; otherwise the line
    rate is recomputed from the file entries.
    """
    stats = OverallStats(
        total_files=len(document.files),
        branches_valid=document.branches_valid,
        branches_covered=document.branches_covered,
    )
    for file in document.files:
        file_stats = build_file_stats(file)
        stats.total_lines += file_stats.total_lines
        stats.covered_lines += file_stats.covered_lines
        stats.misses += file_stats.misses
        stats.partials += file_stats.partials

    if document.line_rate is not None:
        stats.line_rate = document.line_rate
    elif stats.total_lines:
        stats.line_rate = stats.covered_lines / stats.total_lines
    return stats
