"""Unified coverage document model shared by every report dialect."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Dialect(Enum):
    """Nesting convention of a Cobertura-style coverage document."""

    PACKAGED = "packaged"  # coverage > packages > package > classes > class
    FLAT = "flat"  # coverage > classes > class
    UNKNOWN = "unknown"  # neither layout was found


@dataclass
class LineEntry:
    """Coverage data for a single line of code."""

    number: int
    hits: int
    is_branch: bool = False
    condition_coverage: tuple[int, int] | None = None
    """Covered/total branch conditions, e.g. ``(1, 2)`` for ``50% (1/2)``."""

    @property
    def is_covered(self) -> bool:
        """Return True if this line was executed at least once."""
        return self.hits > 0

    @property
    def is_partial(self) -> bool:
        """Return True if only some of the line's branch conditions were taken."""
        if not self.is_branch or self.condition_coverage is None:
            return False
        covered, total = self.condition_coverage
        return 0 < covered < total


@dataclass
class FileCoverage:
    """Coverage data for a single source file."""

    path: str
    lines: list[LineEntry] = field(default_factory=list)
    branches_valid: int = 0
    branches_covered: int = 0

    def merge(self, other: FileCoverage) -> None:
        """Fold another entry for the same file into this one.

        Lines sharing a number have their hits summed and the first
        branch data seen is kept; the result stays sorted by line number.
        Branch totals are recounted from the merged lines, so a line
        reported twice contributes its conditions once.
        """
        by_number = {line.number: line for line in self.lines}
        for line in other.lines:
            existing = by_number.get(line.number)
            if existing is None:
                by_number[line.number] = LineEntry(
                    number=line.number,
                    hits=line.hits,
                    is_branch=line.is_branch,
                    condition_coverage=line.condition_coverage,
                )
                continue
            existing.hits += line.hits
            if line.is_branch and existing.condition_coverage is None:
                existing.is_branch = True
                existing.condition_coverage = line.condition_coverage

        self.lines = [by_number[number] for number in sorted(by_number)]
        conditions = [line.condition_coverage for line in self.lines if line.condition_coverage]
        self.branches_covered = sum(covered for covered, _ in conditions)
        self.branches_valid = sum(total for _, total in conditions)


@dataclass
class CoverageDocument:
    """A parsed coverage report.

    The dialect is fixed when the document is parsed; downstream code works
    on the flat ``files`` list and never inspects the original nesting.
    """

    dialect: Dialect
    files: list[FileCoverage] = field(default_factory=list)
    line_rate: float | None = None
    """Root ``line-rate`` attribute (0.0 to 1.0), if the report carried one."""

    branches_valid: int = 0
    branches_covered: int = 0

    @property
    def paths(self) -> list[str]:
        """Return file paths in document order."""
        return [file.path for file in self.files]

    def get(self, path: str) -> FileCoverage | None:
        """Return the entry for *path*, or None."""
        for file in self.files:
            if file.path == path:
                return file
        return None
