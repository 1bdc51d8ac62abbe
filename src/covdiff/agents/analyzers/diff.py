"""Coverage diff engine that compares base and head coverage documents.

Given two path-normalized documents this module computes:
1. Overall metric deltas (coverage, files, lines, branches, hits, misses, partials)
2. Per-file coverage changes, flagging files new on head
3. Compressed missing-line ranges for each changed file
4. PR-changed source files that have no coverage data on either branch
5. The number of head lines covered that were uncovered or absent on base

It is a pure computation: no I/O, no shared state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from covdiff.agents.analyzers.paths import normalize_path
from covdiff.models.coverage import build_overall_stats, build_stats_map

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from covdiff.adapters.coverage.base import CoverageDocument
    from covdiff.agents.analyzers.omit import OmitFilter
    from covdiff.models.coverage import FileStats
    from covdiff.models.pull_request import ChangedFile

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

DEFAULT_MIN_COVERAGE = 80.0

# Changes at or below this magnitude are floating-point noise
CHANGE_THRESHOLD = 0.01

SOURCE_EXTENSIONS = frozenset(
    {
        ".py",
        ".ts",
        ".tsx",
        ".js",
        ".jsx",
        ".mjs",
        ".cjs",
        ".java",
        ".kt",
        ".scala",
        ".go",
        ".rs",
        ".c",
        ".cpp",
        ".cc",
        ".cxx",
        ".h",
        ".hpp",
        ".cs",
        ".rb",
        ".php",
    }
)


class Trend(Enum):
    """Direction of a metric change as shown in the report."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @property
    def marker(self) -> str:
        """Return the diff-style line marker (``+``, ``-`` or a space)."""
        if self is Trend.POSITIVE:
            return "+"
        if self is Trend.NEGATIVE:
            return "-"
        return " "


# ── Data models ──────────────────────────────────────────────────


@dataclass
class MetricDelta:
    """One overall metric on both branches."""

    base: float
    head: float
    trend: Trend = Trend.NEUTRAL

    @property
    def change(self) -> float:
        """Return head minus base."""
        return self.head - self.base


@dataclass
class OverallDiff:
    """Overall metric deltas between base and head."""

    coverage: MetricDelta
    """Line coverage percentage."""

    files: MetricDelta
    lines: MetricDelta
    branches: MetricDelta
    hits: MetricDelta
    misses: MetricDelta
    partials: MetricDelta


@dataclass
class FileDiffEntry:
    """Coverage change of a single file."""

    filename: str
    """Normalized file path."""

    base_coverage: float | None
    """Coverage on base, or None when the file is new on head."""

    head_coverage: float
    """Coverage on head (0 when the file no longer has coverage data)."""

    is_new: bool = False
    """True when the file has no coverage entry on base."""

    missing_lines: str = ""
    """Compressed head missing lines, e.g. ``"7-10, 29"``."""

    trend: Trend = Trend.NEUTRAL

    @property
    def change(self) -> float:
        """Return head minus base coverage, counting a missing base as 0%."""
        return self.head_coverage - (self.base_coverage or 0.0)


@dataclass
class DiffResult:
    """Complete comparison of two coverage documents."""

    overall: OverallDiff
    """Overall metric deltas."""

    files: list[FileDiffEntry] = field(default_factory=list)
    """Changed files, largest absolute change first."""

    uncovered_files: list[str] = field(default_factory=list)
    """PR-changed source files absent from both documents."""

    new_lines_covered: int = 0
    """Head lines executed that were absent or never executed on base."""

    min_coverage: float = DEFAULT_MIN_COVERAGE
    """Minimum acceptable head coverage percentage."""

    @property
    def below_minimum(self) -> bool:
        """Return True if head coverage is under the configured minimum."""
        return self.overall.coverage.head < self.min_coverage


# ── Trend rules ──────────────────────────────────────────────────


def coverage_trend(change: float, head: float, min_coverage: float) -> Trend:
    """Coverage drops and below-minimum results are negative, anything else positive."""
    if change < 0 or head < min_coverage:
        return Trend.NEGATIVE
    return Trend.POSITIVE


def hits_trend(base: float, head: float) -> Trend:
    """More hits is positive; fewer or equal hits is neutral."""
    return Trend.POSITIVE if head > base else Trend.NEUTRAL


def misses_trend(base: float, head: float) -> Trend:
    """More misses is negative, fewer is positive (also used for partials)."""
    if head > base:
        return Trend.NEGATIVE
    if head < base:
        return Trend.POSITIVE
    return Trend.NEUTRAL


# ── Line ranges ──────────────────────────────────────────────────


def compress_line_ranges(lines: Iterable[int]) -> str:
    """Collapse line numbers into ranges.

    >>> compress_line_ranges([7, 8, 9, 10, 29, 32, 41, 42, 43, 44])
    '7-10, 29, 32, 41-44'
    """
    numbers = sorted(set(lines))
    if not numbers:
        return ""

    groups: list[str] = []
    start = prev = numbers[0]
    for number in numbers[1:]:
        if number == prev + 1:
            prev = number
            continue
        groups.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = number
    groups.append(str(start) if start == prev else f"{start}-{prev}")
    return ", ".join(groups)


# ── Diff computation ─────────────────────────────────────────────


def _is_source_file(path: str) -> bool:
    return PurePosixPath(path).suffix in SOURCE_EXTENSIONS


def find_uncovered_changed_files(
    changed_files: Iterable[ChangedFile],
    covered_paths: Iterable[str],
    omit_filter: OmitFilter | None = None,
) -> list[str]:
    """Return PR-changed source files that no coverage document mentions.

    Args:
        changed_files: Files listed by the pull request.
        covered_paths: Normalized paths present on base or head.
        omit_filter: Files it omits are dropped silently.

    Returns:
        Normalized paths in PR order, without duplicates.
    """
    known = set(covered_paths)
    uncovered: list[str] = []

    for changed in changed_files:
        if changed.is_removed or not _is_source_file(changed.filename):
            continue
        normalized = normalize_path(changed.filename)
        if omit_filter is not None and (
            omit_filter.is_omitted(changed.filename) or omit_filter.is_omitted(normalized)
        ):
            logger.debug("Omitted changed file %s", changed.filename)
            continue
        if normalized not in known and normalized not in uncovered:
            uncovered.append(normalized)

    return uncovered


def compute_new_lines_covered(base: CoverageDocument, head: CoverageDocument) -> int:
    """Count head lines that gained coverage relative to base.

    A line counts when it has hits on head and, in the same file on base,
    is either not instrumented or has zero hits. Files are matched by path,
    so both documents should already be normalized.
    """
    base_hits = {file.path: {line.number: line.hits for line in file.lines} for file in base.files}

    count = 0
    for file in head.files:
        previous = base_hits.get(file.path, {})
        count += sum(1 for line in file.lines if line.is_covered and not previous.get(line.number))
    return count


def _file_entry(
    path: str,
    base_stats: FileStats | None,
    head_stats: FileStats | None,
    min_coverage: float,
) -> FileDiffEntry:
    head_coverage = head_stats.coverage if head_stats else 0.0
    entry = FileDiffEntry(
        filename=path,
        base_coverage=base_stats.coverage if base_stats else None,
        head_coverage=head_coverage,
        is_new=base_stats is None,
        missing_lines=compress_line_ranges(head_stats.missing_lines) if head_stats else "",
    )
    entry.trend = coverage_trend(entry.change, head_coverage, min_coverage)
    return entry


def compute_diff(
    base: CoverageDocument,
    head: CoverageDocument,
    *,
    changed_files: Sequence[ChangedFile] = (),
    omit_filter: OmitFilter | None = None,
    min_coverage: float = DEFAULT_MIN_COVERAGE,
) -> DiffResult:
    """Compare two path-normalized coverage documents.

    Args:
        base: Coverage of the PR base branch.
        head: Coverage of the PR head branch.
        changed_files: Files changed by the PR, for the uncovered-files pass.
        omit_filter: Omit patterns applied to the uncovered-files pass only.
        min_coverage: Minimum acceptable head coverage percentage.

    Returns:
        The diff result.
    """
    base_map = build_stats_map(base)
    head_map = build_stats_map(head)
    base_overall = build_overall_stats(base)
    head_overall = build_overall_stats(head)

    coverage_change = head_overall.coverage - base_overall.coverage
    overall = OverallDiff(
        coverage=MetricDelta(
            base=base_overall.coverage,
            head=head_overall.coverage,
            trend=coverage_trend(coverage_change, head_overall.coverage, min_coverage),
        ),
        files=MetricDelta(base_overall.total_files, head_overall.total_files),
        lines=MetricDelta(base_overall.total_lines, head_overall.total_lines),
        branches=MetricDelta(base_overall.branches_valid, head_overall.branches_valid),
        hits=MetricDelta(
            base_overall.covered_lines,
            head_overall.covered_lines,
            hits_trend(base_overall.covered_lines, head_overall.covered_lines),
        ),
        misses=MetricDelta(
            base_overall.misses,
            head_overall.misses,
            misses_trend(base_overall.misses, head_overall.misses),
        ),
        partials=MetricDelta(
            base_overall.partials,
            head_overall.partials,
            misses_trend(base_overall.partials, head_overall.partials),
        ),
    )

    # Union in base order, then head-only paths; sorted() below is stable
    all_paths = list(dict.fromkeys([*base_map, *head_map]))
    entries = [
        _file_entry(path, base_map.get(path), head_map.get(path), min_coverage)
        for path in all_paths
    ]
    files = sorted(
        (e for e in entries if e.is_new or abs(e.change) > CHANGE_THRESHOLD),
        key=lambda e: abs(e.change),
        reverse=True,
    )

    uncovered = find_uncovered_changed_files(changed_files, all_paths, omit_filter)
    new_lines_covered = compute_new_lines_covered(base, head)

    logger.info(
        "Coverage %.2f%% -> %.2f%%; %d changed files, %d uncovered changed files",
        base_overall.coverage,
        head_overall.coverage,
        len(files),
        len(uncovered),
    )
    logger.info("New lines covered in head: %d", new_lines_covered)

    return DiffResult(
        overall=overall,
        files=files,
        uncovered_files=uncovered,
        new_lines_covered=new_lines_covered,
        min_coverage=min_coverage,
    )
