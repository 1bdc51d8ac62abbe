"""Analyzers: path identity, omit filtering and the coverage diff engine."""

from covdiff.agents.analyzers.diff import (
    DiffResult,
    FileDiffEntry,
    MetricDelta,
    OverallDiff,
    Trend,
    compress_line_ranges,
    compute_diff,
    find_uncovered_changed_files,
)
from covdiff.agents.analyzers.omit import OmitConfig, OmitFilter, load_omit_config
from covdiff.agents.analyzers.paths import normalize_document, normalize_path

__all__ = [
    "DiffResult",
    "FileDiffEntry",
    "MetricDelta",
    "OmitConfig",
    "OmitFilter",
    "OverallDiff",
    "Trend",
    "compress_line_ranges",
    "compute_diff",
    "find_uncovered_changed_files",
    "load_omit_config",
    "normalize_document",
    "normalize_path",
]
