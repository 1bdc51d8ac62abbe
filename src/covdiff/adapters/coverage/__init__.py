"""Coverage report parsing into the unified document model."""

from covdiff.adapters.coverage.base import (
    CoverageDocument,
    Dialect,
    FileCoverage,
    LineEntry,
)
from covdiff.adapters.coverage.cobertura import (
    detect_dialect,
    parse_coverage_file,
    parse_coverage_xml,
)

__all__ = [
    "CoverageDocument",
    "Dialect",
    "FileCoverage",
    "LineEntry",
    "detect_dialect",
    "parse_coverage_file",
    "parse_coverage_xml",
]
