"""Canonical file identity shared by PR file listings and coverage reports.

Pull request listings use repository-relative paths (``src/pkg/mod.py``)
while coverage tools usually report paths relative to a source root
(``pkg/mod.py``). Both sides go through ``normalize_path`` before matching.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from covdiff.adapters.coverage.base import CoverageDocument, FileCoverage

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

# Stripped in this order; JVM source roots before the generic src/ root
DEFAULT_STRIP_PREFIXES: tuple[str, ...] = (
    "./",
    "src/main/java/",
    "src/main/kotlin/",
    "src/main/scala/",
    "src/",
)

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def _strip_pass(path: str, prefixes: Sequence[str]) -> str:
    for prefix in prefixes:
        if path.startswith(prefix):
            path = path[len(prefix) :]
    return path


def normalize_path(path: str, prefixes: Sequence[str] = DEFAULT_STRIP_PREFIXES) -> str:
    """Return the canonical identity of *path*.

    Separators become ``/`` and known root prefixes are stripped from the
    front. Passes repeat until nothing changes, so the result is a fixed
    point: ``normalize_path(normalize_path(p)) == normalize_path(p)``.

    Args:
        path: File path from a PR listing or a coverage report.
        prefixes: Ordered prefixes to strip (each at most once per pass).

    Returns:
        The normalized path.
    """
    current = _REPEATED_SEPARATORS.sub("/", path.replace("\\", "/"))
    while True:
        stripped = _strip_pass(current, prefixes)
        if stripped == current:
            return current
        current = stripped


def normalize_document(
    document: CoverageDocument, prefixes: Sequence[str] = DEFAULT_STRIP_PREFIXES
) -> CoverageDocument:
    """Return a copy of *document* keyed by normalized paths.

    Files that collapse onto the same normalized path are merged.
    """
    files: dict[str, FileCoverage] = {}
    for file in document.files:
        key = normalize_path(file.path, prefixes)
        if key in files:
            logger.debug("Merging %s into existing entry %s", file.path, key)
            files[key].merge(file)
            continue
        merged = FileCoverage(path=key)
        merged.merge(file)
        files[key] = merged

    return CoverageDocument(
        dialect=document.dialect,
        files=list(files.values()),
        line_rate=document.line_rate,
        branches_valid=document.branches_valid,
        branches_covered=document.branches_covered,
    )
