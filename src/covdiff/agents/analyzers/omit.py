"""Omit patterns from ``.coveragerc`` and glob matching against file paths."""

from __future__ import annotations

import configparser
import fnmatch
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from covdiff.agents.analyzers.paths import normalize_path

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

# [run] in .coveragerc, [coverage:run] in setup.cfg / tox.ini
_RUN_SECTIONS = ("run", "coverage:run")

_PATTERN_SPLIT_RE = re.compile(r"[,\n]")


@dataclass
class OmitConfig:
    """Raw omit patterns as written in the configuration file."""

    patterns: list[str] = field(default_factory=list)


def parse_omit_patterns(value: str) -> list[str]:
    """Split an ``omit`` value on commas and newlines, dropping blanks."""
    return [part.strip() for part in _PATTERN_SPLIT_RE.split(value) if part.strip()]


def load_omit_config(path: Path) -> OmitConfig:
    """Load omit patterns from an ini-style coverage configuration.

    A missing file or a file without a run section yields an empty config.
    An unparsable file is reported and also yields an empty config.
    """
    if not path.is_file():
        logger.debug("No coverage configuration at %s; nothing is omitted", path)
        return OmitConfig()

    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(path, encoding="utf-8")
    except (configparser.Error, UnicodeDecodeError) as exc:
        logger.warning("Could not parse %s, continuing without omit patterns: %s", path, exc)
        return OmitConfig()

    for section in _RUN_SECTIONS:
        if parser.has_option(section, "omit"):
            patterns = parse_omit_patterns(parser.get(section, "omit"))
            logger.debug("Loaded %d omit patterns from [%s] in %s", len(patterns), section, path)
            return OmitConfig(patterns=patterns)

    return OmitConfig()


def normalize_pattern(pattern: str) -> str:
    """Bring a coverage.py omit pattern into repository-relative glob form."""
    result = pattern.strip().replace("\\", "/")
    if result.startswith("./"):
        result = result[2:]
    if result.startswith("*/"):
        result = "**/" + result[2:]
    if result.endswith("/*") and not result.endswith("**/*"):
        result = result[:-2] + "/**"
    return result


def _match_segments(path_parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    if not pattern_parts:
        return not path_parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        # Zero or more whole directories
        return any(_match_segments(path_parts[i:], rest) for i in range(len(path_parts) + 1))
    if not path_parts:
        return False
    return fnmatch.fnmatch(path_parts[0], head) and _match_segments(path_parts[1:], rest)


def match_pattern(path: str, pattern: str) -> bool:
    """Check whether a ``/``-separated path matches a glob pattern.

    Matching goes segment by segment, so ``*``, ``?`` and ``[...]`` never
    cross a ``/``. A ``**`` segment matches zero or more directories, which
    makes ``**/x.py`` match ``x.py`` and ``build/**`` match ``build`` itself.

    Args:
        path: Relative file path.
        pattern: Normalized glob pattern.

    Returns:
        True if the path matches the pattern.
    """
    return _match_segments(path.split("/"), pattern.split("/"))


class OmitFilter:
    """Classify file paths as omitted or kept."""

    def __init__(self, config: OmitConfig | None = None) -> None:
        self._patterns: list[str] = []
        self._variants: list[str] = []
        for raw in config.patterns if config else []:
            pattern = normalize_pattern(raw)
            if not pattern:
                continue
            self._patterns.append(pattern)
            self._variants.append(pattern)
            if not pattern.startswith("**/"):
                # Patterns need not be anchored at the repository root
                self._variants.append("**/" + pattern)

    @property
    def patterns(self) -> list[str]:
        """Normalized patterns in configuration order."""
        return list(self._patterns)

    def is_omitted(self, path: str) -> bool:
        """Return True if *path*, as given or source-root normalized, matches a pattern."""
        candidates = {path.replace("\\", "/"), normalize_path(path)}
        return any(
            match_pattern(candidate, pattern)
            for pattern in self._variants
            for candidate in candidates
        )
