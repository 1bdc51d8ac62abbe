"""Exception hierarchy shared across covdiff."""

from __future__ import annotations


class CovdiffError(Exception):
    """Base class for all covdiff errors."""


class CoverageParseError(CovdiffError):
    """Raised when a coverage document cannot be parsed.

    Parse failures are fatal: no partial document is ever produced.
    """


class StorageError(CovdiffError):
    """Raised when a storage backend fails to list or read objects."""


class ObjectNotFoundError(StorageError):
    """Raised when a requested storage object does not exist."""


class ConfigError(CovdiffError):
    """Raised when configuration cannot be loaded."""
