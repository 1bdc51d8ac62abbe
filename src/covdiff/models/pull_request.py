"""Pull request metadata models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ChangedFile:
    """A file touched by a pull request."""

    filename: str
    """Repository-relative path as listed by the PR files API."""

    status: str = "modified"
    """GitHub file status: added, modified, removed, renamed, copied, changed, unchanged."""

    @property
    def is_removed(self) -> bool:
        """Return True if the PR deletes this file."""
        return self.status == "removed"
