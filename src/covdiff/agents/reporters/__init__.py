"""Reporters for publishing coverage comparisons."""

from __future__ import annotations

from covdiff.agents.reporters.github_comment import (
    COMMENT_MARKER,
    GitHubCommentReporter,
    render_report,
    render_unavailable_report,
)
from covdiff.agents.reporters.terminal import reporter

__all__ = [
    "COMMENT_MARKER",
    "GitHubCommentReporter",
    "render_report",
    "render_unavailable_report",
    "reporter",
]
