"""CI and PR context detection utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass

from covdiff.utils.git import get_pr_info_from_env

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2


@dataclass
class CIContext:
    """Pull request context detected from CI environment variables."""

    pr_number: int | None
    """PR number if in PR context."""

    base_branch: str | None
    """Base/target branch of the PR."""

    head_branch: str | None
    """Head/source branch of the PR."""

    repo_owner: str | None
    """Repository owner (org or user)."""

    repo_name: str | None
    """Repository name."""


def detect_ci_context() -> CIContext:
    """Detect CI and PR context from environment variables.

    Supports GitHub Actions and GitLab CI merge request pipelines.

    Returns:
        CIContext with detected values.
    """
    # GitHub Actions
    if os.getenv("GITHUB_ACTIONS") == "true":
        repo_full = os.getenv("GITHUB_REPOSITORY", "")
        repo_parts = repo_full.split("/") if repo_full else []
        repo_owner = repo_parts[0] if len(repo_parts) == _OWNER_REPO_PARTS else None
        repo_name = repo_parts[1] if len(repo_parts) == _OWNER_REPO_PARTS else None

        base_branch = os.getenv("GITHUB_BASE_REF") or None
        head_branch = os.getenv("GITHUB_HEAD_REF") or None
        pr_info = get_pr_info_from_env()

        return CIContext(
            pr_number=pr_info.pr_number if pr_info else None,
            base_branch=base_branch,
            head_branch=head_branch,
            repo_owner=repo_owner,
            repo_name=repo_name,
        )

    # GitLab CI
    if os.getenv("GITLAB_CI") == "true":
        base_branch = os.getenv("CI_MERGE_REQUEST_TARGET_BRANCH_NAME") or None
        head_branch = os.getenv("CI_MERGE_REQUEST_SOURCE_BRANCH_NAME") or None
        return CIContext(
            pr_number=_parse_int(os.getenv("CI_MERGE_REQUEST_IID")),
            base_branch=base_branch,
            head_branch=head_branch,
            repo_owner=os.getenv("CI_PROJECT_NAMESPACE"),
            repo_name=os.getenv("CI_PROJECT_NAME"),
        )

    return CIContext(
        pr_number=None,
        base_branch=None,
        head_branch=None,
        repo_owner=None,
        repo_name=None,
    )


def _parse_int(value: str | None) -> int | None:
    """Safely parse integer from string."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
