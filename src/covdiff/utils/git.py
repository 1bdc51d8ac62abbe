"""GitHub API utilities for covdiff.

Lists the files changed by a pull request and creates or updates the
coverage comment, identified by a marker string embedded in its body.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from covdiff.models.pull_request import ChangedFile

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
_GITHUB_AUTH_ENV_KEY = "GITHUB_" + "TOKEN"
_PER_PAGE = 100
_REQUEST_TIMEOUT = 30

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2


@dataclass
class GitHubPRInfo:
    """Information about a GitHub pull request."""

    owner: str
    """Repository owner (username or organization)."""

    repo: str
    """Repository name."""

    pr_number: int
    """Pull request number."""


class GitHubAPIError(Exception):
    """Exception raised when GitHub API operations fail."""


class GitHubAPI:
    """Client for the GitHub REST API.

    Handles authentication, pagination, PR file listing and comment management.
    """

    def __init__(self, token: str | None = None) -> None:
        """Initialize the GitHub API client.

        Args:
            token: GitHub token. If not provided, will try to read from the
                GITHUB_TOKEN environment variable.

        Raises:
            GitHubAPIError: If no token is available.
        """
        self._token = token or os.environ.get(_GITHUB_AUTH_ENV_KEY)
        if not self._token:
            raise GitHubAPIError(
                f"GitHub token required. Set {_GITHUB_AUTH_ENV_KEY} environment variable "
                "or pass token to constructor."
            )

        self._session_headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def list_pr_files(self, pr_info: GitHubPRInfo) -> list[ChangedFile]:
        """List the files changed by a pull request.

        Args:
            pr_info: Pull request information.

        Returns:
            Changed files in the order GitHub returns them.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"pulls/{pr_info.pr_number}/files"
        )
        files = [
            ChangedFile(filename=item["filename"], status=item.get("status", "modified"))
            for item in self._get_paginated(url)
        ]
        logger.info("PR #%d changes %d files", pr_info.pr_number, len(files))
        return files

    def create_comment(self, pr_info: GitHubPRInfo, body: str) -> dict[str, Any]:
        """Create a new comment on a pull request.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )

        result: dict[str, Any] = self._post(url, {"body": body})
        return result

    def update_comment(self, pr_info: GitHubPRInfo, comment_id: int, body: str) -> dict[str, Any]:
        """Update an existing comment on a pull request.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/comments/{comment_id}"
        )

        result: dict[str, Any] = self._patch(url, {"body": body})
        return result

    def find_comment_by_marker(self, pr_info: GitHubPRInfo, marker: str) -> dict[str, Any] | None:
        """Find a comment on a PR by a unique marker string.

        Args:
            pr_info: Pull request information.
            marker: Unique marker to search for in comment body.

        Returns:
            Comment dict if found, None otherwise.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{GITHUB_API_BASE}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )

        for comment in self._get_paginated(url):
            if marker in (comment.get("body") or ""):
                result: dict[str, Any] = comment
                return result

        return None

    def upsert_comment(self, pr_info: GitHubPRInfo, body: str, marker: str) -> dict[str, Any]:
        """Create or update a comment on a PR.

        If a comment with the given marker exists, it will be updated.
        Otherwise, a new comment will be created.

        Args:
            pr_info: Pull request information.
            body: Comment body (markdown formatted). Should include the marker.
            marker: Unique marker identifying this comment.

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        if marker not in body:
            logger.warning("Marker '%s' not found in comment body. Adding it.", marker)
            body = f"{marker}\n{body}"

        existing = self.find_comment_by_marker(pr_info, marker)

        if existing:
            logger.info("Updating existing comment %d", existing["id"])
            return self.update_comment(pr_info, existing["id"], body)

        logger.info("Creating new comment")
        return self.create_comment(pr_info, body)

    def _get_paginated(self, url: str) -> list[dict[str, Any]]:
        """GET every page of a list endpoint."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = self._get(url, params={"per_page": _PER_PAGE, "page": page})
            if not isinstance(batch, list):
                raise GitHubAPIError(f"Expected a list from {url}, got {type(batch).__name__}")
            items.extend(batch)
            if len(batch) < _PER_PAGE:
                return items
            page += 1

    def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.get(
                url, params=params, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"GET request failed: {exc}") from exc

    def _post(self, url: str, data: dict[str, Any]) -> Any:
        """Make a POST request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.post(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"POST request failed: {exc}") from exc

    def _patch(self, url: str, data: dict[str, Any]) -> Any:
        """Make a PATCH request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.patch(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except Exception as exc:
            raise GitHubAPIError(f"PATCH request failed: {exc}") from exc


def _pr_number_from_event(event_path: str | None) -> int | None:
    """Read ``pull_request.number`` from the Actions event payload."""
    if not event_path:
        return None
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Could not read event payload %s: %s", event_path, exc)
        return None
    number = payload.get("pull_request", {}).get("number") if isinstance(payload, dict) else None
    return number if isinstance(number, int) else None


def _pr_number_from_ref(github_ref: str | None) -> int | None:
    """Parse the PR number from ``refs/pull/<number>/merge``."""
    if not github_ref or not github_ref.startswith("refs/pull/"):
        return None
    try:
        return int(github_ref.split("/")[2])
    except (IndexError, ValueError):
        return None


def get_pr_info_from_env() -> GitHubPRInfo | None:
    """Get PR information from GitHub Actions environment variables.

    Returns:
        GitHubPRInfo if running in a PR context, None otherwise.
    """
    github_repository = os.environ.get("GITHUB_REPOSITORY")
    if not github_repository:
        return None

    parts = github_repository.split("/")
    if len(parts) != _OWNER_REPO_PARTS:
        return None

    owner, repo = parts

    pr_number = _pr_number_from_event(os.environ.get("GITHUB_EVENT_PATH")) or _pr_number_from_ref(
        os.environ.get("GITHUB_REF")
    )
    if pr_number is None:
        return None

    return GitHubPRInfo(owner=owner, repo=repo, pr_number=pr_number)
