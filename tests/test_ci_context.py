"""Tests for CI context detection."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

from covdiff.utils.ci_context import _parse_int, detect_ci_context


def test_detect_github_actions_pr_context(tmp_path: Path) -> None:
    """Test GitHub Actions pull_request event detection."""
    event = tmp_path / "event.json"
    event.write_text(json.dumps({"pull_request": {"number": 123}}), encoding="utf-8")
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_BASE_REF": "main",
        "GITHUB_HEAD_REF": "feature/test",
        "GITHUB_REPOSITORY": "owner/repo",
        "GITHUB_EVENT_PATH": str(event),
    }

    with patch.dict(os.environ, env, clear=True):
        context = detect_ci_context()

        assert context.pr_number == 123
        assert context.base_branch == "main"
        assert context.head_branch == "feature/test"
        assert context.repo_owner == "owner"
        assert context.repo_name == "repo"


def test_detect_github_actions_pr_number_from_ref() -> None:
    """Test PR number fallback to GITHUB_REF."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_BASE_REF": "main",
        "GITHUB_HEAD_REF": "fix",
        "GITHUB_REPOSITORY": "owner/repo",
        "GITHUB_REF": "refs/pull/77/merge",
    }

    with patch.dict(os.environ, env, clear=True):
        assert detect_ci_context().pr_number == 77


def test_detect_github_actions_push_context() -> None:
    """Test GitHub Actions push event (no base/head refs)."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_BASE_REF": "",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_REPOSITORY": "owner/repo",
    }

    with patch.dict(os.environ, env, clear=True):
        context = detect_ci_context()

        assert context.pr_number is None
        assert context.base_branch is None
        assert context.repo_name == "repo"


def test_detect_gitlab_ci_mr_context() -> None:
    """Test GitLab CI merge request pipeline."""
    env = {
        "GITLAB_CI": "true",
        "CI_MERGE_REQUEST_IID": "456",
        "CI_MERGE_REQUEST_TARGET_BRANCH_NAME": "develop",
        "CI_MERGE_REQUEST_SOURCE_BRANCH_NAME": "feature/gitlab",
        "CI_PROJECT_NAMESPACE": "group",
        "CI_PROJECT_NAME": "my-project",
    }

    with patch.dict(os.environ, env, clear=True):
        context = detect_ci_context()

        assert context.pr_number == 456
        assert context.base_branch == "develop"
        assert context.head_branch == "feature/gitlab"
        assert context.repo_owner == "group"
        assert context.repo_name == "my-project"


def test_detect_generic_ci() -> None:
    """CI=true without a known provider yields no pull request context."""
    with patch.dict(os.environ, {"CI": "true"}, clear=True):
        context = detect_ci_context()

        assert context.base_branch is None
        assert context.pr_number is None
        assert context.repo_name is None


def test_detect_local_context() -> None:
    """Test local (non-CI) context detection."""
    with patch.dict(os.environ, {}, clear=True):
        context = detect_ci_context()

        assert context.pr_number is None


def test_github_repository_parsing_edge_cases() -> None:
    """Malformed GITHUB_REPOSITORY values leave owner and name unset."""
    for value in ("", "justname", "a/b/c"):
        env = {"GITHUB_ACTIONS": "true", "GITHUB_REPOSITORY": value}
        with patch.dict(os.environ, env, clear=True):
            context = detect_ci_context()
            assert context.repo_owner is None
            assert context.repo_name is None


def test_parse_int_invalid() -> None:
    """Test _parse_int with invalid values."""
    assert _parse_int(None) is None
    assert _parse_int("") is None
    assert _parse_int("abc") is None
    assert _parse_int("42") == 42
