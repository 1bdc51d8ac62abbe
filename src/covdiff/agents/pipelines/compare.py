"""Compare pipeline - fetch both branches, diff, render, publish."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from covdiff.adapters.coverage.cobertura import parse_coverage_xml
from covdiff.agents.analyzers.diff import DEFAULT_MIN_COVERAGE, compute_diff
from covdiff.agents.analyzers.omit import OmitConfig, OmitFilter
from covdiff.agents.analyzers.paths import normalize_document
from covdiff.agents.reporters.github_comment import (
    GitHubCommentReporter,
    render_report,
    render_unavailable_report,
)
from covdiff.errors import CoverageParseError
from covdiff.models.coverage import build_stats_map
from covdiff.utils.git import GitHubAPI
from covdiff.utils.storage import CoverageNotFound, fetch_latest_coverage

if TYPE_CHECKING:
    from pathlib import Path

    from covdiff.adapters.coverage.base import CoverageDocument
    from covdiff.agents.analyzers.diff import DiffResult
    from covdiff.models.pull_request import ChangedFile
    from covdiff.utils.git import GitHubPRInfo
    from covdiff.utils.storage import CoverageStore

logger = logging.getLogger(__name__)


# ── Coverage sources ─────────────────────────────────────────────


class CoverageSource(ABC):
    """Where one branch's coverage document comes from."""

    branch: str

    @abstractmethod
    def load(self) -> bytes | CoverageNotFound:
        """Return the raw document bytes, or ``CoverageNotFound``."""


class StoredCoverageSource(CoverageSource):
    """Latest report of a branch in a ``CoverageStore``."""

    def __init__(self, store: CoverageStore, repository: str, branch: str) -> None:
        self.store = store
        self.repository = repository
        self.branch = branch

    def load(self) -> bytes | CoverageNotFound:
        return fetch_latest_coverage(self.store, self.repository, self.branch)


class FileCoverageSource(CoverageSource):
    """A report already on disk, labelled with the branch it belongs to."""

    def __init__(self, path: Path, branch: str) -> None:
        self.path = path
        self.branch = branch

    def load(self) -> bytes | CoverageNotFound:
        if not self.path.is_file():
            return CoverageNotFound(branch=self.branch, reason=f"{self.path} does not exist")
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise CoverageParseError(f"Failed to read coverage file {self.path}: {exc}") from exc


# ── Pipeline ─────────────────────────────────────────────────────


@dataclass
class ComparePipelineConfig:
    """Configuration for compare pipeline execution."""

    base_branch: str
    """PR base branch name."""

    head_branch: str
    """PR head branch name."""

    base_source: CoverageSource
    head_source: CoverageSource

    changed_files: list[ChangedFile] | None = None
    """Files changed by the PR; listed through the GitHub API when None and ``pr_info`` is set."""

    omit_config: OmitConfig = field(default_factory=OmitConfig)
    """Omit patterns applied to the uncovered-files list."""

    min_coverage: float = DEFAULT_MIN_COVERAGE
    """Minimum acceptable head coverage percentage."""

    show_missing_lines: bool = False
    """Add a "Missing lines" sub-line per changed file."""

    pr_info: GitHubPRInfo | None = None
    """Pull request to list changed files from and comment on."""

    github_token: str | None = None
    """Token for the GitHub API (falls back to GITHUB_TOKEN)."""

    publish: bool = True
    """Whether to create/update the PR comment when ``pr_info`` is set."""


@dataclass
class ComparePipelineResult:
    """Result of compare pipeline execution."""

    report: str
    """Rendered markdown report."""

    diff: DiffResult | None = None
    """Structured diff; None when coverage was unavailable."""

    unavailable: list[CoverageNotFound] = field(default_factory=list)
    """Branches whose coverage report could not be found."""

    comment_url: str | None = None
    """URL of the published PR comment, if any."""

    @property
    def is_unavailable(self) -> bool:
        """Return True if the informational "unavailable" report was produced."""
        return self.diff is None

    @property
    def below_minimum(self) -> bool:
        """Return True if head coverage is under the configured minimum."""
        return self.diff is not None and self.diff.below_minimum


def _load_document(source: CoverageSource) -> CoverageDocument | CoverageNotFound:
    """Fetch and parse one branch; runs in a worker thread."""
    content = source.load()
    if isinstance(content, CoverageNotFound):
        return content
    logger.debug("Parsing %s coverage (%d bytes)", source.branch, len(content))
    return parse_coverage_xml(content)


def _log_file_stats(branch: str, document: CoverageDocument) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("%s branch file statistics:", branch)
    for stats in build_stats_map(document).values():
        logger.debug(
            "  %s: %d lines, %d covered (%.2f%%)",
            stats.path,
            stats.total_lines,
            stats.covered_lines,
            stats.coverage,
        )


class ComparePipeline:
    """Orchestrates a coverage comparison: fetch → parse → normalize → diff → render."""

    def __init__(self, config: ComparePipelineConfig) -> None:
        """Initialize compare pipeline.

        Args:
            config: Pipeline configuration.
        """
        self.config = config

    async def run(self) -> ComparePipelineResult:
        """Execute the pipeline.

        Returns:
            The rendered report and structured diff.

        Raises:
            CoverageParseError: If either document is malformed.
            StorageError: If a storage backend fails.
            GitHubAPIError: If listing PR files or publishing fails.
        """
        cfg = self.config

        # A fatal error on either side propagates before any diff work starts
        base, head = await asyncio.gather(
            asyncio.to_thread(_load_document, cfg.base_source),
            asyncio.to_thread(_load_document, cfg.head_source),
        )

        if isinstance(base, CoverageNotFound) or isinstance(head, CoverageNotFound):
            missing = [doc for doc in (base, head) if isinstance(doc, CoverageNotFound)]
            for item in missing:
                logger.warning("Coverage for %s is unavailable: %s", item.branch, item.reason)
            result = ComparePipelineResult(
                report=render_unavailable_report(
                    cfg.base_branch, cfg.head_branch, [item.branch for item in missing]
                ),
                unavailable=missing,
            )
        else:
            base, head = normalize_document(base), normalize_document(head)
            _log_file_stats(cfg.base_branch, base)
            _log_file_stats(cfg.head_branch, head)

            changed_files = await self._changed_files()
            diff = compute_diff(
                base,
                head,
                changed_files=changed_files,
                omit_filter=OmitFilter(cfg.omit_config),
                min_coverage=cfg.min_coverage,
            )
            result = ComparePipelineResult(
                report=render_report(
                    diff,
                    cfg.base_branch,
                    cfg.head_branch,
                    show_missing_lines=cfg.show_missing_lines,
                ),
                diff=diff,
            )

        if cfg.pr_info is not None and cfg.publish:
            comment_reporter = GitHubCommentReporter(github_token=cfg.github_token)
            posted = await asyncio.to_thread(
                comment_reporter.post_report, cfg.pr_info, result.report
            )
            result.comment_url = posted.get("comment_url") or None

        return result

    async def _changed_files(self) -> list[ChangedFile]:
        cfg = self.config
        if cfg.changed_files is not None:
            return cfg.changed_files
        if cfg.pr_info is None:
            return []
        api = GitHubAPI(token=cfg.github_token)
        return await asyncio.to_thread(api.list_pr_files, cfg.pr_info)
