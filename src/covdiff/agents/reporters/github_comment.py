"""GitHub comment reporter for coverage diffs.

This reporter:
1. Renders a ``DiffResult`` into a deterministic markdown report
2. Embeds a fixed marker so reruns update the same PR comment
3. Uses the GitHub API to create/update that comment (upsert to avoid duplicates)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covdiff.agents.analyzers.diff import Trend
from covdiff.utils.git import GitHubAPI

if TYPE_CHECKING:
    from collections.abc import Sequence

    from covdiff.agents.analyzers.diff import DiffResult, FileDiffEntry, MetricDelta
    from covdiff.utils.git import GitHubPRInfo

logger = logging.getLogger(__name__)

COMMENT_MARKER = "<!-- Coverage Report Bot -->"

_TREND_ICONS = {
    Trend.POSITIVE: "✅",
    Trend.NEGATIVE: "❌",
    Trend.NEUTRAL: "",
}

_NO_VALUE = "-"


# ── Number formatting ────────────────────────────────────────────


def format_percent(value: float | None) -> str:
    """Format a coverage percentage, e.g. ``67.74%``."""
    if value is None:
        return _NO_VALUE
    return f"{value:.2f}%"


def format_change(value: float) -> str:
    """Format a percentage change with an explicit ``+`` for increases.

    Values that round to zero render as ``0.00%``, never ``-0.00%``.
    """
    rounded = round(value, 2)
    if rounded == 0:
        return "0.00%"
    return f"{rounded:+.2f}%"


def format_count_change(value: float) -> str:
    """Format an integer delta with an explicit ``+`` for increases."""
    count = round(value)
    if count == 0:
        return "0"
    return f"{count:+d}"


# ── Rendering ────────────────────────────────────────────────────


def _table_lines(rows: Sequence[tuple[str, Sequence[str]]]) -> list[str]:
    """Lay out ``(marker, cells)`` rows; first column left-aligned, the rest right."""
    if not rows:
        return []
    column_count = max(len(cells) for _, cells in rows)
    widths = [
        max(len(cells[i]) for _, cells in rows if i < len(cells)) for i in range(column_count)
    ]
    lines: list[str] = []
    for marker, cells in rows:
        padded = [
            cell.ljust(widths[i]) if i == 0 else cell.rjust(widths[i])
            for i, cell in enumerate(cells)
        ]
        lines.append(f"{marker} {'   '.join(padded)}".rstrip())
    return lines


def _metric_row(
    label: str, metric: MetricDelta, *, percent: bool = False, icon: bool = False
) -> tuple[str, list[str]]:
    if percent:
        cells = [
            label,
            format_percent(metric.base),
            format_percent(metric.head),
            format_change(metric.change),
        ]
    else:
        cells = [
            label,
            str(round(metric.base)),
            str(round(metric.head)),
            format_count_change(metric.change),
        ]
    if icon and _TREND_ICONS[metric.trend]:
        cells.append(_TREND_ICONS[metric.trend])
    return metric.trend.marker, cells


def _file_row(entry: FileDiffEntry) -> tuple[str, list[str]]:
    cells = [
        entry.filename,
        format_percent(entry.base_coverage),
        format_percent(entry.head_coverage),
        format_change(entry.change),
    ]
    if _TREND_ICONS[entry.trend]:
        cells.append(_TREND_ICONS[entry.trend])
    return entry.trend.marker, cells


def _render_overall(diff: DiffResult, base_branch: str, head_branch: str) -> list[str]:
    overall = diff.overall
    coverage_rows = [_metric_row("Coverage", overall.coverage, percent=True, icon=True)]
    size_rows = [
        _metric_row("Files", overall.files),
        _metric_row("Lines", overall.lines),
        _metric_row("Branches", overall.branches),
    ]
    hit_rows = [
        _metric_row("Hits", overall.hits),
        _metric_row("Misses", overall.misses),
        _metric_row("Partials", overall.partials),
    ]

    # Lay out all rows together so the columns line up across sections
    laid_out = _table_lines([*coverage_rows, *size_rows, *hit_rows])
    header = f"## {base_branch}   #{head_branch}   +/-   ##"
    rule = "=" * max(len(header), *(len(line) for line in laid_out))

    lines = ["```diff", "@@ Coverage Diff @@", header, rule]
    lines.extend(laid_out[:1])
    lines.append(rule)
    lines.extend(laid_out[1:4])
    lines.append(rule)
    lines.extend(laid_out[4:])
    lines.append("```")
    return lines


def _render_files(
    diff: DiffResult, base_branch: str, head_branch: str, *, show_missing_lines: bool
) -> list[str]:
    laid_out = _table_lines([_file_row(entry) for entry in diff.files])
    header = f"## File   {base_branch}   {head_branch}   +/-   ##"
    rule = "=" * max(len(header), *(len(line) for line in laid_out))

    lines = ["```diff", "@@ File Coverage Diff @@", header, rule]
    for entry, line in zip(diff.files, laid_out, strict=True):
        lines.append(line)
        if show_missing_lines and entry.missing_lines:
            lines.append(f"  Missing lines: {entry.missing_lines}")
    lines.append(rule)
    lines.append("```")
    return lines


def render_report(
    diff: DiffResult,
    base_branch: str,
    head_branch: str,
    *,
    show_missing_lines: bool = False,
) -> str:
    """Render a coverage diff as a markdown PR comment.

    The output depends only on the arguments, so identical inputs always
    produce identical text.

    Args:
        diff: Result of the diff engine.
        base_branch: Name of the PR base branch.
        head_branch: Name of the PR head branch.
        show_missing_lines: Add a "Missing lines" line under each changed file.

    Returns:
        The report, starting with ``COMMENT_MARKER``.
    """
    sections: list[str] = [COMMENT_MARKER, "The overall coverage statistics of the PR are:"]
    sections.extend(_render_overall(diff, base_branch, head_branch))
    sections.append("")
    sections.append(f"New lines covered in `{head_branch}`: {diff.new_lines_covered}")

    if diff.below_minimum:
        sections.append("")
        sections.append(
            f"⚠️ Coverage of `{head_branch}` ({format_percent(diff.overall.coverage.head)}) "
            f"is below the minimum of {format_percent(diff.min_coverage)}."
        )

    if diff.files:
        sections.append("")
        sections.append("The main files with changes are:")
        sections.extend(
            _render_files(diff, base_branch, head_branch, show_missing_lines=show_missing_lines)
        )

    if diff.uncovered_files:
        sections.append("")
        sections.append("The following changed files have no coverage data:")
        sections.extend(f"- `{path}`" for path in diff.uncovered_files)

    return "\n".join(sections) + "\n"


def render_unavailable_report(base_branch: str, head_branch: str, missing: Sequence[str]) -> str:
    """Render the informational report used when a branch has no coverage data.

    Args:
        base_branch: Name of the PR base branch.
        head_branch: Name of the PR head branch.
        missing: Branches whose coverage report could not be found.

    Returns:
        The report, starting with ``COMMENT_MARKER``.
    """
    sections = [
        COMMENT_MARKER,
        f"Coverage comparison between `{base_branch}` and `{head_branch}` is unavailable.",
        "",
        "No coverage report was found for:",
    ]
    sections.extend(f"- `{branch}`" for branch in missing)
    return "\n".join(sections) + "\n"


# ── Publishing ───────────────────────────────────────────────────


class GitHubCommentReporter:
    """Reporter that publishes coverage reports as a single PR comment."""

    def __init__(self, github_token: str | None = None) -> None:
        """Initialize the GitHub comment reporter.

        Args:
            github_token: GitHub token. If not provided, will try to read from
                the GITHUB_TOKEN environment variable.

        Raises:
            GitHubAPIError: If no token is available.
        """
        self._api = GitHubAPI(token=github_token)
        self._marker = COMMENT_MARKER

    def post_report(self, pr_info: GitHubPRInfo, body: str) -> dict[str, str]:
        """Create or update the coverage comment on a pull request.

        Args:
            pr_info: Pull request information.
            body: Rendered report.

        Returns:
            Dict with status and comment URL.

        Raises:
            GitHubAPIError: If posting the comment fails.
        """
        logger.info(
            "Posting coverage report to PR #%d in %s/%s",
            pr_info.pr_number,
            pr_info.owner,
            pr_info.repo,
        )

        result = self._api.upsert_comment(pr_info, body, self._marker)

        logger.info("Successfully posted comment: %s", result.get("html_url"))

        return {
            "status": "success",
            "comment_url": result.get("html_url", ""),
        }

