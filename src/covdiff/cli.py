"""covdiff CLI: top-level command group."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from covdiff import __version__
from covdiff.agents.analyzers.omit import load_omit_config
from covdiff.agents.pipelines import (
    ComparePipeline,
    ComparePipelineConfig,
    ComparePipelineResult,
    FileCoverageSource,
    StoredCoverageSource,
)
from covdiff.agents.reporters.terminal import reporter
from covdiff.config import CovdiffConfig, StorageConfig, load_config, validate_config
from covdiff.errors import ConfigError, CovdiffError
from covdiff.models.pull_request import ChangedFile
from covdiff.utils.ci_context import detect_ci_context
from covdiff.utils.git import GitHubAPIError, GitHubPRInfo
from covdiff.utils.storage import CoverageStore, GCSCoverageStore, LocalCoverageStore

logger = logging.getLogger(__name__)

# Process exit codes
EXIT_BELOW_MINIMUM = 1
EXIT_ERROR = 2


def _setup_logging(*, verbose: bool) -> None:
    """Route covdiff log records through a rich handler on stderr."""
    level = logging.DEBUG if verbose else logging.WARNING
    package_logger = logging.getLogger("covdiff")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    package_logger.addHandler(
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=False,
            show_path=verbose,
        )
    )
    package_logger.setLevel(level)


def _load_settings(path: str, overrides: dict[str, Any]) -> CovdiffConfig:
    """Load configuration, apply CLI flag overrides and validate.

    Exits with ``EXIT_ERROR`` when the configuration is unusable.
    """
    try:
        config = load_config(path)
    except ConfigError as exc:
        reporter.print_error(f"Failed to load configuration: {exc}")
        raise SystemExit(EXIT_ERROR) from exc

    if overrides.get("min_coverage") is not None:
        config.coverage.min_coverage = overrides["min_coverage"]
    if overrides.get("show_missing_lines") is not None:
        config.coverage.show_missing_lines = overrides["show_missing_lines"]
    if overrides.get("coveragerc") is not None:
        config.coverage.coveragerc = overrides["coveragerc"]

    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(error)
        raise SystemExit(EXIT_ERROR)
    return config


def _build_store(storage: StorageConfig, project_root: Path) -> CoverageStore:
    if storage.backend == "gcs":
        return GCSCoverageStore(storage.bucket, token=storage.token or None)
    root = Path(storage.root)
    if not root.is_absolute():
        root = project_root / root
    return LocalCoverageStore(root)


def _run_pipeline(pipeline_config: ComparePipelineConfig) -> ComparePipelineResult:
    try:
        return asyncio.run(ComparePipeline(pipeline_config).run())
    except (CovdiffError, GitHubAPIError) as exc:
        reporter.print_error(str(exc))
        raise SystemExit(EXIT_ERROR) from exc


def _finish(
    result: ComparePipelineResult,
    pipeline_config: ComparePipelineConfig,
    *,
    output: Path | None,
    fail: bool,
) -> None:
    """Emit the report and exit with the code matching the outcome."""
    if output is not None:
        output.write_text(result.report, encoding="utf-8")
        reporter.print_info(f"Report written to {output}")
    else:
        click.echo(result.report, nl=False)

    if result.comment_url:
        reporter.print_success(f"Coverage comment: {result.comment_url}")

    if result.diff is None:
        missing = ", ".join(item.branch for item in result.unavailable)
        reporter.print_warning(f"Coverage comparison unavailable (no report for: {missing})")
        return

    reporter.print_diff_summary(
        result.diff, pipeline_config.base_branch, pipeline_config.head_branch
    )

    if result.below_minimum:
        message = (
            f"Coverage {result.diff.overall.coverage.head:.2f}% is below the minimum "
            f"of {result.diff.min_coverage:.2f}%"
        )
        if fail:
            reporter.print_error(message)
            raise SystemExit(EXIT_BELOW_MINIMUM)
        reporter.print_warning(message)
        return

    reporter.print_success(
        f"Coverage {result.diff.overall.coverage.head:.2f}% meets the minimum "
        f"of {result.diff.min_coverage:.2f}%"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="covdiff")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """covdiff: compare code coverage between the two branches of a pull request."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose=verbose)


_report_options = [
    click.option(
        "--path",
        default=".",
        type=click.Path(exists=True, file_okay=False, resolve_path=True),
        help="Project root holding .covdiff.yml and .coveragerc.",
    ),
    click.option(
        "--min-coverage",
        type=click.FloatRange(0, 100),
        default=None,
        help="Minimum acceptable head coverage percentage (default: 80).",
    ),
    click.option(
        "--show-missing-lines/--hide-missing-lines",
        default=None,
        help="List uncovered line ranges under each changed file.",
    ),
    click.option(
        "--coveragerc",
        type=str,
        default=None,
        help="Coverage configuration with [run] omit patterns (default: .coveragerc).",
    ),
    click.option(
        "--output",
        "-o",
        type=click.Path(dir_okay=False, writable=True, path_type=Path),
        default=None,
        help="Write the report to a file instead of stdout.",
    ),
    click.option(
        "--fail/--no-fail",
        default=True,
        help="Exit with status 1 when head coverage is below the minimum.",
    ),
]


def _with_report_options(func: Any) -> Any:
    for option in reversed(_report_options):
        func = option(func)
    return func


@cli.command()
@click.argument("base_xml", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("head_xml", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--base-name", default="base", help="Label for the base branch.")
@click.option("--head-name", default="head", help="Label for the head branch.")
@click.option(
    "--changed-file",
    "changed_files",
    multiple=True,
    help="A file changed by the PR (repeatable); unreported ones are listed as uncovered.",
)
@_with_report_options
def compare(**kwargs: Any) -> None:
    """Compare two local Cobertura XML reports.

    Prints the markdown report to stdout (or --output) and a summary table
    to stderr.
    """
    project_root = Path(kwargs["path"])
    config = _load_settings(kwargs["path"], kwargs)

    pipeline_config = ComparePipelineConfig(
        base_branch=kwargs["base_name"],
        head_branch=kwargs["head_name"],
        base_source=FileCoverageSource(kwargs["base_xml"], kwargs["base_name"]),
        head_source=FileCoverageSource(kwargs["head_xml"], kwargs["head_name"]),
        changed_files=[ChangedFile(filename=name) for name in kwargs["changed_files"]],
        omit_config=load_omit_config(project_root / config.coverage.coveragerc),
        min_coverage=config.coverage.min_coverage,
        show_missing_lines=config.coverage.show_missing_lines,
    )

    result = _run_pipeline(pipeline_config)
    _finish(result, pipeline_config, output=kwargs["output"], fail=kwargs["fail"])


@cli.command()
@click.option("--owner", default=None, help="Repository owner (default: from CI context).")
@click.option("--repository", default=None, help="Repository name (default: from CI context).")
@click.option("--base", "base_branch", default=None, help="Base branch (default: from CI).")
@click.option("--head", "head_branch", default=None, help="Head branch (default: from CI).")
@click.option("--pr-number", type=int, default=None, help="Pull request number.")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Render the report without creating or updating the PR comment.",
)
@_with_report_options
def pr(**kwargs: Any) -> None:
    """Compare the latest stored coverage of a pull request's branches.

    Reads both reports from storage, lists the PR's changed files and posts
    (or updates) the coverage comment on the pull request.
    """
    project_root = Path(kwargs["path"])
    config = _load_settings(kwargs["path"], kwargs)
    ci = detect_ci_context()

    base_branch = kwargs["base_branch"] or ci.base_branch
    head_branch = kwargs["head_branch"] or ci.head_branch
    if not base_branch or not head_branch:
        reporter.print_error(
            "Base and head branches are unknown. Run on a pull request event "
            "or pass --base and --head."
        )
        raise SystemExit(EXIT_ERROR)

    repository = kwargs["repository"] or ci.repo_name
    if not repository:
        reporter.print_error("Repository is unknown. Pass --repository.")
        raise SystemExit(EXIT_ERROR)

    pr_number = kwargs["pr_number"] or ci.pr_number
    pr_info: GitHubPRInfo | None = None
    owner = kwargs["owner"] or ci.repo_owner
    if pr_number and owner:
        pr_info = GitHubPRInfo(owner=owner, repo=repository, pr_number=pr_number)
    else:
        reporter.print_warning("No pull request detected; changed files will not be checked")

    store = _build_store(config.storage, project_root)
    pipeline_config = ComparePipelineConfig(
        base_branch=base_branch,
        head_branch=head_branch,
        base_source=StoredCoverageSource(store, repository, base_branch),
        head_source=StoredCoverageSource(store, repository, head_branch),
        omit_config=load_omit_config(project_root / config.coverage.coveragerc),
        min_coverage=config.coverage.min_coverage,
        show_missing_lines=config.coverage.show_missing_lines,
        pr_info=pr_info,
        github_token=config.github.token or None,
        publish=not kwargs["dry_run"],
    )

    logger.debug("Comparing %s..%s of %s", base_branch, head_branch, repository)
    result = _run_pipeline(pipeline_config)
    _finish(result, pipeline_config, output=kwargs["output"], fail=kwargs["fail"])
