"""Configuration parsing from ``.covdiff.yml`` and the environment.

Precedence, lowest first: built-in defaults, ``.covdiff.yml``, environment
variables (``COVDIFF_*`` and GitHub Actions ``INPUT_*`` inputs), and
finally CLI flags applied by the caller.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from covdiff.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".covdiff.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

_STORAGE_BACKENDS = ("local", "gcs")

_MAX_PERCENT = 100.0


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _first_env(*names: str) -> str | None:
    """Return the first non-empty environment variable among *names*."""
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret YAML/env booleans (``true``, ``yes``, ``1`` ...)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return default


def parse_percent(value: Any, default: float) -> float:
    """Interpret a percentage; empty or non-numeric values fall back to *default*."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid coverage threshold %r, using %.2f", value, default)
        return default


@dataclass
class CoverageConfig:
    """Coverage thresholds and report options."""

    min_coverage: float = 80.0
    """Minimum acceptable head line coverage percentage (default: 80%)."""

    show_missing_lines: bool = False
    """Add a "Missing lines" sub-line per changed file."""

    coveragerc: str = ".coveragerc"
    """Path of the ini-style file holding ``[run] omit`` patterns."""


@dataclass
class StorageConfig:
    """Where per-branch coverage reports are stored."""

    backend: str = "local"
    """Storage backend: local or gcs."""

    root: str = "."
    """Directory root for the local backend."""

    bucket: str = ""
    """Bucket name for the gcs backend."""

    token: str = ""
    """OAuth2 access token for the gcs backend (supports ${ENV_VAR} expansion)."""


@dataclass
class GitHubConfig:
    """GitHub access configuration."""

    token: str = ""
    """Token used to list PR files and publish the comment."""


@dataclass
class CovdiffConfig:
    """Top-level covdiff configuration."""

    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    raw: dict[str, Any] = field(default_factory=dict)
    """The resolved YAML mapping, for diagnostics."""


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    return section if isinstance(section, dict) else {}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return _resolve_dict(parsed)


def load_config(root: str | Path) -> CovdiffConfig:
    """Load configuration for the project at *root*.

    Args:
        root: Directory containing ``.covdiff.yml`` (which is optional).

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If ``.covdiff.yml`` exists but cannot be parsed.
    """
    root_path = Path(root)
    raw = _load_yaml(root_path / CONFIG_FILENAME)

    coverage_raw = _section(raw, "coverage")
    coverage = CoverageConfig(
        min_coverage=parse_percent(
            _first_env("COVDIFF_MIN_COVERAGE", "INPUT_MIN_COVERAGE")
            or coverage_raw.get("min_coverage"),
            CoverageConfig.min_coverage,
        ),
        show_missing_lines=parse_bool(
            _first_env("COVDIFF_SHOW_MISSING_LINES", "INPUT_SHOW_MISSING_LINES")
            or coverage_raw.get("show_missing_lines"),
        ),
        coveragerc=str(coverage_raw.get("coveragerc", CoverageConfig.coveragerc)),
    )

    storage_raw = _section(raw, "storage")
    bucket = _first_env("COVDIFF_GCS_BUCKET", "INPUT_GCP_BUCKET") or str(
        storage_raw.get("bucket", "")
    )
    storage = StorageConfig(
        backend=str(
            _first_env("COVDIFF_STORAGE_BACKEND")
            or storage_raw.get("backend", "gcs" if bucket else "local")
        ),
        root=str(_first_env("COVDIFF_STORAGE_ROOT") or storage_raw.get("root", ".")),
        bucket=bucket,
        token=_first_env("COVDIFF_GCS_TOKEN") or str(storage_raw.get("token", "")),
    )

    github_raw = _section(raw, "github")
    github = GitHubConfig(
        token=_first_env("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN") or str(github_raw.get("token", "")),
    )

    logger.debug("Loaded configuration from %s", root_path)
    return CovdiffConfig(coverage=coverage, storage=storage, github=github, raw=raw)


def validate_config(config: CovdiffConfig) -> list[str]:
    """Validate configuration values.

    Returns:
        List of error messages (empty if valid).
    """
    errors: list[str] = []

    threshold = config.coverage.min_coverage
    if not 0.0 <= threshold <= _MAX_PERCENT:
        errors.append(f"coverage.min_coverage must be between 0 and 100 (got: {threshold})")

    if config.storage.backend not in _STORAGE_BACKENDS:
        errors.append(
            f"storage.backend must be one of: {', '.join(_STORAGE_BACKENDS)} "
            f"(got: {config.storage.backend})"
        )
    elif config.storage.backend == "gcs" and not config.storage.bucket:
        errors.append("storage.bucket is required for the gcs backend")

    return errors
