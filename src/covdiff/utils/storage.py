"""Storage backends holding per-branch coverage reports.

Reports are laid out as ``<repository>/<branch>/<YYYYMMDD_HHMMSS>/coverage.xml``;
the most recent run is the lexicographically largest timestamp segment.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from covdiff.errors import ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

COVERAGE_FILENAME = "coverage.xml"

GCS_API_BASE = "https://storage.googleapis.com/storage/v1"
_REQUEST_TIMEOUT = 30
_HTTP_NOT_FOUND = 404

_TIMESTAMP_PATTERN = r"\d{8}_\d{6}"


@dataclass
class CoverageNotFound:
    """A branch whose coverage report could not be located."""

    branch: str
    """Branch that was looked up."""

    reason: str
    """Human-readable explanation."""


class CoverageStore(ABC):
    """Read-only access to stored coverage reports."""

    @abstractmethod
    def list_objects(self, prefix: str) -> list[str]:
        """Return object names starting with *prefix*.

        Raises:
            StorageError: If listing fails.
        """

    @abstractmethod
    def read_bytes(self, name: str) -> bytes:
        """Return the raw content of object *name*.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageError: If reading fails for another reason.
        """


class LocalCoverageStore(CoverageStore):
    """Coverage reports stored as files below a directory."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def list_objects(self, prefix: str) -> list[str]:
        base = self._root / prefix
        if not base.is_dir():
            return []
        try:
            return sorted(
                path.relative_to(self._root).as_posix()
                for path in base.rglob("*")
                if path.is_file()
            )
        except OSError as exc:
            raise StorageError(f"Failed to list files in {prefix}: {exc}") from exc

    def read_bytes(self, name: str) -> bytes:
        path = self._root / name
        if not path.is_file():
            raise ObjectNotFoundError(f"No such file: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc


class GCSCoverageStore(CoverageStore):
    """Coverage reports in a Google Cloud Storage bucket (JSON API)."""

    def __init__(self, bucket: str, token: str | None = None) -> None:
        """Initialize the store.

        Args:
            bucket: Bucket name.
            token: OAuth2 access token; anonymous access when omitted.
        """
        self._bucket = bucket
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    def list_objects(self, prefix: str) -> list[str]:
        url = f"{GCS_API_BASE}/b/{quote(self._bucket, safe='')}/o"
        params: dict[str, Any] = {"prefix": prefix, "fields": "items(name),nextPageToken"}
        names: list[str] = []
        while True:
            try:
                response = requests.get(
                    url, params=params, headers=self._headers, timeout=_REQUEST_TIMEOUT
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as exc:
                raise StorageError(f"Failed to list files in {prefix}: {exc}") from exc

            names.extend(item["name"] for item in payload.get("items", []))
            token = payload.get("nextPageToken")
            if not token:
                return names
            params["pageToken"] = token

    def read_bytes(self, name: str) -> bytes:
        url = f"{GCS_API_BASE}/b/{quote(self._bucket, safe='')}/o/{quote(name, safe='')}"
        try:
            response = requests.get(
                url, params={"alt": "media"}, headers=self._headers, timeout=_REQUEST_TIMEOUT
            )
        except requests.RequestException as exc:
            raise StorageError(f"Failed to download file {name}: {exc}") from exc

        if response.status_code == _HTTP_NOT_FOUND:
            raise ObjectNotFoundError(f"No such object: gs://{self._bucket}/{name}")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise StorageError(f"Failed to download file {name}: {exc}") from exc
        return response.content


def find_latest_timestamp(store: CoverageStore, prefix: str) -> str | None:
    """Return the newest ``YYYYMMDD_HHMMSS`` folder directly below *prefix*."""
    pattern = re.compile(rf"^{re.escape(prefix)}/({_TIMESTAMP_PATTERN})/")
    timestamps = {
        match.group(1)
        for name in store.list_objects(prefix + "/")
        if (match := pattern.match(name))
    }
    if not timestamps:
        return None
    return max(timestamps)


def fetch_latest_coverage(
    store: CoverageStore, repository: str, branch: str
) -> bytes | CoverageNotFound:
    """Download the most recent coverage report of *branch*.

    Args:
        store: Storage backend.
        repository: Repository name; lowercased to form the prefix.
        branch: Branch name.

    Returns:
        The raw document bytes, or ``CoverageNotFound`` when the branch has no
        report.

    Raises:
        StorageError: If the backend fails for any other reason.
    """
    prefix = f"{repository.lower()}/{branch}"
    timestamp = find_latest_timestamp(store, prefix)
    if timestamp is None:
        logger.warning("No coverage reports found under %s/", prefix)
        return CoverageNotFound(branch=branch, reason=f"no coverage reports under {prefix}/")

    logger.info("Found latest %s coverage at timestamp: %s", branch, timestamp)
    name = f"{prefix}/{timestamp}/{COVERAGE_FILENAME}"
    try:
        return store.read_bytes(name)
    except ObjectNotFoundError:
        logger.warning("Coverage report %s does not exist", name)
        return CoverageNotFound(branch=branch, reason=f"{name} does not exist")
