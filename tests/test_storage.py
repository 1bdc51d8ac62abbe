"""Tests for coverage storage backends (utils/storage.py)."""

from __future__ import annotations

from pathlib import Path

import pytest
import responses
from responses import matchers

from covdiff.errors import ObjectNotFoundError, StorageError
from covdiff.utils.storage import (
    GCS_API_BASE,
    CoverageNotFound,
    GCSCoverageStore,
    LocalCoverageStore,
    fetch_latest_coverage,
    find_latest_timestamp,
)

_LIST_URL = f"{GCS_API_BASE}/b/coverage-bucket/o"


def _write_report(root: Path, rel: str, content: str = "<coverage/>") -> Path:
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


# ── Local store ──────────────────────────────────────────────────


class TestLocalCoverageStore:
    def test_list_objects(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "myrepo/main/20240101_120000/coverage.xml")
        _write_report(tmp_path, "myrepo/main/20240102_090000/coverage.xml")
        _write_report(tmp_path, "myrepo/dev/20240103_000000/coverage.xml")

        names = LocalCoverageStore(tmp_path).list_objects("myrepo/main/")

        assert names == [
            "myrepo/main/20240101_120000/coverage.xml",
            "myrepo/main/20240102_090000/coverage.xml",
        ]

    def test_list_missing_prefix(self, tmp_path: Path) -> None:
        assert LocalCoverageStore(tmp_path).list_objects("nothing/here/") == []

    def test_read_bytes(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "r/b/t/coverage.xml", "<coverage version='1'/>")
        assert LocalCoverageStore(tmp_path).read_bytes("r/b/t/coverage.xml") == (
            b"<coverage version='1'/>"
        )

    def test_read_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ObjectNotFoundError):
            LocalCoverageStore(tmp_path).read_bytes("r/b/t/coverage.xml")


# ── Timestamp resolution ─────────────────────────────────────────


class TestFindLatestTimestamp:
    def test_picks_newest(self, tmp_path: Path) -> None:
        for stamp in ("20231231_235959", "20240215_080000", "20240102_090000"):
            _write_report(tmp_path, f"repo/main/{stamp}/coverage.xml")
        _write_report(tmp_path, "repo/main/20240215_080000/htmlcov/index.html")

        assert find_latest_timestamp(LocalCoverageStore(tmp_path), "repo/main") == (
            "20240215_080000"
        )

    def test_ignores_non_timestamp_folders(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "repo/main/latest/coverage.xml")
        _write_report(tmp_path, "repo/main/2024_01/coverage.xml")

        assert find_latest_timestamp(LocalCoverageStore(tmp_path), "repo/main") is None

    def test_does_not_match_sibling_branch(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "repo/main-old/20240101_000000/coverage.xml")

        assert find_latest_timestamp(LocalCoverageStore(tmp_path), "repo/main") is None


# ── Fetching ─────────────────────────────────────────────────────


class TestFetchLatestCoverage:
    def test_downloads_latest(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "myrepo/main/20240101_000000/coverage.xml", "old")
        _write_report(tmp_path, "myrepo/main/20240301_000000/coverage.xml", "new")

        result = fetch_latest_coverage(LocalCoverageStore(tmp_path), "MyRepo", "main")

        assert result == b"new"

    def test_no_reports(self, tmp_path: Path) -> None:
        result = fetch_latest_coverage(LocalCoverageStore(tmp_path), "myrepo", "feature")

        assert isinstance(result, CoverageNotFound)
        assert result.branch == "feature"

    def test_timestamp_without_coverage_file(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "myrepo/main/20240101_000000/junit.xml")

        result = fetch_latest_coverage(LocalCoverageStore(tmp_path), "myrepo", "main")

        assert isinstance(result, CoverageNotFound)
        assert "does not exist" in result.reason

    def test_branch_with_slash(self, tmp_path: Path) -> None:
        _write_report(tmp_path, "myrepo/feature/login/20240101_000000/coverage.xml", "x")

        result = fetch_latest_coverage(LocalCoverageStore(tmp_path), "myrepo", "feature/login")

        assert result == b"x"


# ── GCS store ────────────────────────────────────────────────────


class TestGCSCoverageStore:
    @responses.activate
    def test_list_follows_page_tokens(self) -> None:
        responses.add(
            responses.GET,
            _LIST_URL,
            json={
                "items": [{"name": "repo/main/20240101_000000/coverage.xml"}],
                "nextPageToken": "page-2",
            },
            match=[
                matchers.header_matcher({"Authorization": "Bearer gcs-token"}),
                matchers.query_param_matcher(
                    {"prefix": "repo/main/", "fields": "items(name),nextPageToken"}
                ),
            ],
        )
        responses.add(
            responses.GET,
            _LIST_URL,
            json={"items": [{"name": "repo/main/20240202_000000/coverage.xml"}]},
            match=[
                matchers.query_param_matcher(
                    {
                        "prefix": "repo/main/",
                        "fields": "items(name),nextPageToken",
                        "pageToken": "page-2",
                    }
                )
            ],
        )

        store = GCSCoverageStore("coverage-bucket", token="gcs-token")  # noqa: S106

        assert store.list_objects("repo/main/") == [
            "repo/main/20240101_000000/coverage.xml",
            "repo/main/20240202_000000/coverage.xml",
        ]

    @responses.activate
    def test_list_empty_bucket(self) -> None:
        responses.add(responses.GET, _LIST_URL, json={})

        assert GCSCoverageStore("coverage-bucket").list_objects("repo/main/") == []

    @responses.activate
    def test_list_failure(self) -> None:
        responses.add(responses.GET, _LIST_URL, json={"error": "denied"}, status=403)

        with pytest.raises(StorageError, match="Failed to list"):
            GCSCoverageStore("coverage-bucket").list_objects("repo/main/")

    @responses.activate
    def test_download(self) -> None:
        url = f"{_LIST_URL}/repo%2Fmain%2F20240101_000000%2Fcoverage.xml"
        responses.add(
            responses.GET,
            url,
            body=b"<coverage/>",
            match=[matchers.query_param_matcher({"alt": "media"})],
        )

        content = GCSCoverageStore("coverage-bucket").read_bytes(
            "repo/main/20240101_000000/coverage.xml"
        )

        assert content == b"<coverage/>"

    @responses.activate
    def test_download_missing_object(self) -> None:
        url = f"{_LIST_URL}/repo%2Fmain%2Fx%2Fcoverage.xml"
        responses.add(responses.GET, url, status=404)

        with pytest.raises(ObjectNotFoundError):
            GCSCoverageStore("coverage-bucket").read_bytes("repo/main/x/coverage.xml")

    @responses.activate
    def test_download_server_error(self) -> None:
        url = f"{_LIST_URL}/repo%2Fmain%2Fx%2Fcoverage.xml"
        responses.add(responses.GET, url, status=500)

        with pytest.raises(StorageError, match="Failed to download"):
            GCSCoverageStore("coverage-bucket").read_bytes("repo/main/x/coverage.xml")

    @responses.activate
    def test_fetch_latest_through_gcs(self) -> None:
        responses.add(
            responses.GET,
            _LIST_URL,
            json={
                "items": [
                    {"name": "repo/main/20240101_000000/coverage.xml"},
                    {"name": "repo/main/20240105_000000/coverage.xml"},
                ]
            },
        )
        responses.add(
            responses.GET,
            f"{_LIST_URL}/repo%2Fmain%2F20240105_000000%2Fcoverage.xml",
            body=b"<coverage/>",
        )

        result = fetch_latest_coverage(GCSCoverageStore("coverage-bucket"), "Repo", "main")

        assert result == b"<coverage/>"
