"""Tests for omit configuration and matching (agents/analyzers/omit.py)."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from covdiff.agents.analyzers.diff import find_uncovered_changed_files
from covdiff.agents.analyzers.omit import (
    OmitConfig,
    OmitFilter,
    load_omit_config,
    match_pattern,
    normalize_pattern,
    parse_omit_patterns,
)
from covdiff.models.pull_request import ChangedFile


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


# ── Loading ──────────────────────────────────────────────────────


class TestLoadOmitConfig:
    def test_multiline_run_section(self, tmp_path: Path) -> None:
        rc = _write(
            tmp_path / ".coveragerc",
            "[run]\nsource = app\nomit =\n    */migrations/*\n    tests/*\n    app/settings.py\n",
        )
        assert load_omit_config(rc).patterns == ["*/migrations/*", "tests/*", "app/settings.py"]

    def test_comma_separated(self, tmp_path: Path) -> None:
        rc = _write(tmp_path / ".coveragerc", "[run]\nomit = a/*, b.py ,c/**\n")
        assert load_omit_config(rc).patterns == ["a/*", "b.py", "c/**"]

    def test_setup_cfg_section(self, tmp_path: Path) -> None:
        cfg = _write(tmp_path / "setup.cfg", "[coverage:run]\nomit = docs/*\n")
        assert load_omit_config(cfg).patterns == ["docs/*"]

    def test_percent_sign_is_literal(self, tmp_path: Path) -> None:
        rc = _write(tmp_path / ".coveragerc", "[run]\nomit = 100%/*\n")
        assert load_omit_config(rc).patterns == ["100%/*"]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_omit_config(tmp_path / ".coveragerc") == OmitConfig()

    def test_no_run_section(self, tmp_path: Path) -> None:
        rc = _write(tmp_path / ".coveragerc", "[report]\nshow_missing = true\n")
        assert load_omit_config(rc).patterns == []

    def test_unparsable_file_warns(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        rc = _write(tmp_path / ".coveragerc", "omit = no section header\n")
        with caplog.at_level(logging.WARNING):
            config = load_omit_config(rc)

        assert config.patterns == []
        assert "Could not parse" in caplog.text

    def test_parse_omit_patterns_drops_blanks(self) -> None:
        assert parse_omit_patterns("\n a ,, b\n\n") == ["a", "b"]


# ── Pattern handling ─────────────────────────────────────────────


class TestPatterns:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("*/migrations/*", "**/migrations/**"),
            ("./tests/*", "tests/**"),
            ("app/settings.py", "app/settings.py"),
            ("docs/**/*", "docs/**/*"),
        ],
    )
    def test_normalize_pattern(self, raw: str, expected: str) -> None:
        assert normalize_pattern(raw) == expected

    def test_star_stays_within_segment(self) -> None:
        assert match_pattern("app/models.py", "app/*.py")
        assert not match_pattern("app/sub/models.py", "app/*.py")

    def test_double_star_slash_matches_zero_or_more_dirs(self) -> None:
        assert match_pattern("conftest.py", "**/conftest.py")
        assert match_pattern("a/b/conftest.py", "**/conftest.py")
        assert not match_pattern("a/b/conftest.pyc", "**/conftest.py")

    def test_trailing_double_star(self) -> None:
        assert match_pattern("build", "build/**")
        assert match_pattern("build/lib/x.py", "build/**")
        assert not match_pattern("builder/x.py", "build/**")

    def test_double_star_in_the_middle(self) -> None:
        assert match_pattern("docs/x.py", "docs/**/*.py")
        assert match_pattern("docs/a/b/x.py", "docs/**/*.py")
        assert not match_pattern("other/docs/x.py", "docs/**/*.py")

    def test_character_class(self) -> None:
        assert match_pattern("v1.py", "v[0-9].py")
        assert not match_pattern("vx.py", "v[0-9].py")

    def test_question_mark_is_one_character(self) -> None:
        assert match_pattern("app/a1.py", "app/a?.py")
        assert not match_pattern("app/a/1.py", "app/a??.py")


# ── Filter ───────────────────────────────────────────────────────


class TestOmitFilter:
    def test_empty_filter_keeps_everything(self) -> None:
        assert not OmitFilter().is_omitted("app/main.py")

    def test_matches_anywhere_in_tree(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["*/migrations/*"]))

        assert omit.is_omitted("app/migrations/0001_initial.py")
        assert omit.is_omitted("src/app/migrations/0001_initial.py")
        assert not omit.is_omitted("app/models.py")

    def test_pattern_not_anchored_at_root(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["tests/*"]))

        assert omit.is_omitted("tests/test_app.py")
        assert omit.is_omitted("backend/tests/test_app.py")

    def test_prefixed_pattern_matches_repository_path(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["src/app/settings.py"]))

        assert omit.is_omitted("src/app/settings.py")
        assert not omit.is_omitted("src/app/models.py")

    def test_source_root_in_pattern_is_kept(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["src/*.py"]))

        assert omit.is_omitted("src/setup_hooks.py")
        assert not omit.is_omitted("tests/test_a.py")
        assert not omit.is_omitted("lib/other/deep.py")

    def test_directory_pattern_does_not_omit_everything(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["src/*"]))

        assert omit.is_omitted("src/app/main.py")
        assert not omit.is_omitted("docs_tool/x.py")

    def test_uncovered_files_survive_unrelated_patterns(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["src/*.py"]))
        changed = [ChangedFile("tests/test_a.py"), ChangedFile("lib/other/deep.py")]

        uncovered = find_uncovered_changed_files(changed, [], omit)

        assert uncovered == ["tests/test_a.py", "lib/other/deep.py"]

    def test_unprefixed_pattern_matches_prefixed_path(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["app/settings.py"]))
        assert omit.is_omitted("src/app/settings.py")

    def test_patterns_property(self) -> None:
        omit = OmitFilter(OmitConfig(patterns=["*/migrations/*", "  "]))
        assert omit.patterns == ["**/migrations/**"]
