"""Shared helpers for building Cobertura documents in tests."""

from __future__ import annotations

from collections.abc import Mapping

import pytest

# 31 instrumented lines; 7-10, 20-24 and 29 are never executed on head
SCENARIO_MISSING = (7, 8, 9, 10, 20, 21, 22, 23, 24, 29)


def _lines_xml(lines: Mapping[int, int]) -> str:
    return "\n".join(
        f'          <line number="{number}" hits="{hits}"/>' for number, hits in lines.items()
    )


def make_cobertura(
    files: Mapping[str, Mapping[int, int]],
    *,
    flat: bool = False,
    line_rate: float | None = None,
) -> str:
    """Build a Cobertura XML document from ``{filename: {line: hits}}``.

    ``flat`` selects the coverage.py-style layout without ``<packages>``.
    """
    classes = "\n".join(
        f'        <class name="{name}" filename="{name}">\n'
        f"          <lines>\n{_lines_xml(lines)}\n          </lines>\n"
        f"        </class>"
        for name, lines in files.items()
    )
    rate = f' line-rate="{line_rate}"' if line_rate is not None else ""
    if flat:
        body = f"  <classes>\n{classes}\n  </classes>"
    else:
        body = (
            '  <packages>\n    <package name="app">\n      <classes>\n'
            f"{classes}\n      </classes>\n    </package>\n  </packages>"
        )
    return f'<?xml version="1.0" ?>\n<coverage version="7.4"{rate}>\n{body}\n</coverage>\n'


@pytest.fixture
def fully_covered_xml() -> str:
    """Base branch: one file, 31 lines, all executed."""
    return make_cobertura({"app/main.py": dict.fromkeys(range(1, 32), 1)})


@pytest.fixture
def partially_covered_xml() -> str:
    """Head branch: the same file with ten lines never executed."""
    lines = {number: 0 if number in SCENARIO_MISSING else 1 for number in range(1, 32)}
    return make_cobertura({"app/main.py": lines})
