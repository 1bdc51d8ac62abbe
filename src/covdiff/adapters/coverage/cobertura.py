"""Cobertura XML parser for both report dialects.

Cobertura-style reports share a ``<coverage>`` root carrying ``line-rate`` and
``branch-rate`` attributes, but producers disagree on nesting:

- JVM and JavaScript tooling (Cobertura, Istanbul) wrap classes in
  ``<packages><package><classes>``.
- coverage.py-style reports put ``<classes>`` directly under the root.

Both are flattened into one ``CoverageDocument`` here, with the dialect
recorded once on the document.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from covdiff.adapters.coverage.base import CoverageDocument, Dialect, FileCoverage, LineEntry
from covdiff.errors import CoverageParseError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

logger = logging.getLogger(__name__)

_ROOT_TAG = "coverage"

# Matches the "N/M" part of condition-coverage="50% (1/2)"
_CONDITION_RE = re.compile(r"(\d+)\s*/\s*(\d+)")


def _int_attr(element: XmlElement, key: str, default: int = 0) -> int:
    value = element.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r on <%s>", key, value, element.tag)
        return default


def _float_attr(element: XmlElement, key: str) -> float | None:
    value = element.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r on <%s>", key, value, element.tag)
        return None


def _required_int(element: XmlElement, key: str, filename: str) -> int:
    """Read a mandatory integer attribute of a ``<line>`` element."""
    value = element.get(key)
    if value is None:
        raise CoverageParseError(f"<line> in {filename} is missing the '{key}' attribute")
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError as exc:
        raise CoverageParseError(
            f"<line> in {filename} has non-numeric {key}={value!r}"
        ) from exc
    if not number.is_integer():
        raise CoverageParseError(f"<line> in {filename} has non-integer {key}={value!r}")
    return int(number)


def _parse_condition_coverage(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    match = _CONDITION_RE.search(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def detect_dialect(root: XmlElement) -> Dialect:
    """Return the nesting convention used below *root*."""
    if root.find("packages") is not None:
        return Dialect.PACKAGED
    if root.find("classes") is not None:
        return Dialect.FLAT
    return Dialect.UNKNOWN


def _iter_classes(root: XmlElement, dialect: Dialect) -> Iterator[XmlElement]:
    if dialect is Dialect.PACKAGED:
        packages = root.find("packages")
        if packages is None:
            return
        for package in packages.findall("package"):
            classes = package.find("classes")
            if classes is not None:
                yield from classes.findall("class")
    elif dialect is Dialect.FLAT:
        classes = root.find("classes")
        if classes is not None:
            yield from classes.findall("class")


def _parse_lines(lines_elem: XmlElement, filename: str) -> FileCoverage:
    file_cov = FileCoverage(path=filename)
    entries: list[LineEntry] = []

    for line_elem in lines_elem.findall("line"):
        number = _required_int(line_elem, "number", filename)
        hits = _required_int(line_elem, "hits", filename)
        if number <= 0:
            raise CoverageParseError(f"<line> in {filename} has invalid number={number}")
        if hits < 0:
            raise CoverageParseError(f"<line> in {filename} has negative hits={hits}")

        is_branch = line_elem.get("branch", "false").lower() == "true"
        condition = (
            _parse_condition_coverage(line_elem.get("condition-coverage")) if is_branch else None
        )
        entries.append(
            LineEntry(
                number=number,
                hits=hits,
                is_branch=is_branch,
                condition_coverage=condition,
            )
        )

    # merge() collapses duplicate line numbers and recounts branch totals
    file_cov.merge(FileCoverage(path=filename, lines=entries))
    return file_cov


def parse_coverage_xml(source: str | bytes) -> CoverageDocument:
    """Parse a Cobertura XML document into a ``CoverageDocument``.

    Args:
        source: Raw XML document. Bytes are decoded by the XML parser using
            the encoding declared in the prolog (UTF-8 when absent).

    Returns:
        The parsed document. A document matching neither dialect yields an
        ``UNKNOWN`` document with no files.

    Raises:
        CoverageParseError: If the XML is malformed, its declared encoding is
            unknown or does not match its bytes, or a ``<line>`` carries a
            missing or non-numeric ``number``/``hits`` attribute.
    """
    try:
        root = ElementTree.fromstring(source)
    except (DefusedParseError, DefusedXmlException) as exc:
        raise CoverageParseError(f"Malformed coverage XML: {exc}") from exc
    except (LookupError, ValueError) as exc:
        raise CoverageParseError(f"Cannot decode coverage XML: {exc}") from exc

    if root.tag != _ROOT_TAG:
        raise CoverageParseError(f"Coverage XML root is <{root.tag}>, expected <{_ROOT_TAG}>")

    dialect = detect_dialect(root)
    document = CoverageDocument(
        dialect=dialect,
        line_rate=_float_attr(root, "line-rate"),
        branches_valid=_int_attr(root, "branches-valid"),
        branches_covered=_int_attr(root, "branches-covered"),
    )

    if dialect is Dialect.UNKNOWN:
        logger.warning("No coverage data found in expected format (no <packages> or <classes>)")
        return document

    files: dict[str, FileCoverage] = {}
    for class_elem in _iter_classes(root, dialect):
        filename = class_elem.get("filename", "")
        lines_elem = class_elem.find("lines")
        if not filename or lines_elem is None:
            logger.debug("Skipping class %r without filename or lines", class_elem.get("name"))
            continue

        file_cov = _parse_lines(lines_elem, filename)
        if filename in files:
            # Inner classes of one source file are reported as separate <class> elements
            files[filename].merge(file_cov)
        else:
            files[filename] = file_cov

    document.files = list(files.values())
    logger.debug("Parsed %s coverage document with %d files", dialect.value, len(document.files))
    return document


def parse_coverage_file(coverage_file: Path) -> CoverageDocument:
    """Read and parse a Cobertura XML report from disk.

    Raises:
        CoverageParseError: If the file cannot be read or parsed.
    """
    try:
        content = coverage_file.read_bytes()
    except OSError as exc:
        raise CoverageParseError(f"Failed to read coverage file {coverage_file}: {exc}") from exc
    return parse_coverage_xml(content)
