"""Flatten contract source payloads returned by explorers into plain text.

Block explorers return verified sources in one of three shapes:

* ``{{ ... }}``: standard-JSON-input wrapped in an extra pair of braces.
* ``{ ... }``: standard-JSON-input (or a bare ``{path: {content}}`` map).
* anything else: already flat source text.

Each shape is described by a matcher (predicate plus extractor). Matchers are
tried in order and the first match wins. A bundle that cannot be interpreted
degrades to the raw text with a warning so downstream analysis still gets
something to work on.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple

from ..logging import get_logger

FILE_SEPARATOR = "\n\n// ---- Next File ----\n\n"

logger = get_logger("sources.normalizer")


class EmptySourceError(RuntimeError):
    """Raised when no usable source text remains after normalization."""


class MalformedBundleError(ValueError):
    """Signals that a JSON-looking payload could not be interpreted as a bundle."""


class SourceShape(str, Enum):
    DOUBLE_BRACE = "double_brace"
    SINGLE_BRACE = "single_brace"
    FLAT = "flat"


@dataclass(frozen=True)
class SourceFileEntry:
    """A single file inside a multi-file bundle."""

    content: str
    path: Optional[str] = None


@dataclass(frozen=True)
class _ShapeMatcher:
    shape: SourceShape
    matches: Callable[[str], bool]
    extract: Callable[[str], List[SourceFileEntry]]


def _is_double_brace(text: str) -> bool:
    return text.startswith("{{") and text.endswith("}}")


def _is_single_brace(text: str) -> bool:
    return text.startswith("{") and text.endswith("}")


def _extract_double_brace(text: str) -> List[SourceFileEntry]:
    return _entries_from_json(text[1:-1], require_file_map=False)


def _extract_single_brace(text: str) -> List[SourceFileEntry]:
    # A bare object is only a bundle if it looks like one; anything else is source text.
    return _entries_from_json(text, require_file_map=True)


def _entries_from_json(text: str, *, require_file_map: bool) -> List[SourceFileEntry]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedBundleError(f"invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedBundleError("bundle root is not an object")

    if "sources" in parsed:
        sources = parsed["sources"]
        if not isinstance(sources, dict):
            raise MalformedBundleError("'sources' is not an object")
        return _entries_from_mapping(sources)

    # Legacy explorer output: the file map itself sits at the root.
    entries = _entries_from_mapping(parsed)
    if require_file_map and not entries:
        raise MalformedBundleError("object is neither a sources bundle nor a file map")
    return entries


def _entries_from_mapping(mapping: Mapping[str, Any]) -> List[SourceFileEntry]:
    entries: List[SourceFileEntry] = []
    for path, record in mapping.items():
        if not isinstance(record, dict):
            continue
        content = record.get("content")
        if not isinstance(content, str):
            continue
        entries.append(SourceFileEntry(content=content, path=str(path)))
    return entries


_MATCHERS: Tuple[_ShapeMatcher, ...] = (
    _ShapeMatcher(SourceShape.DOUBLE_BRACE, _is_double_brace, _extract_double_brace),
    _ShapeMatcher(SourceShape.SINGLE_BRACE, _is_single_brace, _extract_single_brace),
)


def detect_shape(raw: str) -> SourceShape:
    """Return the shape tag of ``raw`` based on its brace wrapping."""
    text = raw.strip()
    for matcher in _MATCHERS:
        if matcher.matches(text):
            return matcher.shape
    return SourceShape.FLAT


def split_bundle(raw: str, *, context: str | None = None) -> List[SourceFileEntry]:
    """Return the individual files of ``raw``.

    Flat text and bundles that cannot be interpreted come back as a single
    entry without a path. A bundle that parses but holds no file content
    yields an empty list.
    """
    text = raw.strip()
    for matcher in _MATCHERS:
        if not matcher.matches(text):
            continue
        try:
            return matcher.extract(text)
        except MalformedBundleError as exc:
            _warn_malformed(matcher.shape, exc, context)
            break
    return [SourceFileEntry(content=text)]


def normalize(raw: str, *, context: str | None = None) -> str:
    """Flatten ``raw`` into a single source string.

    Raises ``EmptySourceError`` when the flattened text is blank.
    """
    entries = split_bundle(raw, context=context)
    flat = FILE_SEPARATOR.join(entry.content for entry in entries).strip()
    if not flat:
        target = f" for {context}" if context else ""
        raise EmptySourceError(f"Contract source is empty{target}.")
    return flat


def _warn_malformed(
    shape: SourceShape, exc: MalformedBundleError, context: str | None
) -> None:
    target = f" for {context}" if context else ""
    logger.warning(
        "Failed to parse %s source bundle%s, using raw source. Error: %s",
        shape.value.replace("_", "-"),
        target,
        exc,
    )


__all__ = [
    "EmptySourceError",
    "FILE_SEPARATOR",
    "MalformedBundleError",
    "SourceFileEntry",
    "SourceShape",
    "detect_shape",
    "normalize",
    "split_bundle",
]
