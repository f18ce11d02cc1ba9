"""Locate and parse JSON embedded in free-form model replies.

Models wrap their JSON in prose ("Sure! here you go: {...}"), markdown
fences, or trailing commentary.  :func:`extract_json` scans the balanced
``{...}`` (or ``[...]``) span opening at each opener in turn, skipping braces
that sit inside string literals, and returns the first span that parses.

The outcome is always a :class:`ParseResult` with an explicit status:

* ``OK``         -- a span parsed; ``value`` holds the decoded JSON.
* ``MALFORMED``  -- at least one opener was found but nothing parsed;
                    ``raw`` holds the first candidate text.
* ``NOT_FOUND``  -- the reply contains no opener at all.

Callers decide explicitly what a non-OK status means for them: raise with
:meth:`ParseResult.unwrap`, or keep the raw text with
:meth:`ParseResult.as_payload`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from technodog.utils.errors import ExtractionError


class JsonKind(str, Enum):
    """Which top-level JSON container to look for."""

    OBJECT = "object"
    ARRAY = "array"


class ParseStatus(str, Enum):
    OK = "ok"
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"


_BRACKETS = {
    JsonKind.OBJECT: ("{", "}"),
    JsonKind.ARRAY: ("[", "]"),
}


@dataclass(frozen=True)
class ParseResult:
    """Outcome of :func:`extract_json`."""

    status: ParseStatus
    value: Any = None
    raw: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ParseStatus.OK

    def unwrap(self, provider_name: str | None = None) -> Any:
        """Return the parsed value or raise :class:`ExtractionError`."""
        if self.status is ParseStatus.OK:
            return self.value
        raise ExtractionError(self.status.value, raw=self.raw, provider_name=provider_name)

    def as_payload(self) -> dict[str, Any]:
        """Return an explicit ``{parse_status, value | raw}`` mapping."""
        if self.status is ParseStatus.OK:
            return {"parse_status": self.status.value, "value": self.value}
        return {"parse_status": self.status.value, "raw": self.raw}


def _span_from(text: str, start: int, opener: str, closer: str) -> str:
    """Return the balanced span opening at ``start``.

    An opener that is never closed yields the remainder of the text so a
    truncated reply is reported as malformed, not missing.
    """
    depth = 0
    in_string = False
    escaped = False

    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]

    return text[start:]


def _candidate_spans(text: str, opener: str, closer: str) -> Iterator[str]:
    """Yield the span opening at every opener, in order of appearance.

    Each opener starts its own scan, so a stray brace or quote in the prose
    before the JSON cannot swallow the object that follows it.
    """
    start = text.find(opener)
    while start >= 0:
        yield _span_from(text, start, opener, closer)
        start = text.find(opener, start + 1)


def extract_json(text: str | None, kind: JsonKind = JsonKind.OBJECT) -> ParseResult:
    """Find the first parseable JSON object (or array) inside ``text``.

    Parameters
    ----------
    text:
        The model reply.  ``None`` and empty strings are ``NOT_FOUND``.
    kind:
        Whether to look for an object or an array at the top level.

    Returns
    -------
    ParseResult
        ``OK`` with the decoded value, ``MALFORMED`` with the first
        candidate span as ``raw``, or ``NOT_FOUND``.
    """
    if not text:
        return ParseResult(status=ParseStatus.NOT_FOUND)

    opener, closer = _BRACKETS[kind]
    first: str | None = None
    for span in _candidate_spans(text, opener, closer):
        if first is None:
            first = span
        try:
            value = json.loads(span)
        except json.JSONDecodeError:
            continue
        return ParseResult(status=ParseStatus.OK, value=value, raw=span)

    if first is None:
        return ParseResult(status=ParseStatus.NOT_FOUND)
    return ParseResult(status=ParseStatus.MALFORMED, raw=first)


def extract_object(text: str | None) -> ParseResult:
    return extract_json(text, JsonKind.OBJECT)


def extract_array(text: str | None) -> ParseResult:
    return extract_json(text, JsonKind.ARRAY)
