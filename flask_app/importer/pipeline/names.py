"""
Free-text name parsing for family/student spreadsheet rows.

Student names arrive as ``"Last, First"`` or ``"First Last"``; parent names as
``"Last, First and First"``, ``"First and First"`` or a single first name.
Nothing in this module raises on bad input: unparsable values yield ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_EVENT_HANDLER = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_DATA_HTML = re.compile(r"data:text/html", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_PARENT_SEPARATOR = re.compile(r"\s+and\s+", re.IGNORECASE)
_DANGLING_AND = re.compile(r"^(?:and\b\s*)+|(?:\s*\band)+$", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedName:
    first_name: str
    last_name: str

    @property
    def display(self) -> str:
        """``"Last, First"`` form used for legacy duplicate-decision keys."""
        return f"{self.last_name}, {self.first_name}"

    def to_dict(self) -> dict:
        return {"firstName": self.first_name, "lastName": self.last_name}


def sanitize_text(value: object | None) -> str:
    """Strip markup and script fragments, then trim and collapse whitespace."""

    if not isinstance(value, str) or not value:
        return ""
    text = _SCRIPT_BLOCK.sub("", value)
    text = _HTML_TAG.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    text = _JS_PROTOCOL.sub("", text)
    text = _DATA_HTML.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def coerce_text(value: object | None) -> str:
    """Like ``sanitize_text`` but keeps numeric cells (``2`` -> ``"2"``)."""

    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return sanitize_text(value)


def _split_comma_name(segment: str) -> tuple[str, str]:
    parts = [part.strip() for part in segment.split(",")]
    last = parts[0] if parts else ""
    first = parts[1] if len(parts) > 1 else ""
    return last, first


def parse_student_name(raw: object | None) -> ParsedName | None:
    text = sanitize_text(raw)
    if not text:
        return None

    if "," in text:
        last, first = _split_comma_name(text)
    else:
        tokens = text.split(" ")
        if len(tokens) < 2:
            return None
        first, last = tokens[0], " ".join(tokens[1:])

    if not first or not last:
        return None
    return ParsedName(first_name=first, last_name=last)


def parse_parent_names(raw: object | None) -> list[ParsedName] | None:
    """
    Parse a household's parent names.

    The first segment may carry the shared surname (``"Cohen, Moshe"``); later
    segments are bare first names that inherit it. A later segment with its own
    comma is read as a separate ``"Last, First"``. Without any comma the surname
    stays blank so the caller can fill it from the family.
    """

    text = sanitize_text(raw)
    if not text:
        return None

    segments = [_DANGLING_AND.sub("", segment).strip() for segment in _PARENT_SEPARATOR.split(text)]
    surname = ""
    parents: list[ParsedName] = []

    head = segments[0]
    if "," in head:
        surname, first = _split_comma_name(head)
        if first:
            parents.append(ParsedName(first_name=first, last_name=surname))
    elif head.strip():
        parents.append(ParsedName(first_name=head.strip(), last_name=""))

    for segment in segments[1:]:
        if "," in segment:
            last, first = _split_comma_name(segment)
            if first:
                parents.append(ParsedName(first_name=first, last_name=last or surname))
            continue
        first = segment.strip()
        if first:
            parents.append(ParsedName(first_name=first, last_name=surname))

    return parents or None


__all__ = [
    "ParsedName",
    "sanitize_text",
    "coerce_text",
    "parse_student_name",
    "parse_parent_names",
]
