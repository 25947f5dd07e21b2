"""Helpers for reading individual spreadsheet cells."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Mapping

from flask_app.importer.pipeline.names import coerce_text

_NON_DIGITS = re.compile(r"\D")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y")


def cell(row: Mapping[str, object], key: str) -> str:
    """Sanitized text for ``key``; blank when the column is missing."""
    return coerce_text(row.get(key))


def is_present(row: Mapping[str, object], key: str) -> bool:
    """A column counts as supplied unless it is missing, ``None`` or ``""``."""
    value = row.get(key)
    return value is not None and value != ""


def digit_count(value: str) -> int:
    return len(_NON_DIGITS.sub("", value or ""))


def parse_amount(value: object | None) -> float | None:
    """Parse ``"$1,200.50"`` style amounts; ``None`` when not a number."""

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    stripped = _NON_NUMERIC.sub("", str(value or ""))
    if stripped in ("", "-", ".", "-."):
        return None
    try:
        return float(stripped)
    except ValueError:
        return None


def parse_date(value: object | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = coerce_text(value)
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
