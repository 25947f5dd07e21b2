"""CSV adapter for family/student rows.

Reads a CSV whose header row already uses the canonical column names
(``studentName``, ``parentName`` ...) and yields plain row dicts for the
pipeline. Header matching ignores case, spaces and underscores.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import IO, Iterator, Sequence

CANONICAL_COLUMNS: tuple[str, ...] = (
    "studentName",
    "parentName",
    "address",
    "homePhone",
    "fatherCell",
    "motherCell",
    "grade",
    "class",
    "familyId",
    "studentId",
    "dateOfBirth",
    "tuition",
    "paid",
    "pledges",
)
REQUIRED_COLUMNS: tuple[str, ...] = ("studentName", "parentName")


class CSVAdapterError(Exception):
    """Base exception for CSV adapter failures."""


class CSVHeaderError(CSVAdapterError):
    """Raised when the header row is missing required columns or repeats one."""

    def __init__(self, *, missing: Sequence[str] | None = None, duplicates: Sequence[str] | None = None) -> None:
        details: list[str] = []
        if missing:
            details.append(f"Missing required columns: {', '.join(sorted(missing))}.")
        if duplicates:
            details.append(f"Duplicate columns: {', '.join(sorted(duplicates))}.")
        message = "CSV header validation failed. " + " ".join(details) if details else "CSV header validation failed."
        super().__init__(message)
        self.missing = tuple(missing or ())
        self.duplicates = tuple(duplicates or ())


def normalize_header(header: str | None) -> str:
    token = (header or "").strip().lstrip("\ufeff")
    return token.replace(" ", "").replace("_", "").lower()


_ALIAS_MAP = {normalize_header(name): name for name in CANONICAL_COLUMNS}


@dataclass(frozen=True)
class HeaderValidationResult:
    raw_headers: tuple[str, ...]
    canonical_headers: tuple[str | None, ...]
    ignored_headers: tuple[str, ...]


def _validate_headers(raw_headers: Sequence[str]) -> HeaderValidationResult:
    canonical: list[str | None] = []
    ignored: list[str] = []
    duplicates: list[str] = []
    seen: set[str] = set()
    for header in raw_headers:
        name = _ALIAS_MAP.get(normalize_header(header))
        if name is None:
            ignored.append(header)
        elif name in seen:
            duplicates.append(name)
        else:
            seen.add(name)
        canonical.append(name)

    missing = [name for name in REQUIRED_COLUMNS if name not in seen]
    if missing or duplicates:
        raise CSVHeaderError(missing=missing, duplicates=duplicates)
    return HeaderValidationResult(
        raw_headers=tuple(raw_headers),
        canonical_headers=tuple(canonical),
        ignored_headers=tuple(ignored),
    )


class FamilyCSVAdapter:
    """CSV reader producing canonical family/student rows."""

    def __init__(self, file_obj: IO[str], *, skip_blank_rows: bool = True) -> None:
        self._file_obj = file_obj
        self.skip_blank_rows = skip_blank_rows
        self.header: HeaderValidationResult | None = None
        self.rows_skipped_blank = 0

    def iter_rows(self) -> Iterator[dict[str, str]]:
        self._file_obj.seek(0)
        reader = csv.reader(self._file_obj)
        try:
            raw_headers = next(reader)
        except StopIteration:
            raise CSVHeaderError(missing=REQUIRED_COLUMNS) from None
        self.header = _validate_headers(raw_headers)

        for values in reader:
            row = {
                name: value
                for name, value in zip(self.header.canonical_headers, values)
                if name is not None
            }
            if self.skip_blank_rows and all(not (value or "").strip() for value in row.values()):
                self.rows_skipped_blank += 1
                continue
            yield row

    def read_rows(self) -> list[dict[str, str]]:
        return list(self.iter_rows())
