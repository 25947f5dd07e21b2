"""
Error taxonomy for the family/student importer.

Row-level problems are raised as ``ImportRowError`` subclasses inside the
pipeline and converted into ``ImportIssue`` records on the row result; they
never escape to the batch caller. ``LookupLoadError`` is the single failure
allowed to abort a whole validation or import call.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class IssueSeverity(str, enum.Enum):
    """Whether an issue blocks the row."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ImportIssue:
    """
    Structured row problem surfaced to the review UI.

    Attributes:
        code: Stable identifier (e.g. ``PHONE_FORMAT``).
        severity: Error (blocks the row) or warning.
        message: Human-friendly description.
        field: Canonical column the issue refers to, when there is one.
    """

    code: str
    severity: IssueSeverity
    message: str
    field: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity is IssueSeverity.ERROR

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "field": self.field,
            "message": self.message,
        }


class ImporterError(Exception):
    """Base class for importer failures."""


class ImportRowError(ImporterError):
    """A problem confined to one row."""

    code = "ROW_ERROR"
    severity = IssueSeverity.ERROR

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_issue(self) -> ImportIssue:
        return ImportIssue(code=self.code, severity=self.severity, message=self.message, field=self.field)


class FormatError(ImportRowError):
    """A name string could not be parsed."""

    code = "FORMAT"


class MissingFieldError(ImportRowError):
    """A required column is absent or blank."""

    code = "MISSING_FIELD"


class LookupNotFoundError(ImportRowError):
    """A grade or class name has no match in the lookup snapshot."""

    code = "LOOKUP_NOT_FOUND"


class PhoneFormatError(ImportRowError):
    """A phone field has fewer than ten digits."""

    code = "PHONE_FORMAT"


class PartialWriteError(ImportRowError):
    """A class assignment or parent write failed after the student was saved."""

    code = "PARTIAL_WRITE"


def _counted(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


class DuplicateFoundWarning(ImportRowError):
    """Stored students or other rows of the upload plausibly match; the caller decides what to do."""

    code = "DUPLICATE_FOUND"
    severity = IssueSeverity.WARNING

    def __init__(self, student_name: str, existing_count: int, batch_count: int = 0) -> None:
        sources = []
        if existing_count:
            sources.append(_counted(existing_count, "existing student"))
        if batch_count:
            sources.append(_counted(batch_count, "other row") + " in this upload")
        super().__init__(f'Possible duplicate of "{student_name}": {" and ".join(sources)}', field="studentName")
        self.existing_count = existing_count
        self.batch_count = batch_count

    @property
    def candidate_count(self) -> int:
        return self.existing_count + self.batch_count


class LookupLoadError(ImporterError):
    """Grades or classes could not be loaded; nothing in the batch can proceed."""


class InvalidDuplicateAction(ImporterError):
    """The caller supplied a duplicate decision other than create/merge/update."""

    def __init__(self, key: str, value: object) -> None:
        super().__init__(f'Unknown duplicate action {value!r} for "{key}". Expected create, merge or update.')
        self.key = key
        self.value = value


def warning(code: str, message: str, field: str | None = None) -> ImportIssue:
    """Shortcut for warnings that have no dedicated exception type."""
    return ImportIssue(code=code, severity=IssueSeverity.WARNING, message=message, field=field)


__all__ = [
    "IssueSeverity",
    "ImportIssue",
    "ImporterError",
    "ImportRowError",
    "FormatError",
    "MissingFieldError",
    "LookupNotFoundError",
    "PhoneFormatError",
    "PartialWriteError",
    "DuplicateFoundWarning",
    "LookupLoadError",
    "InvalidDuplicateAction",
    "warning",
]
