"""
Row validation for family/student imports.

Each rule inspects one concern of a row and yields ``ImportIssue`` records.
Errors block the row from importing; warnings are shown to the reviewer but
do not block. ``validate_batch`` additionally attaches duplicate candidates
from the store and from the other rows of the same upload.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from flask_app.importer.errors import (
    DuplicateFoundWarning,
    FormatError,
    ImportIssue,
    LookupNotFoundError,
    MissingFieldError,
    PhoneFormatError,
    warning,
)
from flask_app.importer.metrics import record_batch_duration, record_duplicate_candidates, record_row_outcome
from flask_app.importer.pipeline.duplicates import (
    SOURCE_BATCH,
    SOURCE_EXISTING,
    DuplicateCandidate,
    StudentIdentity,
    find_batch_duplicates,
    find_duplicate_students,
    score_existing,
)
from flask_app.importer.pipeline.fields import cell, digit_count, is_present, parse_amount, parse_date
from flask_app.importer.pipeline.lookups import ReferenceLookups
from flask_app.importer.pipeline.names import ParsedName, parse_parent_names, parse_student_name
from flask_app.models import db

MIN_PHONE_DIGITS = 10
MIN_ADDRESS_LENGTH = 5

STUDENT_NAME_FORMAT_MESSAGE = 'Student name format is invalid. Expected "Last, First" or "First Last"'
PARENT_NAME_FORMAT_MESSAGE = (
    'Parent name format is invalid. Expected "Last, First" or "First and First" or "Last, First and First"'
)


@dataclass
class ValidationOutcome:
    """Result of validating one row."""

    row: int
    errors: list[ImportIssue] = field(default_factory=list)
    warnings: list[ImportIssue] = field(default_factory=list)
    student_name: ParsedName | None = None
    parent_names: list[ParsedName] | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, issue: ImportIssue) -> None:
        (self.errors if issue.is_error else self.warnings).append(issue)

    def to_dict(self) -> dict:
        return {
            "row": self.row,
            "valid": self.valid,
            "errors": [issue.message for issue in self.errors],
            "warnings": [issue.message for issue in self.warnings],
            "issues": [issue.to_dict() for issue in (*self.errors, *self.warnings)],
        }


@dataclass
class DuplicateReport:
    """Duplicate candidates found for one row during validation."""

    row: int
    student_name: str
    candidates: list[DuplicateCandidate]

    def to_dict(self) -> dict:
        return {
            "row": self.row,
            "studentName": self.student_name,
            "duplicates": [candidate.to_dict() for candidate in self.candidates],
            "action": None,
        }


@dataclass
class BatchValidationReport:
    """Everything the review step needs before the caller commits an import."""

    outcomes: list[ValidationOutcome]
    duplicates: list[DuplicateReport]
    rows: Sequence[Mapping[str, object]] = ()

    @property
    def valid(self) -> bool:
        return all(outcome.valid for outcome in self.outcomes)

    def _duplicate_for(self, row: int) -> DuplicateReport | None:
        for report in self.duplicates:
            if report.row == row:
                return report
        return None

    def to_dict(self) -> dict:
        errors = []
        warnings = []
        results = []
        for index, outcome in enumerate(self.outcomes):
            data = dict(self.rows[index]) if index < len(self.rows) else {}
            rendered = outcome.to_dict()
            if not outcome.valid:
                errors.append(
                    {"row": outcome.row, "errors": rendered["errors"], "warnings": rendered["warnings"], "data": data}
                )
            if outcome.warnings:
                warnings.append({"row": outcome.row, "warnings": rendered["warnings"]})
            duplicate = self._duplicate_for(outcome.row)
            rendered["duplicates"] = duplicate.to_dict() if duplicate else None
            rendered["data"] = data
            results.append(rendered)

        valid_rows = sum(1 for outcome in self.outcomes if outcome.valid)
        return {
            "valid": self.valid,
            "errors": errors,
            "warnings": warnings,
            "duplicates": [report.to_dict() for report in self.duplicates],
            "details": {
                "totalRows": len(self.outcomes),
                "validRows": valid_rows,
                "invalidRows": len(self.outcomes) - valid_rows,
                "totalErrors": sum(len(outcome.errors) for outcome in self.outcomes),
                "totalWarnings": sum(len(outcome.warnings) for outcome in self.outcomes),
                "warningRows": len(warnings),
                "totalDuplicates": len(self.duplicates),
                "validationResults": results,
            },
        }


class RowRule:
    """One validation concern; rules run in declaration order."""

    name = "row"

    def evaluate(self, row: Mapping[str, object], lookups: ReferenceLookups, outcome: ValidationOutcome) -> Iterable[ImportIssue]:
        raise NotImplementedError


class StudentNameRule(RowRule):
    name = "studentName"

    def evaluate(self, row, lookups, outcome):
        if not cell(row, "studentName"):
            return [MissingFieldError("Student name is required", field="studentName").to_issue()]
        parsed = parse_student_name(row.get("studentName"))
        if parsed is None:
            return [FormatError(STUDENT_NAME_FORMAT_MESSAGE, field="studentName").to_issue()]
        outcome.student_name = parsed
        return []


class ParentNameRule(RowRule):
    name = "parentName"

    def evaluate(self, row, lookups, outcome):
        if not cell(row, "parentName"):
            return [MissingFieldError("Parent name is required", field="parentName").to_issue()]
        parsed = parse_parent_names(row.get("parentName"))
        if not parsed:
            return [FormatError(PARENT_NAME_FORMAT_MESSAGE, field="parentName").to_issue()]
        outcome.parent_names = parsed
        return []


class AddressRule(RowRule):
    name = "address"

    def evaluate(self, row, lookups, outcome):
        if not is_present(row, "address"):
            return []
        if len(cell(row, "address")) < MIN_ADDRESS_LENGTH:
            return [warning("ADDRESS_SHORT", "Address seems too short", field="address")]
        return []


class PhoneRule(RowRule):
    """At least ten digits once formatting is stripped."""

    def __init__(self, field_name: str, label: str) -> None:
        self.name = field_name
        self.label = label

    def evaluate(self, row, lookups, outcome):
        if not is_present(row, self.name):
            return []
        if digit_count(str(row.get(self.name))) < MIN_PHONE_DIGITS:
            message = f"{self.label}: Phone number must have at least {MIN_PHONE_DIGITS} digits"
            return [PhoneFormatError(message, field=self.name).to_issue()]
        return []


def _with_suggestion(message: str, suggestion: str | None) -> str:
    if suggestion:
        return f'{message} Did you mean "{suggestion}"?'
    return message


class GradeRule(RowRule):
    name = "grade"

    def evaluate(self, row, lookups, outcome):
        grade_name = cell(row, "grade")
        if not grade_name:
            return [
                warning(
                    "NO_GRADE",
                    "No grade specified - student will be created without grade assignment",
                    field="grade",
                )
            ]
        if lookups.find_grade(grade_name) is not None:
            return []
        available = lookups.grade_names()
        message = f'Grade "{grade_name}" not found in system. Available grades: {", ".join(available) or "None"}'
        message = _with_suggestion(message, lookups.suggest(grade_name, available))
        return [LookupNotFoundError(message, field="grade").to_issue()]


class ClassRule(RowRule):
    name = "class"

    def evaluate(self, row, lookups, outcome):
        class_name = cell(row, "class")
        if not class_name:
            return [
                warning(
                    "NO_CLASS",
                    "No class specified - student will be created without class assignment",
                    field="class",
                )
            ]
        grade_name = cell(row, "grade")
        grade = lookups.find_grade(grade_name)
        found = lookups.find_class(class_name, grade)
        if found is None:
            available = lookups.class_names(grade)
            scope = f' for grade "{grade_name}"' if grade is not None else ""
            listing = f"Available classes: {', '.join(available)}" if available else "No classes found in system"
            message = _with_suggestion(f'Class "{class_name}" not found{scope}. {listing}', lookups.suggest(class_name, available))
            return [LookupNotFoundError(message, field="class").to_issue()]
        if grade is not None and found.grade_id != grade.id:
            return [
                warning(
                    "CLASS_GRADE_MISMATCH",
                    f'Class "{class_name}" exists but is not in grade "{grade_name}"',
                    field="class",
                )
            ]
        return []


class FamilyIdRule(RowRule):
    name = "familyId"

    def evaluate(self, row, lookups, outcome):
        if is_present(row, "familyId") and not str(row.get("familyId")).strip():
            return [warning("FAMILY_ID_EMPTY", "Family ID is empty", field="familyId")]
        return []


class AmountRule(RowRule):
    def __init__(self, field_name: str, label: str) -> None:
        self.name = field_name
        self.label = label

    def evaluate(self, row, lookups, outcome):
        if not is_present(row, self.name):
            return []
        amount = parse_amount(row.get(self.name))
        if amount is None or amount < 0:
            return [warning("AMOUNT_INVALID", f"{self.label} amount is not a valid number", field=self.name)]
        return []


class DateOfBirthRule(RowRule):
    name = "dateOfBirth"

    def evaluate(self, row, lookups, outcome):
        if not is_present(row, "dateOfBirth") or not cell(row, "dateOfBirth"):
            return []
        if parse_date(row.get("dateOfBirth")) is None:
            return [
                warning(
                    "DATE_OF_BIRTH_INVALID",
                    "Date of birth is not a recognised date (expected YYYY-MM-DD or MM/DD/YYYY); it will be ignored",
                    field="dateOfBirth",
                )
            ]
        return []


DEFAULT_RULES: tuple[RowRule, ...] = (
    StudentNameRule(),
    ParentNameRule(),
    AddressRule(),
    PhoneRule("homePhone", "Home phone"),
    PhoneRule("fatherCell", "Father cell"),
    PhoneRule("motherCell", "Mother cell"),
    GradeRule(),
    ClassRule(),
    FamilyIdRule(),
    AmountRule("tuition", "Tuition"),
    AmountRule("paid", "Paid"),
    AmountRule("pledges", "Pledges"),
    DateOfBirthRule(),
)


def validate_row(
    row: Mapping[str, object],
    lookups: ReferenceLookups,
    row_number: int | None = None,
    *,
    rules: Sequence[RowRule] = DEFAULT_RULES,
) -> ValidationOutcome:
    outcome = ValidationOutcome(row=row_number or 0)
    for rule in rules:
        for issue in rule.evaluate(row, lookups, outcome):
            outcome.add(issue)
    return outcome


def identity_for(row: Mapping[str, object], outcome: ValidationOutcome, lookups: ReferenceLookups) -> StudentIdentity:
    grade = lookups.find_grade(cell(row, "grade"))
    return StudentIdentity(
        row=outcome.row,
        first_name=outcome.student_name.first_name,
        last_name=outcome.student_name.last_name,
        student_id=cell(row, "studentId") or None,
        date_of_birth=parse_date(row.get("dateOfBirth")),
        grade_id=grade.id if grade else None,
    )


def validate_batch(rows: Sequence[Mapping[str, object]], lookups: ReferenceLookups) -> BatchValidationReport:
    """Validate every row and collect duplicate candidates for the importable ones. Performs no writes."""

    started = time.perf_counter()
    outcomes = [validate_row(row, lookups, index + 1) for index, row in enumerate(rows)]

    identities: list[tuple[ValidationOutcome, StudentIdentity]] = [
        (outcome, identity_for(rows[outcome.row - 1], outcome, lookups))
        for outcome in outcomes
        if outcome.valid and outcome.student_name is not None
    ]
    batch_identities = [identity for _, identity in identities]

    duplicates: list[DuplicateReport] = []
    for outcome, identity in identities:
        try:
            existing = find_duplicate_students(
                identity.first_name,
                identity.last_name,
                student_id=identity.student_id,
                date_of_birth=identity.date_of_birth,
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning("Duplicate check failed for row %s: %s", outcome.row, exc)
            outcome.add(warning("DUPLICATE_CHECK_FAILED", "Duplicate check could not be completed for this row"))
            existing = []

        candidates = score_existing(identity, existing) + find_batch_duplicates(identity, batch_identities)
        if not candidates:
            continue
        existing_count = sum(1 for c in candidates if c.source == SOURCE_EXISTING)
        batch_count = len(candidates) - existing_count
        record_duplicate_candidates(SOURCE_EXISTING, existing_count)
        record_duplicate_candidates(SOURCE_BATCH, batch_count)
        outcome.add(DuplicateFoundWarning(outcome.student_name.display, existing_count, batch_count).to_issue())
        duplicates.append(
            DuplicateReport(row=outcome.row, student_name=outcome.student_name.display, candidates=candidates)
        )

    for outcome in outcomes:
        record_row_outcome("validate", "valid" if outcome.valid else "invalid")
    record_batch_duration("validate", time.perf_counter() - started)

    report = BatchValidationReport(outcomes=outcomes, duplicates=duplicates, rows=rows)
    current_app.logger.info(
        "Validated %d import rows: %d invalid, %d with duplicates",
        len(outcomes),
        sum(1 for outcome in outcomes if not outcome.valid),
        len(duplicates),
    )
    return report


def validate_import_data(rows: Sequence[Mapping[str, object]], lookups: ReferenceLookups | None = None) -> BatchValidationReport:
    """Read-only validation entry point; raises ``LookupLoadError`` if grades/classes cannot load."""

    if lookups is None:
        lookups = ReferenceLookups.load()
    return validate_batch(rows, lookups)


__all__ = [
    "ValidationOutcome",
    "DuplicateReport",
    "BatchValidationReport",
    "RowRule",
    "DEFAULT_RULES",
    "validate_row",
    "validate_batch",
    "validate_import_data",
]
