"""
Per-row import results and the batch summary built from them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

from flask_app.importer.errors import ImportIssue, InvalidDuplicateAction
from flask_app.models import Family, Parent, Student


class DuplicateAction(str, enum.Enum):
    """Caller decision for a row whose student may already exist."""

    CREATE = "create"
    MERGE = "merge"
    UPDATE = "update"

    @classmethod
    def coerce(cls, key: str, value: object) -> "DuplicateAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidDuplicateAction(key, value) from exc


def normalize_duplicate_actions(actions: Mapping[str, object] | None) -> dict[str, DuplicateAction]:
    """Validate caller-supplied decisions up front; raises ``InvalidDuplicateAction``."""

    normalized: dict[str, DuplicateAction] = {}
    for key, value in (actions or {}).items():
        if value is None or value == "":
            continue
        normalized[str(key)] = DuplicateAction.coerce(str(key), value)
    return normalized


@dataclass
class RowImportResult:
    """Outcome of importing one row."""

    row: int
    success: bool = False
    student: Student | None = None
    family: Family | None = None
    parents: list[Parent] = field(default_factory=list)
    class_assigned: bool = False
    updated: bool = False
    action: DuplicateAction = DuplicateAction.CREATE
    errors: list[ImportIssue] = field(default_factory=list)
    warnings: list[ImportIssue] = field(default_factory=list)
    family_created: bool = False
    student_created: bool = False
    created_parent_ids: list[int] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.success and bool(self.errors)

    def to_dict(self) -> dict:
        return {
            "row": self.row,
            "success": self.success,
            "student": self.student.to_dict() if self.student is not None else None,
            "family": self.family.to_dict() if self.family is not None else None,
            "parents": [parent.to_dict() for parent in self.parents],
            "classAssigned": self.class_assigned,
            "updated": self.updated,
            "action": self.action.value,
            "errors": [issue.message for issue in self.errors],
            "warnings": [issue.message for issue in self.warnings],
        }


@dataclass
class BatchSummary:
    """Aggregate counts over a batch; creation counters track unique record ids."""

    results: list[RowImportResult] = field(default_factory=list)
    run_id: int | None = None
    _families: set = field(default_factory=set, repr=False)
    _parents: set = field(default_factory=set, repr=False)
    _students: set = field(default_factory=set, repr=False)
    _updated_students: set = field(default_factory=set, repr=False)

    def add(self, result: RowImportResult) -> None:
        self.results.append(result)
        if not result.success:
            return
        if result.family_created and result.family is not None:
            self._families.add(result.family.id)
        self._parents.update(result.created_parent_ids)
        if result.student is not None:
            if result.student_created:
                self._students.add(result.student.id)
            elif result.updated:
                self._updated_students.add(result.student.id)

    @property
    def imported(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def error_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def partial_count(self) -> int:
        return sum(1 for result in self.results if result.partial)

    @property
    def families_created(self) -> int:
        return len(self._families)

    @property
    def parents_created(self) -> int:
        return len(self._parents)

    @property
    def students_created(self) -> int:
        return len(self._students)

    @property
    def students_updated(self) -> int:
        return len(self._updated_students)

    @property
    def class_assignments(self) -> int:
        return sum(1 for result in self.results if result.class_assigned)

    def counts(self) -> dict:
        return {
            "imported": self.imported,
            "errorCount": self.error_count,
            "partialCount": self.partial_count,
            "familiesCreated": self.families_created,
            "parentsCreated": self.parents_created,
            "studentsCreated": self.students_created,
            "studentsUpdated": self.students_updated,
            "classAssignments": self.class_assignments,
        }

    def to_dict(self) -> dict:
        payload = self.counts()
        payload["runId"] = self.run_id
        payload["errors"] = [
            {"row": result.row, "errors": [issue.message for issue in result.errors]}
            for result in self.results
            if result.errors
        ]
        payload["results"] = [result.to_dict() for result in self.results]
        return payload


__all__ = [
    "DuplicateAction",
    "normalize_duplicate_actions",
    "RowImportResult",
    "BatchSummary",
]
