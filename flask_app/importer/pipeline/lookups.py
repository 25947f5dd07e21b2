"""
Batch-scoped snapshot of grades and classes.

Loaded once per validation or import call so every row sees the same
reference data. Name matching is case-insensitive and exact; rapidfuzz is
only used to suggest a likely intended name in error messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from flask import current_app
from rapidfuzz import fuzz, process, utils
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from flask_app.importer.errors import LookupLoadError
from flask_app.importer.metrics import record_lookup_failure
from flask_app.models import Grade, SchoolClass, db

DEFAULT_SUGGESTION_CUTOFF = 80


@dataclass(frozen=True)
class GradeRef:
    id: int
    name: str


@dataclass(frozen=True)
class ClassRef:
    id: int
    name: str
    grade_id: int | None


def _fold(value: str | None) -> str:
    return (value or "").strip().casefold()


@dataclass(frozen=True)
class ReferenceLookups:
    """Immutable grade/class snapshot with case-insensitive name lookups."""

    grades: tuple[GradeRef, ...] = ()
    classes: tuple[ClassRef, ...] = ()
    suggestion_cutoff: int = DEFAULT_SUGGESTION_CUTOFF
    _grades_by_name: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, GradeRef] = {}
        for grade in self.grades:
            index.setdefault(_fold(grade.name), grade)
        object.__setattr__(self, "_grades_by_name", index)

    @classmethod
    def load(cls, session=None, *, suggestion_cutoff: int | None = None) -> "ReferenceLookups":
        """Fetch every grade and class; raises ``LookupLoadError`` on database failure."""

        session = session or db.session
        if suggestion_cutoff is None:
            suggestion_cutoff = int(
                current_app.config.get("IMPORTER_LOOKUP_SUGGESTION_CUTOFF", DEFAULT_SUGGESTION_CUTOFF)
            )
        try:
            grade_rows = session.execute(select(Grade.id, Grade.name).order_by(Grade.level, Grade.name)).all()
            class_rows = session.execute(
                select(SchoolClass.id, SchoolClass.name, SchoolClass.grade_id).order_by(SchoolClass.name)
            ).all()
        except SQLAlchemyError as exc:
            session.rollback()
            record_lookup_failure()
            current_app.logger.error("Failed to load grade/class lookups: %s", exc)
            raise LookupLoadError("Could not load grades and classes for import") from exc

        lookups = cls(
            grades=tuple(GradeRef(id=row.id, name=row.name) for row in grade_rows),
            classes=tuple(ClassRef(id=row.id, name=row.name, grade_id=row.grade_id) for row in class_rows),
            suggestion_cutoff=suggestion_cutoff,
        )
        current_app.logger.debug(
            "Loaded importer lookups: %d grades, %d classes", len(lookups.grades), len(lookups.classes)
        )
        return lookups

    def find_grade(self, name: str | None) -> GradeRef | None:
        key = _fold(name)
        if not key:
            return None
        return self._grades_by_name.get(key)

    def classes_for_grade(self, grade: GradeRef | None) -> tuple[ClassRef, ...]:
        if grade is None:
            return ()
        return tuple(item for item in self.classes if item.grade_id == grade.id)

    def find_class(self, name: str | None, grade: GradeRef | None = None) -> ClassRef | None:
        """Grade-scoped match first, then any class with the same name."""

        key = _fold(name)
        if not key:
            return None
        for candidate in self.classes_for_grade(grade):
            if _fold(candidate.name) == key:
                return candidate
        for candidate in self.classes:
            if _fold(candidate.name) == key:
                return candidate
        return None

    def grade_names(self) -> list[str]:
        return [grade.name for grade in self.grades]

    def class_names(self, grade: GradeRef | None = None) -> list[str]:
        source: Iterable[ClassRef] = self.classes_for_grade(grade) if grade is not None else self.classes
        return [item.name for item in source]

    def suggest(self, name: str | None, choices: Sequence[str]) -> str | None:
        """Closest known name for a "did you mean" hint, or ``None``."""

        if not name or not choices:
            return None
        match = process.extractOne(
            name,
            choices,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            score_cutoff=self.suggestion_cutoff,
        )
        if match is None:
            return None
        return match[0]


__all__ = ["GradeRef", "ClassRef", "ReferenceLookups", "DEFAULT_SUGGESTION_CUTOFF"]
