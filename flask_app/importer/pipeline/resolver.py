"""
Import executor: turns validated spreadsheet rows into families, parents,
students and class assignments.

Rows are processed strictly in file order because the batch-scoped
``family_id_map`` built for row N is what links row N+1's sibling to the same
family. One failing row never aborts the batch.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Sequence

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flask_app.importer.errors import (
    FormatError,
    ImportRowError,
    MissingFieldError,
    PartialWriteError,
    warning,
)
from flask_app.importer.metrics import record_batch_duration, record_row_outcome
from flask_app.importer.pipeline.duplicates import find_duplicate_students
from flask_app.importer.pipeline.fields import cell, parse_date
from flask_app.importer.pipeline.lookups import ClassRef, GradeRef, ReferenceLookups
from flask_app.importer.pipeline.names import ParsedName, parse_parent_names, parse_student_name
from flask_app.importer.pipeline.summary import (
    BatchSummary,
    DuplicateAction,
    RowImportResult,
    normalize_duplicate_actions,
)
from flask_app.models import Family, ImportRun, ImportRunStatus, ParentRelationship, Student, db
from flask_app.services import FamilyService, ParentService, StudentService
from flask_app.utils.logging_config import log_import_event

# Ordered: the first keyword found in a parent's first name wins.
RELATIONSHIP_KEYWORDS: tuple[tuple[str, ParentRelationship], ...] = (
    ("father", ParentRelationship.FATHER),
    ("dad", ParentRelationship.FATHER),
    ("mother", ParentRelationship.MOTHER),
    ("mom", ParentRelationship.MOTHER),
)
# Cell-phone columns that imply a relationship; each is claimed by at most one parent per row.
RELATIONSHIP_PHONE_CUES: tuple[tuple[str, ParentRelationship], ...] = (
    ("fatherCell", ParentRelationship.FATHER),
    ("motherCell", ParentRelationship.MOTHER),
)
DEFAULT_RELATIONSHIP = ParentRelationship.GUARDIAN


def infer_relationship(
    first_name: str, row: Mapping[str, object], claimed_cues: set[str]
) -> tuple[ParentRelationship, str | None]:
    """Return the parent's relationship and the phone number to store for them."""

    relationship: ParentRelationship | None = None
    lowered = first_name.lower()
    for keyword, candidate in RELATIONSHIP_KEYWORDS:
        if keyword in lowered:
            relationship = candidate
            break

    if relationship is None:
        for column, candidate in RELATIONSHIP_PHONE_CUES:
            if column not in claimed_cues and cell(row, column):
                relationship = candidate
                break

    relationship = relationship or DEFAULT_RELATIONSHIP
    phone = None
    for column, candidate in RELATIONSHIP_PHONE_CUES:
        if candidate is relationship:
            claimed_cues.add(column)
            phone = cell(row, column) or None
    return relationship, phone or cell(row, "homePhone") or None


@dataclass
class BatchContext:
    """State shared by the rows of one import call and nothing else."""

    lookups: ReferenceLookups
    duplicate_actions: dict[str, DuplicateAction] = field(default_factory=dict)
    atomic_rows: bool = True
    family_id_map: dict[str, int] = field(default_factory=dict)
    session: Session | None = None

    def __post_init__(self) -> None:
        self.session = self.session or db.session
        self.families = FamilyService(self.session)
        self.parents = ParentService(self.session)
        self.students = StudentService(self.session)

    def action_for(self, row_number: int, student_name: ParsedName) -> DuplicateAction:
        """Row-index key first; the "Last, First" key is honoured for older clients."""

        row_key = f"row_{row_number}"
        if row_key in self.duplicate_actions:
            return self.duplicate_actions[row_key]
        return self.duplicate_actions.get(student_name.display, DuplicateAction.CREATE)

    def checkpoint(self) -> None:
        """Commit immediately when rows are not atomic."""
        if not self.atomic_rows:
            self.session.commit()

    @contextmanager
    def sub_step(self) -> Iterator[None]:
        """Isolate a secondary write so its failure leaves the rest of the row intact."""
        if self.atomic_rows:
            with self.session.begin_nested():
                yield
            return
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


def _resolve_family(
    row: Mapping[str, object],
    ctx: BatchContext,
    result: RowImportResult,
    student_name: ParsedName,
    parent_names: list[ParsedName],
) -> Family:
    token = cell(row, "familyId")
    family: Family | None = None

    if token and token in ctx.family_id_map:
        family = ctx.families.get(ctx.family_id_map[token])
        if family is None:
            current_app.logger.warning(
                "Family %s mapped from familyId %r no longer exists; resolving again",
                ctx.family_id_map[token],
                token,
            )
            del ctx.family_id_map[token]

    if family is None:
        surname = parent_names[0].last_name or student_name.last_name
        address = cell(row, "address") or None
        family = ctx.families.find_matching(surname, address)
        if family is None:
            family = ctx.families.create(surname, address=address, phone=cell(row, "homePhone") or None)
            result.family_created = True
            ctx.checkpoint()

    if token:
        ctx.family_id_map[token] = family.id
    return family


def _resolve_placement(
    row: Mapping[str, object], ctx: BatchContext, result: RowImportResult
) -> tuple[GradeRef | None, ClassRef | None]:
    grade_name = cell(row, "grade")
    grade = ctx.lookups.find_grade(grade_name)
    if grade_name and grade is None:
        result.warnings.append(
            warning("GRADE_NOT_FOUND", f'Grade "{grade_name}" not found; student imported without grade', "grade")
        )

    class_name = cell(row, "class")
    school_class = ctx.lookups.find_class(class_name, grade)
    if class_name and school_class is None:
        result.warnings.append(
            warning("CLASS_NOT_FOUND", f'Class "{class_name}" not found; student imported without class', "class")
        )
    return grade, school_class


def _resolve_student(
    row: Mapping[str, object],
    row_number: int,
    ctx: BatchContext,
    result: RowImportResult,
    student_name: ParsedName,
    family: Family | None,
    grade: GradeRef | None,
) -> Student:
    external_id = cell(row, "studentId") or None
    date_of_birth = parse_date(row.get("dateOfBirth"))
    grade_id = grade.id if grade else None
    family_id = family.id if family else None

    action = ctx.action_for(row_number, student_name)
    result.action = action
    if action in (DuplicateAction.MERGE, DuplicateAction.UPDATE):
        candidates = find_duplicate_students(
            student_name.first_name,
            student_name.last_name,
            student_id=external_id,
            date_of_birth=date_of_birth,
            session=ctx.session,
        )
        if candidates:
            target = candidates[0]
            if action is DuplicateAction.UPDATE:
                ctx.students.update(
                    target,
                    family_id=family_id,
                    grade_id=grade_id,
                    student_id=external_id,
                    date_of_birth=date_of_birth,
                )
            else:
                ctx.students.merge(
                    target,
                    family_id=family_id,
                    grade_id=grade_id,
                    student_id=external_id,
                    date_of_birth=date_of_birth,
                )
            result.updated = True
            ctx.checkpoint()
            return target
        current_app.logger.info(
            "Row %d requested %s but no existing student matched; creating a new record", row_number, action.value
        )

    if family is None:
        raise MissingFieldError("Family could not be resolved for student", field="parentName")
    student = ctx.students.create(
        first_name=student_name.first_name,
        last_name=student_name.last_name,
        family_id=family.id,
        grade_id=grade_id,
        student_id=external_id,
        date_of_birth=date_of_birth,
    )
    result.student_created = True
    ctx.checkpoint()
    return student


def _assign_class(ctx: BatchContext, result: RowImportResult, student: Student, school_class: ClassRef) -> None:
    try:
        with ctx.sub_step():
            ctx.students.assign_class(student.id, school_class.id)
    except Exception as exc:
        current_app.logger.warning(
            "Class assignment failed for row %d (class %s): %s", result.row, school_class.name, exc
        )
        result.errors.append(
            PartialWriteError(f'Class "{school_class.name}" could not be assigned: {exc}', field="class").to_issue()
        )
        return
    result.class_assigned = True


def _link_parents(
    row: Mapping[str, object],
    ctx: BatchContext,
    result: RowImportResult,
    student: Student,
    family: Family,
    parent_names: list[ParsedName],
) -> None:
    claimed_cues: set[str] = set()
    for index, parsed in enumerate(parent_names):
        if not parsed.first_name:
            continue
        last_name = parsed.last_name or family.family_name
        relationship, phone = infer_relationship(parsed.first_name, row, claimed_cues)
        is_primary = index == 0
        try:
            with ctx.sub_step():
                parent = ctx.parents.find_in_family(family.id, parsed.first_name, last_name)
                created = parent is None
                if created:
                    parent = ctx.parents.create(
                        family.id,
                        parsed.first_name,
                        last_name,
                        relationship=relationship,
                        phone=phone,
                        is_primary_contact=is_primary,
                    )
                ctx.parents.link_to_student(
                    parent.id, student.id, relationship=relationship, is_primary=is_primary
                )
        except Exception as exc:
            current_app.logger.warning(
                "Parent %s %s failed for row %d: %s", parsed.first_name, last_name, result.row, exc
            )
            result.errors.append(
                PartialWriteError(
                    f'Parent "{parsed.first_name} {last_name}" could not be saved: {exc}', field="parentName"
                ).to_issue()
            )
            continue
        result.parents.append(parent)
        if created:
            result.created_parent_ids.append(parent.id)


def _parse_names(row: Mapping[str, object]) -> tuple[ParsedName, list[ParsedName]]:
    if not cell(row, "studentName"):
        raise MissingFieldError("Student name is required", field="studentName")
    student_name = parse_student_name(row.get("studentName"))
    if student_name is None:
        raise FormatError('Student name format is invalid. Expected "Last, First" or "First Last"', field="studentName")
    if not cell(row, "parentName"):
        raise MissingFieldError("Parent name is required", field="parentName")
    parent_names = parse_parent_names(row.get("parentName"))
    if not parent_names:
        raise FormatError("Parent name could not be parsed into at least one parent", field="parentName")
    return student_name, parent_names


def _discard_row_writes(result: RowImportResult) -> None:
    result.student = None
    result.family = None
    result.parents = []
    result.class_assigned = False
    result.updated = False
    result.family_created = False
    result.student_created = False
    result.created_parent_ids = []


def process_import_row(row: Mapping[str, object], row_number: int, ctx: BatchContext) -> RowImportResult:
    """Import one row; every failure is recorded on the returned result."""

    result = RowImportResult(row=row_number)
    try:
        student_name, parent_names = _parse_names(row)
    except ImportRowError as exc:
        result.errors.append(exc.to_issue())
        return result

    mapped_before = dict(ctx.family_id_map)
    try:
        family = _resolve_family(row, ctx, result, student_name, parent_names)
        result.family = family
        grade, school_class = _resolve_placement(row, ctx, result)
        student = _resolve_student(row, row_number, ctx, result, student_name, family, grade)
        result.student = student
        if school_class is not None:
            _assign_class(ctx, result, student, school_class)
        _link_parents(row, ctx, result, student, family, parent_names)
        if ctx.atomic_rows:
            ctx.session.commit()
        result.success = True
    except ImportRowError as exc:
        ctx.session.rollback()
        result.errors.append(exc.to_issue())
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        current_app.logger.error("Database error importing row %d: %s", row_number, exc)
        result.errors.append(ImportRowError(f"Database error: {exc}").to_issue())
    except Exception as exc:
        ctx.session.rollback()
        current_app.logger.exception("Unexpected error importing row %d", row_number)
        result.errors.append(ImportRowError(f"Unexpected error: {exc}").to_issue())

    if not result.success and ctx.atomic_rows:
        # Rolled-back ids can be reissued to later rows, so forget anything this row mapped
        ctx.family_id_map = mapped_before
        _discard_row_writes(result)
    return result


def import_batch(rows: Sequence[Mapping[str, object]], ctx: BatchContext) -> BatchSummary:
    started = time.perf_counter()
    summary = BatchSummary()
    for index, row in enumerate(rows):
        result = process_import_row(row, index + 1, ctx)
        summary.add(result)
        if not result.success:
            record_row_outcome("import", "failure")
        elif result.errors:
            record_row_outcome("import", "partial")
        else:
            record_row_outcome("import", "success")
    record_batch_duration("import", time.perf_counter() - started)
    return summary


def _final_status(summary: BatchSummary) -> ImportRunStatus:
    if summary.error_count == 0 and summary.partial_count == 0:
        return ImportRunStatus.SUCCEEDED
    if summary.imported > 0:
        return ImportRunStatus.PARTIALLY_FAILED
    return ImportRunStatus.FAILED


def _start_run(source: str, row_count: int) -> ImportRun | None:
    run = ImportRun(source=source, row_count=row_count)
    run.mark_running()
    try:
        db.session.add(run)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Could not record import run: %s", exc)
        return None
    return run


def _finish_run(run: ImportRun | None, summary: BatchSummary) -> None:
    if run is None:
        return
    failed_rows = [result.row for result in summary.results if not result.success]
    error_summary = f"Rows failed: {', '.join(str(n) for n in failed_rows)}" if failed_rows else None
    try:
        run.mark_finished(_final_status(summary), summary.counts(), error_summary)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Could not finalise import run %s: %s", run.id, exc)


def bulk_import_families_and_students(
    rows: Sequence[Mapping[str, object]],
    duplicate_actions: Mapping[str, object] | None = None,
    *,
    lookups: ReferenceLookups | None = None,
    source: str = "api",
    atomic_rows: bool | None = None,
) -> BatchSummary:
    """
    Import every row and return the batch summary.

    Raises ``InvalidDuplicateAction`` for unknown decisions and
    ``LookupLoadError`` when grades/classes cannot be loaded; both happen
    before any write.
    """

    actions = normalize_duplicate_actions(duplicate_actions)
    if lookups is None:
        lookups = ReferenceLookups.load()
    if atomic_rows is None:
        atomic_rows = bool(current_app.config.get("IMPORTER_ATOMIC_ROWS", True))

    run = _start_run(source, len(rows))
    ctx = BatchContext(lookups=lookups, duplicate_actions=actions, atomic_rows=atomic_rows)
    summary = import_batch(rows, ctx)
    _finish_run(run, summary)
    summary.run_id = run.id if run is not None else None

    log_import_event(
        "Family/student import finished",
        run_id=summary.run_id,
        source=source,
        atomic_rows=atomic_rows,
        **summary.counts(),
    )
    return summary


__all__ = [
    "RELATIONSHIP_KEYWORDS",
    "RELATIONSHIP_PHONE_CUES",
    "DEFAULT_RELATIONSHIP",
    "infer_relationship",
    "BatchContext",
    "process_import_row",
    "import_batch",
    "bulk_import_families_and_students",
]
