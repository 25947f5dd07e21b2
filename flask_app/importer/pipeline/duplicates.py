"""
Duplicate student detection for family/student imports.

Candidates are found with a broad OR query (same name, same student id, or
same date of birth) and then scored independently so reviewers can see why a
record was flagged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Sequence

from sqlalchemy import func, or_, select

from flask_app.importer.pipeline.fields import parse_date
from flask_app.importer.pipeline.names import sanitize_text
from flask_app.models import Student, db

NAME_MATCH_POINTS = 50
STUDENT_ID_MATCH_POINTS = 40
DOB_MATCH_POINTS = 10
GRADE_MATCH_POINTS = 5
MAX_SCORE = 100

SOURCE_EXISTING = "existing"
SOURCE_BATCH = "batch"


@dataclass(frozen=True)
class StudentIdentity:
    """Identity fields of an incoming row, used for in-batch comparisons."""

    row: int
    first_name: str
    last_name: str
    student_id: str | None = None
    date_of_birth: date | None = None
    grade_id: int | None = None

    def as_mapping(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "student_id": self.student_id,
            "date_of_birth": self.date_of_birth,
            "grade_id": self.grade_id,
        }


@dataclass(frozen=True)
class DuplicateCandidate:
    """A stored student (or another batch row) that may be the same child."""

    similarity_score: int
    source: str
    student: Student | None = None
    batch_row: StudentIdentity | None = None

    def to_dict(self) -> dict:
        if self.student is not None:
            payload = self.student.to_dict()
            payload["familyName"] = self.student.family.family_name if self.student.family else None
            payload["gradeName"] = self.student.grade.name if self.student.grade else None
        else:
            identity = self.batch_row
            payload = {
                "id": None,
                "row": identity.row,
                "firstName": identity.first_name,
                "lastName": identity.last_name,
                "studentId": identity.student_id,
                "dateOfBirth": identity.date_of_birth.isoformat() if identity.date_of_birth else None,
                "gradeId": identity.grade_id,
            }
        payload["similarityScore"] = self.similarity_score
        payload["source"] = self.source
        return payload


def _identity_of(record: Student | Mapping[str, object] | StudentIdentity) -> Mapping[str, object]:
    if isinstance(record, Student):
        return record.identity()
    if isinstance(record, StudentIdentity):
        return record.as_mapping()
    return record


def _names_match(a: Mapping[str, object], b: Mapping[str, object]) -> bool:
    first_a = sanitize_text(a.get("first_name")).casefold()
    last_a = sanitize_text(a.get("last_name")).casefold()
    if not first_a or not last_a:
        return False
    return (
        first_a == sanitize_text(b.get("first_name")).casefold()
        and last_a == sanitize_text(b.get("last_name")).casefold()
    )


def _both_equal(left: object | None, right: object | None) -> bool:
    if left in (None, "") or right in (None, ""):
        return False
    return left == right


def calculate_similarity_score(a, b) -> int:
    """
    Score how likely two student identities are the same child (0..100).

    Each signal contributes independently: names +50, student id +40, date of
    birth +10, grade +5. Accepts ``Student`` rows, ``StudentIdentity`` values
    or snake_case mappings.
    """

    left = _identity_of(a)
    right = _identity_of(b)
    score = 0
    if _names_match(left, right):
        score += NAME_MATCH_POINTS
    if _both_equal(sanitize_text(left.get("student_id")), sanitize_text(right.get("student_id"))):
        score += STUDENT_ID_MATCH_POINTS
    if _both_equal(parse_date(left.get("date_of_birth")), parse_date(right.get("date_of_birth"))):
        score += DOB_MATCH_POINTS
    if _both_equal(left.get("grade_id"), right.get("grade_id")):
        score += GRADE_MATCH_POINTS
    return min(MAX_SCORE, score)


def find_duplicate_students(
    first_name: str | None,
    last_name: str | None,
    student_id: str | None = None,
    date_of_birth: object | None = None,
    *,
    session=None,
) -> list[Student]:
    """Stored students matching by name, student id or date of birth; newest first."""

    first = sanitize_text(first_name).lower()
    last = sanitize_text(last_name).lower()
    if not first or not last:
        return []

    session = session or db.session
    criteria = [(func.lower(Student.first_name) == first) & (func.lower(Student.last_name) == last)]
    external_id = sanitize_text(student_id)
    if external_id:
        criteria.append(Student.student_id == external_id)
    dob = parse_date(date_of_birth)
    if dob is not None:
        criteria.append(Student.date_of_birth == dob)

    stmt = select(Student).where(or_(*criteria)).order_by(Student.created_at.desc(), Student.id.desc())
    return list(session.scalars(stmt))


def _batch_matches(target: StudentIdentity, other: StudentIdentity) -> bool:
    if _names_match(target.as_mapping(), other.as_mapping()):
        return True
    if target.student_id and other.student_id == target.student_id:
        return True
    if target.date_of_birth is not None and other.date_of_birth == target.date_of_birth:
        return True
    return False


def find_batch_duplicates(
    target: StudentIdentity, others: Iterable[StudentIdentity]
) -> list[DuplicateCandidate]:
    """Other rows of the same upload that match ``target`` by the stored-student criteria."""

    candidates: list[DuplicateCandidate] = []
    for other in others:
        if other.row == target.row or not _batch_matches(target, other):
            continue
        candidates.append(
            DuplicateCandidate(
                similarity_score=calculate_similarity_score(target, other),
                source=SOURCE_BATCH,
                batch_row=other,
            )
        )
    return candidates


def score_existing(target: StudentIdentity, students: Sequence[Student]) -> list[DuplicateCandidate]:
    return [
        DuplicateCandidate(
            similarity_score=calculate_similarity_score(target, student),
            source=SOURCE_EXISTING,
            student=student,
        )
        for student in students
    ]


__all__ = [
    "StudentIdentity",
    "DuplicateCandidate",
    "calculate_similarity_score",
    "find_duplicate_students",
    "find_batch_duplicates",
    "score_existing",
    "SOURCE_EXISTING",
    "SOURCE_BATCH",
]
