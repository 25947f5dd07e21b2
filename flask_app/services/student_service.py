"""Student and class-assignment write primitives."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from flask_app.models import ClassAssignment, ClassAssignmentStatus, EnrollmentStatus, Student, db


class StudentService:
    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def get(self, student_id: int) -> Student | None:
        return self.session.get(Student, student_id)

    def create(
        self,
        *,
        first_name: str,
        last_name: str,
        family_id: int,
        grade_id: int | None = None,
        student_id: str | None = None,
        date_of_birth: date | None = None,
    ) -> Student:
        student = Student(
            first_name=first_name,
            last_name=last_name,
            family_id=family_id,
            grade_id=grade_id,
            student_id=student_id or None,
            date_of_birth=date_of_birth,
            enrollment_status=EnrollmentStatus.ACTIVE,
        )
        self.session.add(student)
        self.session.flush()
        return student

    def update(
        self,
        student: Student,
        *,
        family_id: int | None,
        grade_id: int | None = None,
        student_id: str | None = None,
        date_of_birth: date | None = None,
    ) -> Student:
        """Overwrite family and grade from the incoming row and reactivate the student."""

        if grade_id is not None:
            student.grade_id = grade_id
        if family_id is not None:
            student.family_id = family_id
        if student_id:
            student.student_id = student_id
        if date_of_birth is not None:
            student.date_of_birth = date_of_birth
        student.enrollment_status = EnrollmentStatus.ACTIVE
        self.session.flush()
        return student

    def merge(
        self,
        student: Student,
        *,
        family_id: int | None,
        grade_id: int | None = None,
        student_id: str | None = None,
        date_of_birth: date | None = None,
    ) -> list[str]:
        """Fill only empty fields; returns the names of fields that changed."""

        filled: list[str] = []
        if student.grade_id is None and grade_id is not None:
            student.grade_id = grade_id
            filled.append("grade_id")
        if student.family_id is None and family_id is not None:
            student.family_id = family_id
            filled.append("family_id")
        if not student.student_id and student_id:
            student.student_id = student_id
            filled.append("student_id")
        if student.date_of_birth is None and date_of_birth is not None:
            student.date_of_birth = date_of_birth
            filled.append("date_of_birth")
        if filled:
            self.session.flush()
        return filled

    def assign_class(self, student_id: int, class_id: int) -> ClassAssignment:
        """Upsert on (student, class); an existing row is set back to active."""

        assignment = self.session.scalars(
            select(ClassAssignment).where(
                ClassAssignment.student_id == student_id,
                ClassAssignment.class_id == class_id,
            )
        ).first()
        if assignment is None:
            assignment = ClassAssignment(student_id=student_id, class_id=class_id)
            self.session.add(assignment)
        assignment.status = ClassAssignmentStatus.ACTIVE
        self.session.flush()
        return assignment
