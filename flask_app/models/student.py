# flask_app/models/student.py
"""
Student model and class assignments
"""

from datetime import date

from sqlalchemy import Enum, Index
from sqlalchemy.orm import validates

from .base import BaseModel, db
from .enums import ClassAssignmentStatus, EnrollmentStatus


class Student(BaseModel):
    """Enrolled child belonging to one family and optionally one grade"""

    __tablename__ = "students"

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey("families.id"), nullable=True, index=True)
    grade_id = db.Column(db.Integer, db.ForeignKey("grades.id"), nullable=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    student_id = db.Column(db.String(50), nullable=True, index=True)  # School-issued identifier
    date_of_birth = db.Column(db.Date, nullable=True, index=True)
    enrollment_status = db.Column(
        Enum(EnrollmentStatus, name="enrollment_status_enum"),
        default=EnrollmentStatus.ACTIVE,
        nullable=False,
    )

    family = db.relationship("Family", back_populates="students")
    grade = db.relationship("Grade")
    parent_links = db.relationship("StudentParent", back_populates="student", cascade="all, delete-orphan")
    class_assignments = db.relationship("ClassAssignment", back_populates="student", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_student_name", "last_name", "first_name"),)

    def __repr__(self):
        return f"<Student {self.get_full_name()}>"

    @validates("first_name", "last_name")
    def validate_name(self, key, value):
        """Students always need both name parts"""
        if value is None or not str(value).strip():
            raise ValueError(f"Student {key} is required")
        return value

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def identity(self):
        """Fields used for duplicate scoring"""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "student_id": self.student_id,
            "date_of_birth": self.date_of_birth,
            "grade_id": self.grade_id,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "familyId": self.family_id,
            "gradeId": self.grade_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "studentId": self.student_id,
            "dateOfBirth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "enrollmentStatus": self.enrollment_status.value if self.enrollment_status else None,
            "createdAt": self._isoformat(self.created_at),
        }


class ClassAssignment(BaseModel):
    """
    A student's seat in a class.
    At most one row exists per (student, class) pair.
    """

    __tablename__ = "student_classes"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id"), nullable=False)
    status = db.Column(
        Enum(ClassAssignmentStatus, name="class_assignment_status_enum"),
        default=ClassAssignmentStatus.ACTIVE,
        nullable=False,
    )
    enrollment_date = db.Column(db.Date, nullable=False, default=date.today)

    student = db.relationship("Student", back_populates="class_assignments")
    school_class = db.relationship("SchoolClass", back_populates="assignments")

    __table_args__ = (db.UniqueConstraint("student_id", "class_id", name="_student_class_uc"),)

    def __repr__(self):
        return f"<ClassAssignment student={self.student_id} class={self.class_id} ({self.status.value})>"
