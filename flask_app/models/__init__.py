# flask_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .enums import ClassAssignmentStatus, EnrollmentStatus, ParentRelationship
from .family import Family, Parent, StudentParent
from .importer import ImportRun, ImportRunStatus
from .school import Grade, SchoolClass
from .student import ClassAssignment, Student

__all__ = [
    "db",
    "BaseModel",
    # School structure
    "Grade",
    "SchoolClass",
    # Families
    "Family",
    "Parent",
    "StudentParent",
    # Students
    "Student",
    "ClassAssignment",
    # Enums
    "EnrollmentStatus",
    "ParentRelationship",
    "ClassAssignmentStatus",
    # Importer
    "ImportRun",
    "ImportRunStatus",
]
