# flask_app/models/enums.py
"""
Enumerations shared by the family, student and class models.
"""

import enum


class EnrollmentStatus(str, enum.Enum):
    """Student enrollment lifecycle"""

    ACTIVE = "active"
    INACTIVE = "inactive"
    WITHDRAWN = "withdrawn"
    GRADUATED = "graduated"


class ParentRelationship(str, enum.Enum):
    """Relationship of a parent/guardian to a student"""

    FATHER = "father"
    MOTHER = "mother"
    GUARDIAN = "guardian"


class ClassAssignmentStatus(str, enum.Enum):
    """Status of a student's seat in a class"""

    ACTIVE = "active"
    DROPPED = "dropped"
    COMPLETED = "completed"
