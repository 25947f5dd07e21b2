"""Write primitives over the family/student store."""

from .family_service import FamilyService, ParentService
from .student_service import StudentService

__all__ = ["FamilyService", "ParentService", "StudentService"]
