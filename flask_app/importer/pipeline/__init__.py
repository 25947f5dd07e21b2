"""
Family/student import pipeline.

Leaves first: names -> lookups -> validation / duplicates -> resolver -> summary.
"""

from .duplicates import (
    DuplicateCandidate,
    StudentIdentity,
    calculate_similarity_score,
    find_batch_duplicates,
    find_duplicate_students,
)
from .lookups import ClassRef, GradeRef, ReferenceLookups
from .names import ParsedName, parse_parent_names, parse_student_name, sanitize_text
from .resolver import (
    BatchContext,
    bulk_import_families_and_students,
    import_batch,
    infer_relationship,
    process_import_row,
)
from .summary import BatchSummary, DuplicateAction, RowImportResult, normalize_duplicate_actions
from .validation import (
    BatchValidationReport,
    DuplicateReport,
    ValidationOutcome,
    validate_batch,
    validate_import_data,
    validate_row,
)

__all__ = [
    "ParsedName",
    "sanitize_text",
    "parse_student_name",
    "parse_parent_names",
    "GradeRef",
    "ClassRef",
    "ReferenceLookups",
    "ValidationOutcome",
    "DuplicateReport",
    "BatchValidationReport",
    "validate_row",
    "validate_batch",
    "validate_import_data",
    "StudentIdentity",
    "DuplicateCandidate",
    "calculate_similarity_score",
    "find_duplicate_students",
    "find_batch_duplicates",
    "BatchContext",
    "infer_relationship",
    "process_import_row",
    "import_batch",
    "bulk_import_families_and_students",
    "DuplicateAction",
    "normalize_duplicate_actions",
    "RowImportResult",
    "BatchSummary",
]
