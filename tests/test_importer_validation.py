from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from flask_app.importer.errors import DuplicateFoundWarning, IssueSeverity
from flask_app.importer.pipeline.lookups import ReferenceLookups
from flask_app.importer.pipeline.validation import validate_batch, validate_import_data, validate_row
from flask_app.models import Family, Student, db


@pytest.fixture
def lookups(app, first_grade, second_grade):
    return ReferenceLookups.load()


def _row(**overrides):
    row = {
        "studentName": "Cohen, Sarah",
        "parentName": "Cohen, Moshe and Rivka",
        "address": "123 Main St",
        "grade": "1st Grade",
        "class": "1A",
    }
    row.update(overrides)
    return row


def _codes(issues):
    return [issue.code for issue in issues]


def test_clean_row_is_valid_without_warnings(lookups):
    outcome = validate_row(_row(), lookups, 1)
    assert outcome.valid
    assert outcome.errors == []
    assert outcome.warnings == []
    assert outcome.student_name.first_name == "Sarah"
    assert [parent.first_name for parent in outcome.parent_names] == ["Moshe", "Rivka"]


def test_missing_names_are_errors(lookups):
    outcome = validate_row(_row(studentName="", parentName=None), lookups, 3)
    assert not outcome.valid
    assert [issue.message for issue in outcome.errors] == ["Student name is required", "Parent name is required"]
    assert _codes(outcome.errors) == ["MISSING_FIELD", "MISSING_FIELD"]


def test_unparseable_names_name_expected_formats(lookups):
    outcome = validate_row(_row(studentName="Sarah", parentName="Cohen,"), lookups)
    messages = [issue.message for issue in outcome.errors]
    assert 'Expected "Last, First" or "First Last"' in messages[0]
    assert "First and First" in messages[1]
    assert _codes(outcome.errors) == ["FORMAT", "FORMAT"]


def test_short_address_is_warning(lookups):
    outcome = validate_row(_row(address="1 A"), lookups)
    assert outcome.valid
    assert [issue.message for issue in outcome.warnings] == ["Address seems too short"]


def test_each_phone_field_validated_independently(lookups):
    outcome = validate_row(
        _row(homePhone="(555) 123-4567", fatherCell="555-1234", motherCell="12345"),
        lookups,
    )
    assert [issue.message for issue in outcome.errors] == [
        "Father cell: Phone number must have at least 10 digits",
        "Mother cell: Phone number must have at least 10 digits",
    ]
    assert [issue.field for issue in outcome.errors] == ["fatherCell", "motherCell"]
    assert _codes(outcome.errors) == ["PHONE_FORMAT", "PHONE_FORMAT"]


def test_unknown_grade_lists_available_and_suggests(lookups):
    outcome = validate_row(_row(grade="1st Grad", **{"class": ""}), lookups)
    assert not outcome.valid
    message = outcome.errors[0].message
    assert message.startswith('Grade "1st Grad" not found in system. Available grades: 1st Grade, 2nd Grade')
    assert 'Did you mean "1st Grade"?' in message
    assert outcome.errors[0].code == "LOOKUP_NOT_FOUND"


def test_unknown_grade_without_grades_says_none(app):
    outcome = validate_row(_row(**{"class": None}), ReferenceLookups(), 1)
    assert 'Available grades: None' in outcome.errors[0].message


def test_absent_grade_and_class_are_warnings(lookups):
    outcome = validate_row(_row(grade=None, **{"class": None}), lookups)
    assert outcome.valid
    assert _codes(outcome.warnings) == ["NO_GRADE", "NO_CLASS"]
    assert outcome.warnings[0].message == "No grade specified - student will be created without grade assignment"


def test_unknown_class_lists_classes_for_grade(lookups):
    outcome = validate_row(_row(**{"class": "3C"}), lookups)
    assert outcome.errors[0].message == 'Class "3C" not found for grade "1st Grade". Available classes: 1A, 1B'


def test_unknown_class_without_any_classes(app):
    outcome = validate_row(_row(grade=None, **{"class": "3C"}), ReferenceLookups(), 1)
    assert outcome.errors[0].message == 'Class "3C" not found. No classes found in system'


def test_class_in_other_grade_is_warning_not_error(lookups):
    outcome = validate_row(_row(**{"class": "2A"}), lookups)
    assert outcome.valid
    assert [issue.message for issue in outcome.warnings] == ['Class "2A" exists but is not in grade "1st Grade"']


def test_blank_family_id_is_warning(lookups):
    assert _codes(validate_row(_row(familyId="   "), lookups).warnings) == ["FAMILY_ID_EMPTY"]
    assert validate_row(_row(familyId=""), lookups).warnings == []


def test_amounts_warn_when_not_non_negative_numbers(lookups):
    outcome = validate_row(_row(tuition="$1,200.00", paid="-50", pledges="n/a"), lookups)
    assert outcome.valid
    assert [issue.message for issue in outcome.warnings] == [
        "Paid amount is not a valid number",
        "Pledges amount is not a valid number",
    ]


def test_unrecognised_date_of_birth_is_warning(lookups):
    assert validate_row(_row(dateOfBirth="03/14/2016"), lookups).warnings == []
    outcome = validate_row(_row(dateOfBirth="14th March"), lookups)
    assert _codes(outcome.warnings) == ["DATE_OF_BIRTH_INVALID"]


def test_validate_batch_counts_and_writes_nothing(lookups):
    rows = [
        _row(),
        _row(studentName="Levi, Dan", parentName="", address="1 A"),
        _row(studentName="Katz, Leah", grade=None),
    ]

    report = validate_batch(rows, lookups)
    payload = report.to_dict()

    assert payload["valid"] is False
    details = payload["details"]
    assert details["totalRows"] == 3
    assert details["validRows"] == 2
    assert details["invalidRows"] == 1
    assert details["totalErrors"] == 1
    assert details["totalWarnings"] == 2
    assert details["warningRows"] == 2
    assert details["totalDuplicates"] == 0
    assert payload["errors"][0]["row"] == 2
    assert payload["errors"][0]["data"]["studentName"] == "Levi, Dan"
    assert [result["row"] for result in details["validationResults"]] == [1, 2, 3]
    assert db.session.query(Family).count() == 0
    assert db.session.query(Student).count() == 0


def test_validate_batch_reports_identical_rows_as_mutual_duplicates(lookups):
    rows = [_row(grade=None, **{"class": None}), _row(grade=None, **{"class": None})]

    report = validate_batch(rows, lookups)

    assert [dup.row for dup in report.duplicates] == [1, 2]
    for dup, other_row in zip(report.duplicates, (2, 1)):
        assert len(dup.candidates) == 1
        candidate = dup.candidates[0]
        assert candidate.source == "batch"
        assert candidate.batch_row.row == other_row
        assert candidate.similarity_score == 50
    rendered = report.to_dict()["duplicates"][0]
    assert rendered["studentName"] == "Cohen, Sarah"
    assert rendered["action"] is None
    assert rendered["duplicates"][0]["similarityScore"] == 50
    for outcome in report.outcomes:
        assert [issue.message for issue in outcome.warnings if issue.code == "DUPLICATE_FOUND"] == [
            'Possible duplicate of "Cohen, Sarah": 1 other row in this upload'
        ]


def test_validate_batch_scores_existing_students(lookups, first_grade):
    family = Family(family_name="Cohen")
    db.session.add(family)
    db.session.flush()
    db.session.add(
        Student(first_name="Sarah", last_name="Cohen", family_id=family.id, grade_id=first_grade.id, student_id="S-1")
    )
    db.session.commit()

    report = validate_batch([_row(studentId="S-1")], lookups)

    candidate = report.duplicates[0].candidates[0]
    assert candidate.source == "existing"
    assert candidate.similarity_score == 95
    assert candidate.to_dict()["familyName"] == "Cohen"
    duplicate_warnings = [issue for issue in report.outcomes[0].warnings if issue.code == "DUPLICATE_FOUND"]
    assert duplicate_warnings and duplicate_warnings[0].severity is IssueSeverity.WARNING
    assert duplicate_warnings[0].message == 'Possible duplicate of "Cohen, Sarah": 1 existing student'


def test_duplicate_warning_names_each_candidate_source():
    mixed = DuplicateFoundWarning("Cohen, Sarah", 2, 1)
    assert mixed.message == 'Possible duplicate of "Cohen, Sarah": 2 existing students and 1 other row in this upload'
    assert mixed.candidate_count == 3
    assert mixed.to_issue().field == "studentName"

    batch_only = DuplicateFoundWarning("Cohen, Sarah", 0, 2)
    assert batch_only.message == 'Possible duplicate of "Cohen, Sarah": 2 other rows in this upload'


def test_validate_batch_skips_duplicate_check_for_invalid_rows(lookups):
    rows = [_row(parentName=""), _row(parentName="")]
    report = validate_batch(rows, lookups)
    assert report.duplicates == []


def test_duplicate_check_failure_becomes_warning(lookups):
    with patch(
        "flask_app.importer.pipeline.validation.find_duplicate_students",
        side_effect=OperationalError("SELECT", {}, Exception("locked")),
    ):
        report = validate_batch([_row()], lookups)
    assert report.outcomes[0].valid
    assert "DUPLICATE_CHECK_FAILED" in _codes(report.outcomes[0].warnings)


def test_validate_import_data_loads_lookups(app, first_grade):
    report = validate_import_data([_row()])
    assert report.valid
