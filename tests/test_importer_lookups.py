from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from flask_app.importer.errors import LookupLoadError
from flask_app.importer.pipeline.lookups import ClassRef, GradeRef, ReferenceLookups
from flask_app.models import SchoolClass, db


def _snapshot():
    grades = (GradeRef(1, "1st Grade"), GradeRef(2, "2nd Grade"))
    classes = (
        ClassRef(10, "1A", 1),
        ClassRef(11, "Art", 2),
        ClassRef(12, "Art", 1),
        ClassRef(13, "Music", None),
    )
    return ReferenceLookups(grades=grades, classes=classes)


def test_find_grade_is_case_insensitive_exact():
    lookups = _snapshot()
    assert lookups.find_grade("1ST grade") == GradeRef(1, "1st Grade")
    assert lookups.find_grade("1st") is None
    assert lookups.find_grade("") is None


def test_find_class_prefers_grade_scope():
    lookups = _snapshot()
    second = lookups.find_grade("2nd Grade")
    assert lookups.find_class("art", second).id == 11


def test_find_class_falls_back_to_any_grade():
    lookups = _snapshot()
    second = lookups.find_grade("2nd Grade")
    assert lookups.find_class("1a", second).id == 10
    assert lookups.find_class("Music").id == 13
    assert lookups.find_class("Drama", second) is None


def test_class_names_scoped_to_grade():
    lookups = _snapshot()
    first = lookups.find_grade("1st Grade")
    assert lookups.class_names(first) == ["1A", "Art"]
    assert lookups.class_names() == ["1A", "Art", "Art", "Music"]


def test_suggest_returns_close_name_only():
    lookups = _snapshot()
    assert lookups.suggest("1st Grad", lookups.grade_names()) == "1st Grade"
    assert lookups.suggest("Kindergarten", lookups.grade_names()) is None
    assert lookups.suggest("1st Grad", []) is None


def test_load_reads_grades_and_classes(app, first_grade):
    db.session.add(SchoolClass(name="Library"))
    db.session.commit()

    lookups = ReferenceLookups.load()

    assert lookups.grade_names() == ["1st Grade"]
    assert sorted(lookups.class_names()) == ["1A", "1B", "Library"]
    assert lookups.find_class("1b", lookups.find_grade("1st grade")).grade_id == first_grade.id
    assert lookups.suggestion_cutoff == 80


def test_load_failure_raises_lookup_load_error(app):
    with patch.object(db.session, "execute", side_effect=OperationalError("SELECT", {}, Exception("db down"))):
        with pytest.raises(LookupLoadError):
            ReferenceLookups.load()
