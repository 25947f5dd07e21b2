import io

import pytest

from flask_app.importer.adapters.csv_families import CSVHeaderError, FamilyCSVAdapter, normalize_header


def _make_csv(contents: str) -> io.StringIO:
    stream = io.StringIO(contents)
    stream.seek(0)
    return stream


def test_normalize_header_ignores_case_spaces_and_underscores():
    assert normalize_header("Student Name") == "studentname"
    assert normalize_header("\ufeffstudent_name ") == "studentname"
    assert normalize_header(None) == ""


def test_adapter_maps_headers_to_canonical_names():
    csv_stream = _make_csv(
        "Student Name,Parent Name,Home Phone,Class,Notes\n"
        '"Cohen, Sarah","Cohen, Moshe and Rivka",555-123-4567,1A,allergic to nuts\n'
    )

    adapter = FamilyCSVAdapter(csv_stream)
    rows = adapter.read_rows()

    assert adapter.header.canonical_headers == ("studentName", "parentName", "homePhone", "class", None)
    assert adapter.header.ignored_headers == ("Notes",)
    assert rows == [
        {
            "studentName": "Cohen, Sarah",
            "parentName": "Cohen, Moshe and Rivka",
            "homePhone": "555-123-4567",
            "class": "1A",
        }
    ]


def test_adapter_rejects_missing_required_headers():
    adapter = FamilyCSVAdapter(_make_csv("studentName,grade\nCohen Sarah,1st Grade\n"))

    with pytest.raises(CSVHeaderError) as excinfo:
        adapter.read_rows()

    assert "Missing required columns: parentName" in str(excinfo.value)
    assert excinfo.value.missing == ("parentName",)


def test_adapter_rejects_duplicate_columns():
    adapter = FamilyCSVAdapter(_make_csv("studentName,parentName,student_name\na,b,c\n"))

    with pytest.raises(CSVHeaderError) as excinfo:
        adapter.read_rows()

    assert excinfo.value.duplicates == ("studentName",)


def test_adapter_rejects_empty_file():
    with pytest.raises(CSVHeaderError):
        FamilyCSVAdapter(_make_csv("")).read_rows()


def test_adapter_skips_blank_rows():
    csv_stream = _make_csv("studentName,parentName\n" "Sarah Cohen,Moshe\n" ",  \n" "Dan Levi,Yosef\n")

    adapter = FamilyCSVAdapter(csv_stream)
    rows = adapter.read_rows()

    assert [row["studentName"] for row in rows] == ["Sarah Cohen", "Dan Levi"]
    assert adapter.rows_skipped_blank == 1


def test_adapter_can_keep_blank_rows():
    adapter = FamilyCSVAdapter(_make_csv("studentName,parentName\n,\n"), skip_blank_rows=False)
    assert adapter.read_rows() == [{"studentName": "", "parentName": ""}]
