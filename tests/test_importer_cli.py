import json
from pathlib import Path

from flask_app.models import Family, ImportRun, ImportRunStatus, Student, db


def _write_csv(tmp_path: Path, body: str) -> Path:
    csv_file = tmp_path / "families.csv"
    csv_file.write_text(
        "Student Name,Parent Name,Address,Grade,Class\n" + body,
        encoding="utf-8",
    )
    return csv_file


GOOD_ROW = '"Cohen, Sarah","Cohen, Moshe and Rivka",123 Main St,1st Grade,1A\n'


def test_validate_prints_summary_and_messages(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW + '"Levi, Dan",,1 A,1st Grade,1A\n')

    result = runner.invoke(args=["importer", "validate", "--file", str(csv_path)])

    assert result.exit_code == 0, result.output
    assert "Validated 2 rows: 1 valid, 1 invalid, 0 with possible duplicates." in result.output
    assert "row 2: ERROR Parent name is required" in result.output
    assert "row 2: warning Address seems too short" in result.output
    assert db.session.query(Family).count() == 0


def test_validate_json_output(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW)

    result = runner.invoke(args=["importer", "validate", "--file", str(csv_path), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["valid"] is True
    assert payload["details"]["totalRows"] == 1


def test_run_imports_and_prints_counts(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW)

    result = runner.invoke(args=["importer", "run", "--file", str(csv_path)])

    assert result.exit_code == 0, result.output
    assert "imported 1 of 1 rows" in result.output
    assert "families_created : 1" in result.output
    assert "students_created : 1" in result.output
    run = db.session.query(ImportRun).one()
    assert run.source == "csv"
    assert run.status is ImportRunStatus.SUCCEEDED


def test_run_applies_actions_file(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW)
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps({"row_1": "update"}), encoding="utf-8")

    runner.invoke(args=["importer", "run", "--file", str(csv_path)])
    result = runner.invoke(
        args=["importer", "run", "--file", str(csv_path), "--actions", str(actions), "--summary-json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["studentsUpdated"] == 1
    assert payload["studentsCreated"] == 0
    assert db.session.query(Student).count() == 1


def test_run_rejects_unknown_action(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW)
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps({"row_1": "skip"}), encoding="utf-8")

    result = runner.invoke(args=["importer", "run", "--file", str(csv_path), "--actions", str(actions)])

    assert result.exit_code != 0
    assert "Unknown duplicate action 'skip'" in result.output
    assert db.session.query(ImportRun).count() == 0


def test_missing_required_header_is_reported(app, runner, tmp_path):
    csv_path = tmp_path / "bad.csv"
    csv_path.write_text("Student Name,Grade\nSarah Cohen,1st Grade\n", encoding="utf-8")

    result = runner.invoke(args=["importer", "validate", "--file", str(csv_path)])

    assert result.exit_code != 0
    assert "Missing required columns: parentName" in result.output


def test_row_limit_enforced(app, runner, tmp_path):
    app.config["IMPORTER_MAX_ROWS"] = 1
    csv_path = _write_csv(tmp_path, GOOD_ROW + GOOD_ROW)

    result = runner.invoke(args=["importer", "run", "--file", str(csv_path)])

    assert result.exit_code != 0
    assert "the limit is 1" in result.output


def test_commands_refuse_when_flag_turned_off(app, runner, tmp_path):
    app.config["IMPORTER_ENABLED"] = False
    csv_path = _write_csv(tmp_path, GOOD_ROW)

    result = runner.invoke(args=["importer", "validate", "--file", str(csv_path)])

    assert result.exit_code != 0
    assert "Importer is disabled" in result.output


def test_undecodable_csv_is_reported_without_traceback(app, runner, tmp_path):
    csv_path = tmp_path / "families.csv"
    csv_path.write_bytes(b"Student Name,Parent Name\n\xff\xfe\xfa,Cohen\n")

    result = runner.invoke(args=["importer", "validate", "--file", str(csv_path)])

    assert result.exit_code != 0
    assert "families.csv is not valid UTF-8 text" in result.output
    assert not isinstance(result.exception, UnicodeDecodeError)
    assert "Traceback" not in result.output


def test_undecodable_actions_file_is_reported(app, runner, tmp_path, first_grade):
    csv_path = _write_csv(tmp_path, GOOD_ROW)
    actions = tmp_path / "actions.json"
    actions.write_bytes(b'{"row_1": "\xff\xfe"}')

    result = runner.invoke(args=["importer", "run", "--file", str(csv_path), "--actions", str(actions)])

    assert result.exit_code != 0
    assert "actions.json is not valid UTF-8 text" in result.output
    assert not isinstance(result.exception, UnicodeDecodeError)
    assert db.session.query(ImportRun).count() == 0
