"""
CLI commands for the family/student importer.

``flask importer validate --file rows.csv`` prints the review report;
``flask importer run --file rows.csv [--actions actions.json]`` imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from flask.cli import ScriptInfo

from flask_app.importer.adapters import CSVAdapterError, FamilyCSVAdapter
from flask_app.importer.errors import InvalidDuplicateAction, LookupLoadError
from flask_app.importer.pipeline import bulk_import_families_and_students, validate_import_data
from flask_app.utils.importer import get_max_rows, is_importer_enabled


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Family/student importer commands.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. " "Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _read_rows(app, file_path: Path) -> list[dict[str, str]]:
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            rows = FamilyCSVAdapter(handle).read_rows()
    except CSVAdapterError as exc:
        raise click.ClickException(str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"{file_path.name} is not valid UTF-8 text: {exc}") from exc

    max_rows = get_max_rows(app)
    if len(rows) > max_rows:
        raise click.ClickException(f"{file_path.name} has {len(rows)} rows; the limit is {max_rows}.")
    return rows


def _read_actions(actions_path: Optional[Path]) -> dict:
    if actions_path is None:
        return {}
    try:
        payload = json.loads(actions_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{actions_path.name} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"{actions_path.name} is not valid UTF-8 text: {exc}") from exc
    if not isinstance(payload, dict):
        raise click.ClickException("Duplicate actions file must contain a JSON object.")
    return payload


@importer_cli.command("validate")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="CSV file with canonical column headers.",
)
@click.option("--json", "as_json", is_flag=True, help="Emit the full report as JSON.")
@click.pass_context
def importer_validate(ctx, file_path: Path, as_json: bool):
    """Validate a CSV without writing anything."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    rows = _read_rows(app, file_path)
    try:
        report = validate_import_data(rows)
    except LookupLoadError as exc:
        raise click.ClickException(str(exc)) from exc

    payload = report.to_dict()
    if as_json:
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    details = payload["details"]
    click.echo(
        f"Validated {details['totalRows']} rows: {details['validRows']} valid, "
        f"{details['invalidRows']} invalid, {details['totalDuplicates']} with possible duplicates."
    )
    for entry in payload["errors"]:
        for message in entry["errors"]:
            click.echo(f"  row {entry['row']}: ERROR {message}")
    for entry in payload["warnings"]:
        for message in entry["warnings"]:
            click.echo(f"  row {entry['row']}: warning {message}")


@importer_cli.command("run")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="CSV file with canonical column headers.",
)
@click.option(
    "--actions",
    "actions_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help='JSON object of duplicate decisions, e.g. {"row_2": "update"}.',
)
@click.option("--summary-json", is_flag=True, help="Emit the full summary payload as JSON.")
@click.pass_context
def importer_run(ctx, file_path: Path, actions_path: Optional[Path], summary_json: bool):
    """Import families and students from a CSV."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    rows = _read_rows(app, file_path)
    actions = _read_actions(actions_path)

    try:
        summary = bulk_import_families_and_students(rows, actions, source="csv")
    except (InvalidDuplicateAction, LookupLoadError) as exc:
        raise click.ClickException(str(exc)) from exc

    app.logger.info(
        "Importer run completed via CLI",
        extra={"importer_run_id": summary.run_id, "importer_file": str(file_path)},
    )
    if summary_json:
        click.echo(json.dumps(summary.to_dict(), indent=2, default=str))
        return

    click.echo(
        f"Run {summary.run_id} imported {summary.imported} of {len(rows)} rows.\n"
        f"  families_created : {summary.families_created}\n"
        f"  parents_created  : {summary.parents_created}\n"
        f"  students_created : {summary.students_created}\n"
        f"  students_updated : {summary.students_updated}\n"
        f"  class_assignments: {summary.class_assignments}\n"
        f"  errors           : {summary.error_count}"
    )
    for result in summary.results:
        for issue in result.errors:
            click.echo(f"  row {result.row}: {issue.message}")
