"""
Importer blueprint endpoints: health plus the validate and import phases.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from flask_app.importer.errors import InvalidDuplicateAction, LookupLoadError
from flask_app.importer.pipeline import bulk_import_families_and_students, validate_import_data
from flask_app.utils.importer import get_max_rows, is_importer_enabled

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


def _json_error(message: str, status: HTTPStatus, **extra):
    payload = {"success": False, "error": message}
    payload.update(extra)
    return jsonify(payload), status


def _ensure_importer_enabled_api():
    if not is_importer_enabled(current_app):
        return _json_error("Importer is disabled.", HTTPStatus.NOT_FOUND)
    return None


def _extract_rows(payload):
    """Return (rows, error_response)."""
    if not isinstance(payload, dict):
        return None, _json_error("Request body must be a JSON object.", HTTPStatus.BAD_REQUEST)
    rows = payload.get("rows")
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        return None, _json_error('"rows" must be a list of objects.', HTTPStatus.BAD_REQUEST)
    max_rows = get_max_rows(current_app)
    if len(rows) > max_rows:
        return None, _json_error(
            f"Too many rows: {len(rows)} submitted, limit is {max_rows}.",
            HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
        )
    return rows, None


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Lightweight health endpoint proving the importer blueprint mounted correctly.
    """
    return (
        jsonify(
            {
                "status": "ok",
                "enabled": is_importer_enabled(current_app),
                "atomicRows": bool(current_app.config.get("IMPORTER_ATOMIC_ROWS", True)),
                "maxRows": get_max_rows(current_app),
            }
        ),
        200,
    )


@importer_blueprint.post("/families/validate")
def validate_families():
    """Validate rows and report errors, warnings and duplicate candidates. Writes nothing."""
    disabled = _ensure_importer_enabled_api()
    if disabled is not None:
        return disabled

    rows, error = _extract_rows(request.get_json(silent=True))
    if error is not None:
        return error

    try:
        report = validate_import_data(rows)
    except LookupLoadError as exc:
        return _json_error(str(exc), HTTPStatus.SERVICE_UNAVAILABLE)

    payload = report.to_dict()
    payload["success"] = True
    return jsonify(payload), HTTPStatus.OK


@importer_blueprint.post("/families/import")
def import_families():
    """Import rows, applying per-row duplicate decisions."""
    disabled = _ensure_importer_enabled_api()
    if disabled is not None:
        return disabled

    payload = request.get_json(silent=True)
    rows, error = _extract_rows(payload)
    if error is not None:
        return error

    duplicate_actions = payload.get("duplicateActions")
    if duplicate_actions is not None and not isinstance(duplicate_actions, dict):
        return _json_error('"duplicateActions" must be an object.', HTTPStatus.BAD_REQUEST)

    try:
        summary = bulk_import_families_and_students(rows, duplicate_actions, source="api")
    except InvalidDuplicateAction as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST, key=exc.key)
    except LookupLoadError as exc:
        return _json_error(str(exc), HTTPStatus.SERVICE_UNAVAILABLE)

    current_app.logger.info(
        "Import via API: %d imported, %d failed", summary.imported, summary.error_count
    )
    body = summary.to_dict()
    body["success"] = True
    return jsonify(body), HTTPStatus.OK
