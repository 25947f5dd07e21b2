"""
Family/student importer package.

Provides conditional blueprint and CLI registration plus the two-phase
programmatic interface: ``validate_import_data`` (read-only) followed by
``bulk_import_families_and_students`` (writes).
"""

from __future__ import annotations

from flask import Flask

from flask_app.utils.importer import is_importer_enabled

from .cli import get_disabled_importer_group, importer_cli
from .metrics import record_importer_status
from .pipeline import bulk_import_families_and_students, validate_import_data
from .views import importer_blueprint

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "validate_import_data",
    "bulk_import_families_and_students",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(IMPORTER_EXTENSION_KEY, {"enabled": False})


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Mount the importer blueprint and CLI when ``IMPORTER_ENABLED`` is set.

    Safe to call repeatedly; state lives in ``app.extensions['importer']``.
    """
    enabled = is_importer_enabled(app)
    state = _ensure_extension_state(app)
    state["enabled"] = enabled
    record_importer_status(enabled)

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)
    app.logger.info("Family/student importer enabled")
