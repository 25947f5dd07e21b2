"""
Utility helpers for importer configuration checks.
"""

from __future__ import annotations

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def get_max_rows(app=None) -> int:
    """Largest batch accepted by the HTTP and CLI entry points."""
    config = _get_config(app)
    return int(config.get("IMPORTER_MAX_ROWS", 5000))
