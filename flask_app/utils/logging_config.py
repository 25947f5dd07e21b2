# flask_app/utils/logging_config.py
"""
Application logging setup.

Handlers are rebuilt on every call so tests can re-run ``setup_logging``
after changing ``LOG_LEVEL`` or the handler toggles.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask import current_app, has_request_context, request

_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

TEXT_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def __init__(self, app_name="Schoolhouse"):
        super().__init__()
        self.app_name = app_name

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
            "app": self.app_name,
        }
        if has_request_context():
            payload["request"] = {"method": request.method, "path": request.path}
        # Anything passed through ``extra=`` ends up as record attributes
        for key, value in vars(record).items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(app):
    if str(app.config.get("LOG_FORMAT", "text")).lower() == "json":
        return JSONFormatter(app.config.get("APP_NAME", "Schoolhouse"))
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(app):
    """Attach console and rotating file handlers to ``app.logger``."""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)
        handler.close()

    app.logger.setLevel(level)
    formatter = _build_formatter(app)

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        app.logger.addHandler(console)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, "schoolhouse.log"),
                maxBytes=app.config.get("LOG_FILE_MAX_BYTES", 10485760),
                backupCount=app.config.get("LOG_FILE_BACKUP_COUNT", 10),
            )
        except OSError as exc:
            app.logger.warning("File logging disabled, cannot open %s: %s", log_dir, exc)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            app.logger.addHandler(file_handler)

    if not app.logger.handlers:
        app.logger.addHandler(logging.NullHandler())

    app.logger.debug("Logging configured (level=%s, format=%s)", level_name, app.config.get("LOG_FORMAT"))
    return app.logger


def log_import_event(message, **fields):
    """Log an importer event with structured fields attached."""
    current_app.logger.info(message, extra={"importer": fields})
