"""
Client Portal
Log output setup.

``LOG_FORMAT`` picks ``json`` (one object per line, for aggregation) or
``text``.  Request fields the timing middleware attaches to its records
(request id, user, company, status, duration) appear in both formats.
"""

import json
import logging
import sys
from datetime import datetime, timezone

REQUEST_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "user_id",
    "company_id",
)
QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine")
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s%(context)s"


def _request_fields(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in REQUEST_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_request_fields(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Plain line; request id and user id trail the message when present."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        fields = _request_fields(record)
        tags = [f"{key}={fields[key]}" for key in ("request_id", "user_id") if fields.get(key)]
        record.context = f" [{' '.join(tags)}]" if tags else ""
        return super().format(record)


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    ``LOG_LEVEL`` defaults to WARNING under test, DEBUG in debug mode and
    INFO otherwise.  ``LOG_FORMAT`` defaults to ``json`` unless debugging
    or testing.
    """
    is_testing = app.config.get("TESTING", False)
    is_debug = app.config.get("DEBUG", False)

    default_level = "WARNING" if is_testing else ("DEBUG" if is_debug else "INFO")
    level_name = (app.config.get("LOG_LEVEL") or default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    log_format = (app.config.get("LOG_FORMAT") or ("text" if is_debug or is_testing else "json")).lower()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())

    root = logging.getLogger()
    # create_app runs more than once per process under test
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)
