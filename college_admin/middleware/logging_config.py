"""
Logging setup for the certificate service.

Every record emitted while a request is being handled is stamped with the
request id and the caller (user id, role) by RequestContextFilter, so a
workflow log line like "Certificate 7: FORWARD by hod" can be joined with
the timing line of the request that caused it.

Output format comes from LOG_FORMAT ("json" or "readable"); when unset,
JSON is used unless the app runs in debug or testing mode.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "taskName",
}

# Shown inline by the readable formatter, in this order
_READABLE_CONTEXT = ("request_id", "role", "certificate_id", "event_type")


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: value for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and value is not None
    }


class RequestContextFilter(logging.Filter):
    """Copy request id and caller identity from ``flask.g`` onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            for attr, source in (
                ("request_id", "request_id"),
                ("user_id", "jwt_user_id"),
                ("role", "current_role"),
            ):
                if getattr(record, attr, None) is None:
                    setattr(record, attr, getattr(g, source, None))
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extras(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single-line format for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        context = " ".join(
            f"{key}={getattr(record, key)}"
            for key in _READABLE_CONTEXT
            if getattr(record, key, None) is not None
        )
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if context:
            line += f" ({context})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger, configured from app.config."""
    is_testing = app.config.get("TESTING", False)
    is_dev = app.config.get("DEBUG", False) or is_testing

    level_name = (app.config.get("LOG_LEVEL") or ("DEBUG" if is_dev else "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = (app.config.get("LOG_FORMAT") or ("readable" if is_dev else "json")).lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Replaced, not appended, so each create_app() leaves exactly one handler
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
