"""
Structured logging for the MockTrial API.

Every module logs through ``logging.getLogger(__name__)``; this module wires
the ``mocktrial`` logger hierarchy to a single JSON (or plain) stream handler
and exposes ``logger`` for the app entry point and jobs.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime

from mocktrial.core.config import settings

_EXTRA_FIELDS = ("correlation_id", "tab_id", "method", "path", "status_code")


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logging(name: str = "mocktrial", level: str | None = None) -> logging.Logger:
    """Attach one handler to the named logger. Safe to call repeatedly."""
    log = logging.getLogger(name)
    log.setLevel(level or settings.LOG_LEVEL)

    if not any(getattr(h, "_mocktrial_handler", False) for h in log.handlers):
        handler = logging.StreamHandler()
        if settings.LOG_JSON:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
        handler._mocktrial_handler = True
        log.addHandler(handler)

    return log


logger = setup_logging()
