"""Tracionar — Structured Logging.

One handler per named logger under ``tracionar.*``. JSON lines by default;
``LOG_FORMAT=text`` switches to a single-line human format for local runs.
Context travels through ``extra=``; only the keys in ``EXTRA_FIELDS`` are kept.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from app.config import settings

EXTRA_FIELDS = (
    "account_id",
    "sync_mode",
    "records_touched",
    "duration_ms",
    "fingerprint",
    "endpoint",
    "status_code",
)


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message key=value ...``"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(f"{k}={v}" for k, v in _context(record).items())
        return f"{line} {context}" if context else line


def _formatter() -> logging.Formatter:
    if settings.log_format.lower() == "text":
        return TextFormatter()
    return JSONFormatter()


def get_logger(name: str) -> logging.Logger:
    """Return ``tracionar.<name>`` with a stdout handler attached once."""
    logger = logging.getLogger(f"tracionar.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter())
        logger.addHandler(handler)
        # Uvicorn's root handler would print every line a second time
        logger.propagate = False
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger
