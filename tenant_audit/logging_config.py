"""Structured JSON logging configuration."""

from __future__ import annotations

import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

LOG_FILE_NAME = "tenant-audit.log"

_EXTRA_KEYS = (
    "pipeline", "label", "batch", "attempt", "items", "records",
    "sleep_s", "duration_s",
)


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        # Merge extra fields attached by pipelines and the fetch helpers
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO", report_dir: Optional[str] = None) -> None:
    """Set up the audit logger: JSON to stderr, plus a copy in the report dir."""
    root = logging.getLogger("audit")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    if report_dir:
        root.addHandler(_file_handler(report_dir))


def _file_handler(report_dir: str) -> logging.FileHandler:
    os.makedirs(report_dir, exist_ok=True)
    handler = logging.FileHandler(os.path.join(report_dir, LOG_FILE_NAME), encoding="utf-8")
    handler.setFormatter(JsonFormatter())
    return handler


@contextmanager
def report_log(report_dir: str) -> Iterator[str]:
    """Copy audit log records into report_dir while the block runs.

    Scheduled runs write each job's log next to its reports. Records from
    jobs running at the same time land in every open report log.
    """
    root = logging.getLogger("audit")
    handler = _file_handler(report_dir)
    root.addHandler(handler)
    try:
        yield handler.baseFilename
    finally:
        root.removeHandler(handler)
        handler.close()
