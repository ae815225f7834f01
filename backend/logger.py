"""
Structured JSON logging - one JSON line per record.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from config import LOG_LEVEL

SERVICE_NAME = "vb-scheduler"


class JSONFormatter(logging.Formatter):
    """Emit every log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_data["error"] = str(record.exc_info[1])
            log_data["error_type"] = type(record.exc_info[1]).__name__
        return json.dumps(log_data)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger that writes JSON lines to stdout."""
    logger = logging.getLogger(name or SERVICE_NAME)
    if not logger.handlers:
        logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    return logger
