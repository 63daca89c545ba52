"""
Structured Logging - JSON formatter and setup.

JSON lines in production, human-readable text in development.
setup_logging() is called once from the app lifespan.
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = ("user_id", "school_id", "path", "status_code", "operation")


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json", silent: bool = False):
    """Configure the root logger for the application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.handlers = [handler]
    if silent:
        logging.root.setLevel(logging.CRITICAL)
    else:
        logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
