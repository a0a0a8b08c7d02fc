"""JSON structured logging configuration."""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys passed through `extra=` that are copied into the JSON entry.
_EXTRA_FIELDS = ("user_id", "scene_id", "metric", "attempt", "operation", "status_code")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON with required fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["error_type"] = record.exc_info[0].__name__
            log_entry["error_detail"] = self.formatException(record.exc_info)
        elif getattr(record, "error_type", None):
            log_entry["error_type"] = record.error_type
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(service_name: str = "fluentdrama") -> logging.Logger:
    """Configure and return a JSON structured logger."""
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(service_name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

    return logger
