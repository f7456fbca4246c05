from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

EXTRA_FIELDS = ("task_id", "method", "path", "status_code", "duration_ms", "sync_state")


class JsonLogFormatter(logging.Formatter):
    """Render log records as JSON lines with request and task metadata when available."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - base class contract
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=True)


def init_logging(level: str = "INFO", json_logs: bool = True, logger_name: Optional[str] = "stoz") -> logging.Logger:
    """Configure logging for the migration client and return its logger."""

    handler = logging.StreamHandler()
    if json_logs:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logger = logging.getLogger(logger_name)
    # Reset handlers to avoid duplicate logs on re-initialisation.
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False
    return logger
