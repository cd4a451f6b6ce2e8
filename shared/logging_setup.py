"""
JSON log output for the churn service.

Every module logs through `logging.getLogger(__name__)`; this module only
decides how records are rendered.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

SERVICE_NAME = "churn-service"


class JSONFormatter(logging.Formatter):
    """Formatter that dumps records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "func": record.funcName,
            "line": record.lineno,
            "service": SERVICE_NAME,
        }

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Replace handlers so repeated startups (tests, reloads) don't duplicate lines
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    # urllib3 is chatty at INFO about connection pools
    logging.getLogger("urllib3").setLevel(logging.WARNING)
