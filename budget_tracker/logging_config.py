"""
Structured Logging Configuration Module

Budget events (loan payments, bill and recurring postings) carry the action
name and the record they touched as structured fields, rendered as JSON lines
or plain text depending on `BUDGET_LOG_FORMAT`.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Attributes log_action attaches to a record, in output order
EVENT_FIELDS = ("action", "collection", "record_id", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; event fields are included only when set"""

    def format(self, record):
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in EVENT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "budget_tracker",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Point the package logger at a single handler.

    Calling it again replaces the previous handler, so settings can be
    re-applied without duplicating output.
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, collection: Optional[str] = None,
               record_id: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a budget event with its structured fields.

    Args:
        level: Level name, e.g. "info" or "warning"
        action: Event name such as "loan_payment" or "bill_autopay"
        collection: Collection the event wrote to
        record_id: Primary record affected
        extra: Event details (amounts, account ids)
    """
    fields = dict(zip(EVENT_FIELDS, (action, collection, record_id, extra)))
    logger.log(
        logging.getLevelName(level.upper()), message,
        extra={k: v for k, v in fields.items() if v},
        stacklevel=2
    )
