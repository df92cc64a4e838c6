"""Structured Logging — JSON log lines carrying slot/request/user identifiers.

Invariants:
    - Every line has timestamp (from the record, UTC), level, logger and message
    - Identifier extras (user_id, slot_id, request_id) and feed extras (entity,
      subscribers) are emitted only when the call site passed them
    - setup_logging is idempotent: a second call replaces its own handler, never stacks

Design Decisions:
    - Stdlib logging + a small JSONFormatter instead of a logging framework
    - Extras are stringified unless numeric: UUIDs and enums serialize without a
      custom JSON encoder
    - SQLAlchemy engine logging pinned to WARNING so DEBUG runs stay readable
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_KEYS = (
    "user_id", "slot_id", "request_id", "error_code", "entity", "path",
    "subscribers",
)

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_NAME = "slotswap"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is None:
                continue
            entry[key] = value if isinstance(value, (int, float)) else str(value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the application handler on the root logger."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT),
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return handler
