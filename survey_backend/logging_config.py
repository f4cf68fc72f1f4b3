"""
Logging setup for the service process.

Adapters pass structured context through ``extra=``; the formatter appends
those fields to the line as JSON so they survive plain-text log shipping.
"""

from __future__ import annotations

import json
import logging

_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ExtraFieldsFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extras:
            line = f"{line} {json.dumps(extras, default=str, ensure_ascii=False)}"
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger (no-op if one exists)."""
    handler = logging.StreamHandler()
    handler.setFormatter(ExtraFieldsFormatter(LOG_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler])
