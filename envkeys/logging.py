"""Logging setup shared by the API and the command line."""

from __future__ import annotations

import json
import logging
import sys
import time

from envkeys.config import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per record; message text is escaped by json.dumps."""

    converter = time.gmtime  # UTC timestamps

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger("envkeys")
    root.setLevel((level or settings.log_level).upper())
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%SZ"))
    root.addHandler(handler)
