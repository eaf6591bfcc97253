"""
Logging setup for the curator API.

Loggers are plain ``logging`` loggers obtained through ``get_logger(__name__)``.
Structured context goes in ``extra={"extra_fields": {...}}`` and is merged into
the JSON line by ``JsonFormatter``.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import sys
from typing import Any

_CONFIGURED_HANDLER_NAME = "curator-stdout"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": dt.datetime.now(dt.UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(extra_fields)
        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Attach a single stdout handler to the root logger.

    Safe to call repeatedly: an existing curator handler is reconfigured instead
    of being duplicated.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = next((h for h in root.handlers if h.get_name() == _CONFIGURED_HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_CONFIGURED_HANDLER_NAME)
        root.addHandler(handler)

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(fmt="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
