from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_RESERVED_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}

# log_event keeps its fields off the LogRecord namespace, so any field name is allowed.
_EVENT_FIELDS = "parley_fields"
_CORE_KEYS = ("ts", "level", "logger", "message", "event")


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, _EVENT_FIELDS, None)
        if fields is not None:
            payload["event"] = record.msg
            for key, value in fields.items():
                payload.setdefault(key if key not in _CORE_KEYS else f"field_{key}", value)
        for key, value in record.__dict__.items():
            if key in _RESERVED_FIELDS or key == _EVENT_FIELDS or key.startswith("_"):
                continue
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    """Structured record: `event` names what happened, `fields` become top-level JSON keys."""
    if logger is None:
        return
    logger.log(level, event, extra={_EVENT_FIELDS: fields})


def setup_app_logger(
    name: str = "parley.app",
    *,
    debug: bool = False,
) -> tuple[logging.Logger, Path, Path]:
    from parley.app.config import app_paths

    paths = app_paths()
    log_dir = paths.config_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "parley.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    logger.handlers.clear()

    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    logger.addHandler(handler)
    return logger, log_dir, log_path
