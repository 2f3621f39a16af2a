"""JSON logging with stable schema."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from geolite_import.common.constants import JSON_LOG_FIELDS
from geolite_import.common.fs import ensure_dir
from geolite_import.common.time_utils import utc_timestamp_iso


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "level": record.levelname,
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
            "table": getattr(record, "table", None),
            "event": getattr(record, "event", None),
            "status": getattr(record, "status", None),
            "duration_ms": getattr(record, "duration_ms", None),
            "rows_in": getattr(record, "rows_in", None),
            "rows_out": getattr(record, "rows_out", None),
            "batch": getattr(record, "batch", None),
            "error_code": getattr(record, "error_code", None),
            "message": record.getMessage(),
        }
        for field in JSON_LOG_FIELDS:
            payload.setdefault(field, None)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_logger(run_id: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(f"geolite_import.{run_id}")
    logger.setLevel(level.upper())
    logger.handlers.clear()
    logger.propagate = False

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    return logger


@contextmanager
def error_log_destination(logger: logging.Logger, log_path: Path | None) -> Iterator[logging.Logger]:
    """Mirror the logger into ``log_path`` for the duration of the block."""
    if log_path is None:
        yield logger
        return

    ensure_dir(log_path.parent)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    logger.addHandler(file_handler)
    try:
        yield logger
    finally:
        logger.removeHandler(file_handler)
        file_handler.close()


def log_event(logger: logging.Logger, message: str, **event_fields: Any) -> None:
    logger.info(message, extra=event_fields)


def log_failure(logger: logging.Logger, message: str, *, exc_info: bool = False, **event_fields: Any) -> None:
    logger.error(message, exc_info=exc_info, extra=event_fields)
