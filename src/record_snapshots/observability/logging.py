"""Structured logging for the snapshot engine.

Every engine log line is one JSON object whose envelope carries the snapshot
fields an operator filters on: ``event``, ``label`` and ``backend``. These
keys are always present (null when the call site has none). Anything else the
call site reports is nested under ``context``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO


PACKAGE_LOGGER = "record_snapshots"
ENVELOPE_FIELDS = ("event", "label", "backend")


class JsonFormatter(logging.Formatter):
    """Formats records as JSONL with the snapshot envelope."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }
        for key in ENVELOPE_FIELDS:
            entry[key] = getattr(record, key, None)
        entry["message"] = record.getMessage()

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def log_event(
    logger: logging.Logger,
    event: str,
    message: str,
    *,
    level: int = logging.INFO,
    label: Optional[str] = None,
    backend: Optional[str] = None,
    **context: Any,
) -> None:
    """Logs one engine event with the envelope fields set.

    Args:
        logger: Module logger to write through.
        event: Machine-readable event name, e.g. ``snapshot_saved``.
        message: Human-readable line.
        level: Logging level.
        label: Snapshot label the event concerns.
        backend: Name of the storage backend involved.
        **context: Additional fields, nested under ``context``.
    """
    logger.log(
        level,
        message,
        extra={
            "event": event,
            "label": label,
            "backend": backend,
            "context": context,
        },
    )


def setup_logging(
    level: Optional[str] = None, stream: Optional[TextIO] = None
) -> logging.Logger:
    """Attaches a JSON handler to the engine's package logger.

    The root logger is left alone so host applications keep their own
    configuration.

    Args:
        level: Log level override. Defaults to ``SNAPSHOT_LOG_LEVEL``, then
            ``LOG_LEVEL``, then INFO.
        stream: Output stream; stdout when omitted.

    Returns:
        The configured package logger.
    """
    log_level = (
        level
        or os.environ.get("SNAPSHOT_LOG_LEVEL")
        or os.environ.get("LOG_LEVEL", "INFO")
    ).upper()

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    # Replace handlers so repeated setup does not duplicate output
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
