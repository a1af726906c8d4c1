"""
sessiontab/core/logging.py

Purpose: Logging configuration

- JSON lines in production, coloured one-liners elsewhere
- Ledger context (person, group, state, batch, update) carried on records
- LogContext adapter to attach that context without touching globals
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Iterator, Tuple

from sessiontab.core.config import settings

# Record attributes promoted into structured output when present
CONTEXT_FIELDS = ("person_id", "group_id", "state", "batch_id", "update_id")

# Short labels used by the development formatter
_CONTEXT_LABELS = {
    "person_id": "person",
    "group_id": "group",
    "state": "state",
    "batch_id": "batch",
}

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"

_NOISY_LOGGERS = ("httpx", "motor", "pymongo", "uvicorn.access")


def _context_items(record: logging.LogRecord, fields) -> Iterator[Tuple[str, object]]:
    for field in fields:
        value = getattr(record, field, None)
        if value is not None:
            yield field, value


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_context_items(record, CONTEXT_FIELDS))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Coloured single-line records with a short context suffix."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _LEVEL_COLOURS.get(record.levelno, _RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{colour}{clock} {record.levelname:<8}{_RESET} {record.name}: {record.getMessage()}"

        context = " ".join(
            f"{_CONTEXT_LABELS[field]}={value}"
            for field, value in _context_items(record, _CONTEXT_LABELS)
        )
        if context:
            line = f"{line} ({context})"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"

        return line


def setup_logging():
    """
    Installs a single stdout handler on the root logger.
    Safe to call more than once; earlier handlers are replaced.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    level = logging.getLevelName((settings.LOG_LEVEL or "INFO").upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("sessiontab")
    logger.info(f"Logging ready ({settings.ENVIRONMENT}, level {settings.LOG_LEVEL})")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the ``sessiontab`` namespace."""
    if name.startswith("sessiontab"):
        return logging.getLogger(name)
    return logging.getLogger(f"sessiontab.{name}")


class LogContext(logging.LoggerAdapter):
    """
    Adapter that attaches structured context to every record it emits.

    Usage:
        with LogContext(logger, person_id=12, group_id=3) as log:
            log.info("Settling sessions")

    Per-call ``extra`` is merged over the bound context.
    """

    def __init__(self, logger: logging.Logger, **context):
        super().__init__(logger, context)

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False
