"""Structured JSON logging with per-request correlation IDs."""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone

# Correlation ID of the request being served ("" outside a request)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# LogRecord attributes that are not caller-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "correlation_id"}

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={...}`` fields are kept as keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "") or None,
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class CorrelationIdFilter(logging.Filter):
    """Stamps every record with the current request's correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route the root logger through the JSON formatter.

    Safe to call more than once: later calls only change the level and leave
    any other installed handlers (pytest's capture handler, for one) alone.
    """
    root = logging.getLogger()
    root.setLevel(log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    if any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)
