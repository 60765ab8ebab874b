"""Structured logging for gridserve.

Every storage operation logs one DEBUG record carrying ``operation``,
``key`` (or ``prefix``) and ``duration_ms`` as ``extra`` fields. In
production these are rendered as one JSON object per line; in development
as a single readable line.

Usage:
    from gridserve.observability.logging import configure_logging

    configure_logging(json_format=True, level="INFO")

    logger = logging.getLogger(__name__)
    logger.info("Serving blob", extra={"key": key})  # plus request_id, correlation_id
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

# Request correlation, set by CorrelationMiddleware (or LogContext outside HTTP)
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "request_id": request_id_var,
    "correlation_id": correlation_id_var,
}

# Everything a bare LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "pymongo": logging.WARNING,
    "motor": logging.WARNING,
}


def _context_fields() -> dict[str, str]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Example:
        {"timestamp": "2026-01-10T12:34:56.789000+00:00", "level": "DEBUG",
         "logger": "gridserve.storage.service", "message": "download_chunk abc123",
         "request_id": "abc-123", "operation": "download_chunk", "key": "abc123",
         "range": [0, 499], "duration_ms": 1.27}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **_context_fields(),
            **_extra_fields(record),
        }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        return orjson.dumps(log_data, default=str).decode("utf-8")


class ConsoleFormatter(logging.Formatter):
    """Single-line formatter for development.

    Output format:
    2026-01-10 12:34:56 | DEBUG    | gridserve.storage.service | upload abc (1.27ms) | req=abc-1234
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        message = record.getMessage()
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            message += f" ({duration}ms)"

        parts = [self.formatTime(record, self.datefmt), level, record.name, message]
        request_id = request_id_var.get()
        if request_id:
            parts.append(f"req={request_id[:8]}")

        result = " | ".join(parts)
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_format: JSON lines (production) instead of console lines
        level: Root log level name; DEBUG shows per-operation storage records
        use_colors: Colour level names on a TTY in console format
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter(use_colors))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


class LogContext:
    """Bind correlation IDs for code running outside a request.

    Usage:
        with LogContext(request_id="cli-sign-url"):
            logger.info("Issuing URL")
    """

    def __init__(self, **ids: str) -> None:
        unknown = set(ids) - set(_CONTEXT_VARS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
        self.ids = ids
        self._tokens: list[tuple[contextvars.ContextVar[str], contextvars.Token[str]]] = []

    def __enter__(self) -> LogContext:
        for name, value in self.ids.items():
            var = _CONTEXT_VARS[name]
            self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, *args: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
