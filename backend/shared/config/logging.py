"""
Structured logging for the venue API and CLI.

Service code logs with keyword fields instead of formatted strings:

    logger.info("Session closed", session_id=12, total_amount_cents=14160)

Production emits one JSON object per line; entity ids (session, table,
invoice, organization) are lifted to the top level so the aggregator can
index them. Development prints a colored line and renders ``*_cents``
fields as money. The request id (X-Request-ID) is attached by
CorrelationIdFilter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

# Fields promoted out of "data" in JSON output
INDEXED_FIELDS = ("organization_id", "session_id", "table_id", "invoice_id")


def format_cents(cents: Any) -> str:
    """14160 -> '141.60'; non-integers are returned unchanged."""
    if isinstance(cents, bool) or not isinstance(cents, int):
        return str(cents)
    sign = "-" if cents < 0 else ""
    return f"{sign}{abs(cents) // 100}.{abs(cents) % 100:02d}"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": settings.environment,
        }

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            log_data["request_id"] = request_id

        data = dict(getattr(record, "extra_data", None) or {})
        for field in INDEXED_FIELDS:
            if data.get(field) is not None:
                log_data[field] = data.pop(field)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            log_data["source"] = f"{record.filename}:{record.lineno}"

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        request_id = getattr(record, "request_id", None)
        prefix = f"{self.DIM}[{request_id[:8]}]{self.RESET} " if request_id and request_id != "-" else ""

        line = f"{color}{timestamp} {record.levelname:<8}{self.RESET} {prefix}{record.name}: {record.getMessage()}"

        data = getattr(record, "extra_data", None)
        if data:
            line += " " + " ".join(self._field(key, value) for key, value in data.items() if value is not None)

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line

    @staticmethod
    def _field(key: str, value: Any) -> str:
        if key.endswith("_cents"):
            return f"{key[: -len('_cents')]}={format_cents(value)}"
        return f"{key}={value}"


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods accept arbitrary keyword fields.

    The fields land in ``record.extra_data`` for the formatters above;
    ``exc_info`` keeps its stdlib meaning.
    """

    def _emit(self, level: int, msg: str, args: tuple, fields: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        extra = {"extra_data": fields or None}
        # stacklevel 3: report the caller of info()/error(), not this wrapper
        super()._log(level, msg, args, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.DEBUG, msg, args, fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.INFO, msg, args, fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.WARNING, msg, args, fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.ERROR, msg, args, fields)

    def critical(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.CRITICAL, msg, args, fields)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    # Deferred: the shared.infrastructure package imports db, which imports this module
    from shared.infrastructure.correlation import CorrelationIdFilter

    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = settings.log_format or ("json" if settings.environment == "production" else "text")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(StructuredFormatter() if log_format == "json" else DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_phone(phone: str | None) -> str:
    """
    Mask a guest phone number for logging.

    Keeps the last 3 digits so staff can still match a log line to a
    walk-in customer: "+91 98765 43210" -> "***210".
    """
    if not phone:
        return "<no-phone>"

    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) <= 3:
        return "***"
    return f"***{digits[-3:]}"


rest_api_logger = get_logger("cuebill_api")
session_logger = get_logger("cuebill_api.sessions")
billing_logger = get_logger("cuebill_api.billing")
