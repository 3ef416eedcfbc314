"""
Structured Logging Infrastructure

JSON-formatted logging with correlation IDs, so a single WhatsApp message can be
traced from the webhook through the dialogue engine to the outbound send.

Voter identifiers never reach the log sink in clear: phone numbers and EPIC
numbers passed in ``extra_data`` are masked by the formatter.
"""
import logging
import json
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any
from contextvars import ContextVar
from functools import wraps

# Context variable for correlation ID
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

_PHONE_KEYS = frozenset({"phone", "phone_number", "wa_id", "to"})
_EPIC_KEYS = frozenset({"voter_id", "epic"})


def _mask_phone(value: str) -> str:
    digits = "".join(c for c in value if c.isdigit())
    # Already masked upstream
    if len(digits) != len(value.lstrip("+")) or len(digits) < 4:
        return value
    return "*" * (len(digits) - 4) + digits[-4:]


def _mask_epic(value: str) -> str:
    if len(value) <= 5:
        return "*" * len(value)
    return value[:3] + "*" * (len(value) - 5) + value[-2:]


def redact(extra: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``extra`` with voter identifiers masked"""
    redacted = {}
    for key, value in extra.items():
        if isinstance(value, str) and key in _PHONE_KEYS:
            value = _mask_phone(value)
        elif isinstance(value, str) and key in _EPIC_KEYS:
            value = _mask_epic(value)
        redacted[key] = value
    return redacted


class JSONFormatter(logging.Formatter):
    """One JSON object per line"""

    def __init__(self, service: str | None = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if self.service:
            log_entry["service"] = self.service

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_entry["extra"] = redact(extra_data)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept an ``extra_data`` dict.

    ``logger.info("Sent", extra_data={"phone": wa_id})`` puts the dict on the
    record, where ``JSONFormatter`` emits it under ``extra``.
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, extra_data: dict[str, Any] | None = None):
        if extra_data:
            extra = {**(extra or {}), "extra_data": extra_data}
        # +1 so funcName/lineno point at the caller, not this override
        super()._log(level, msg, args, exc_info=exc_info, extra=extra,
                     stack_info=stack_info, stacklevel=stacklevel + 1)


logging.setLoggerClass(StructuredLogger)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    app_name: str = "constituent-bot"
) -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Logging level name
        json_format: JSON lines for production, a readable line for development
        app_name: Service name stamped on every line
    """
    log_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        handler.setFormatter(JSONFormatter(service=app_name))
    else:
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | {app_name} | %(name)s | [%(correlation_id)s] | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        handler.addFilter(CorrelationIdFilter())

    root_logger.addHandler(handler)

    # Third-party noise
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class CorrelationIdFilter(logging.Filter):
    """Adds correlation_id to log records for the human-readable format"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def set_correlation_id(correlation_id: str | None = None) -> str:
    cid = correlation_id or generate_correlation_id()
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    """Current correlation ID; one is generated and kept if none is set"""
    cid = correlation_id_var.get()
    if not cid:
        cid = set_correlation_id()
    return cid


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore


def log_async_operation(operation_name: str):
    """Decorator logging start, outcome and duration of an async call"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            started = time.perf_counter()
            logger.debug(f"Starting {operation_name}", extra_data={"operation": operation_name})

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    extra_data={
                        "operation": operation_name,
                        "status": "failed",
                        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                    exc_info=True
                )
                raise

            logger.info(
                f"Completed {operation_name}",
                extra_data={
                    "operation": operation_name,
                    "status": "completed",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                }
            )
            return result

        return wrapper
    return decorator
