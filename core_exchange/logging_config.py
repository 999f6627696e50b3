"""
Structured Logging Configuration Module

JSON or plain-text logging for the exchange ledger. Records written through
log_action() carry the account, action and resource they concern, plus the
correlation id of the request being served so that the propose, settle and
reject lines of one HTTP call can be joined.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional
import json
import logging
import uuid


_correlation_id: ContextVar[Optional[str]] = ContextVar("exchange_correlation_id", default=None)

STRUCTURED_FIELDS = ("correlation_id", "user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def current_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation id to every record logged inside the block

    A fresh id is generated when none is given.
    """
    value = correlation_id or uuid.uuid4().hex
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)


def _json_default(value: Any) -> Any:
    # Decimal amounts keep their exact digits
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unset structured fields are omitted"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=_json_default)


class CorrelationFilter(logging.Filter):
    """Stamps the active correlation id on records that lack one"""

    def filter(self, record):
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = current_correlation_id()
        return True


def setup_logging(level: str = "INFO", logger_name: str = "exchange",
                  log_format: str = "json") -> logging.Logger:
    """
    Install a single stream handler on the application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the application logger; component loggers are
            its children (``exchange.transfers``, ``exchange.ledger``, ...)
        log_format: "json" for structured records, "text" for plain lines

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(CorrelationFilter())
    if log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "exchange") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a ledger action with structured fields.

    Args:
        logger: Component logger
        level: Log level name (info, warning, error, ...)
        message: Human-readable message
        user_id: Account performing the action
        action: Action name, e.g. ``propose_transaction``
        resource: Resource acted upon, e.g. ``transaction:7``
        correlation_id: Overrides the id bound by correlation_scope()
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    fields = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id or current_correlation_id(),
        "extra": extra,
    }
    logger.log(levelno, message, extra={k: v for k, v in fields.items() if v is not None})
