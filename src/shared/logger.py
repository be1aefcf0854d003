"""
Structured JSON Logging Configuration

Structured logging shared by the order writer (Kafka -> orders_ops) and the
order publisher.

WHY STRUCTURED LOGGING?
- The writer's failure policy is only auditable if every attempt is logged with
  its attempt number, retries left and failure cause
- JSON lines can be filtered by field (e.g. "all aborted writes for order X")
- The order id travels as correlation_id so one order can be traced from
  publish through every retry to the final commit or drop

EXAMPLE OUTPUT:
{
  "timestamp": "2025-01-10T14:30:00.123Z",
  "level": "WARNING",
  "service": "orders-ops-writer",
  "logger": "src.writer.retry",
  "correlation_id": "1b4e28ba-2fa1-11d2-883f-0016d3cca427",
  "message": "Store write failed",
  "extra": {"attempt": 1, "retries_left": 2, "cause": "connection_refused"}
}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else was passed via extra=
_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "correlation_id",
    }
)


# ==============================================================================
# JSON FORMATTER
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Log formatter that emits one JSON object per record.

    Fields:
    - timestamp: ISO 8601, UTC, millisecond precision
    - level, service, logger, message
    - correlation_id: order id, when the record carries one
    - exception: formatted traceback, when exc_info is set
    - extra: every non-standard attribute passed through ``extra=``
    """

    def __init__(self, service_name: str = "orders-ops", include_extra: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                k: v
                for k, v in record.__dict__.items()
                if k not in _STANDARD_ATTRS and not k.startswith("_")
            }
            if extra_fields:
                log_data["extra"] = extra_fields

        # default=str covers Decimal, datetime and enum values
        return json.dumps(log_data, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """Format a record timestamp as ``2025-01-10T14:30:00.123Z``."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ==============================================================================
# PLAIN TEXT FORMATTER (for development)
# ==============================================================================


class PlainTextFormatter(logging.Formatter):
    """
    Human-readable formatter for local runs.

    Format: [2025-01-10 14:30:00] INFO [orders-ops-writer] Order applied
    """

    def __init__(self, service_name: str = "orders-ops"):
        super().__init__(
            fmt=f"[%(asctime)s] %(levelname)s [{service_name}] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ==============================================================================
# LOGGER SETUP
# ==============================================================================


def setup_logger(
    name: str,
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> logging.Logger:
    """
    Configure a logger with a single stdout handler.

    Entry points call this once for the ``src`` package logger so every module
    logger (``src.writer.consumer``, ``src.writer.retry``, ...) propagates to it.

    Args:
        name: Logger name to configure
        service_name: Service identifier written into every record
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"

    Returns:
        The configured logger. Calling again for the same name only updates
        the level (no duplicate handlers).
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter(service_name=service_name)
    else:
        formatter = PlainTextFormatter(service_name=service_name)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# ==============================================================================
# CORRELATION ID ADAPTER
# ==============================================================================


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps ``correlation_id`` onto every record.

    The ingestion loop wraps its logger once per message:

        >>> order_logger = CorrelationAdapter(logger, {"correlation_id": order_id})
        >>> order_logger.info("Order applied")  # correlation_id included
    """

    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = dict(kwargs.get("extra") or {})

        if "correlation_id" in self.extra:
            extra["correlation_id"] = self.extra["correlation_id"]

        kwargs["extra"] = extra
        return msg, kwargs
