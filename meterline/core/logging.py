"""
Structured logging for the meterline service.

- One named logger ("meterline"); JSON lines in production, single-line
  key=value output elsewhere.
- request_id is bound per request through a ContextVar and stamped on every
  record by RequestIdFilter.
- Anything passed as `extra` becomes a structured field. Fields that can hold
  credentials (connection secrets, forward tokens, password hashes) are masked
  by the formatters, whichever code path produced the record.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

LOGGER_NAME = "meterline"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REDACTED = "<redacted>"
SECRET_FIELDS = frozenset({
    "connection_secret",
    "connectionSecret",
    "forward_token",
    "forwardToken",
    "secret_key",
    "password",
    "password_hash",
    "passwordHash",
})
MAX_FIELD_LENGTH = 500

# Attributes every LogRecord carries; everything else on a record came from `extra`
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "request_id"}

_LATENCY_BUCKETS = ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms"))


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return default if rid is None else rid


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in _LATENCY_BUCKETS:
        if latency_ms < bound:
            return label
    return ">=1000ms"


def _clip(value: Any) -> Any:
    if isinstance(value, (bool, int, float)) or value is None:
        return value
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= MAX_FIELD_LENGTH else text[:MAX_FIELD_LENGTH] + "...<truncated>"


def structured_fields(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    """Extra fields attached to a record, masked and clipped, in insertion order."""
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_") or value is None:
            continue
        yield key, REDACTED if key in SECRET_FIELDS else _clip(value)


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(structured_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rid = getattr(record, "request_id", None)
        parts = [_timestamp(record), record.levelname, f"[{LOGGER_NAME}]"]
        if rid:
            parts.append(f"[rid={rid}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in structured_fields(record))
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development") -> None:
    """Install the meterline handler: JSON in production, pretty otherwise."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.handlers = [handler]
    logger.propagate = True

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Emit one structured record on the meterline logger.

    Secret-bearing keys in `extra` are dropped before the record is built.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        if key not in SECRET_FIELDS:
            fields[key] = value

    getattr(logger, level, logger.info)(msg, extra=fields)
