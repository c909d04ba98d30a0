"""
Logging for the StayHard backend.

Every record on the ``stayhard`` logger carries the current request id and,
once auth has run, the acting user id. Domain events go through ``log_event``
so challenge, progress and photo identifiers land in the same fields
whichever service emits them.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

LOGGER_NAME = "stayhard"
MAX_EXTRA_CHARS = 500

# Identifier fields lifted onto JSON output when present on a record
DOMAIN_FIELDS = (
    "user_id",
    "challenge_id",
    "progress_id",
    "photo_id",
    "day_number",
    "event_type",
    "error_code",
)

LATENCY_BUCKETS = (
    (10, "<10ms"),
    (100, "10-100ms"),
    (500, "100-500ms"),
    (1000, "500-1000ms"),
)

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def bind_user_id(user_id: Optional[str]) -> None:
    """Attach the authenticated user to every log line for the rest of the request."""
    user_id_ctx_var.set(user_id)


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for upper, label in LATENCY_BUCKETS:
        if latency_ms < upper:
            return label
    return ">=1000ms"


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class ContextFilter(logging.Filter):
    """Fill request_id/user_id from context vars unless the caller set them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_ctx_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in DOMAIN_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = []
        for key, label in (("request_id", "rid"), ("user_id", "user"), ("challenge_id", "challenge")):
            value = getattr(record, key, None)
            if value:
                tags.append(f"[{label}={value}]")
        line = f"{_timestamp(record)} {record.levelname} [{LOGGER_NAME}] {' '.join(tags)} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """JSON lines in production, readable lines elsewhere."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(ContextFilter())

    logger.handlers = [handler]
    # pytest's caplog hooks the root logger
    logger.propagate = True

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _clip(value, limit: int = MAX_EXTRA_CHARS) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    challenge_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Emit a domain event on the ``stayhard`` logger.

    Identifier keywords are attached as record attributes. Anything in
    ``extra`` is stringified and clipped so a large payload (a task list, a
    template) cannot flood the log sink.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id or user_id_ctx_var.get(),
        "challenge_id": challenge_id,
    }
    if event_type:
        fields["event_type"] = event_type
    if error_code:
        fields["error_code"] = error_code
    for key, value in (extra or {}).items():
        fields[key] = value if isinstance(value, (int, float, bool)) else _clip(value)

    getattr(logger, level, logger.info)(msg, extra=fields)
