"""
Structured logging for the intellect service.

- JSON lines in production, single pretty lines elsewhere.
- request_id is bound per request through a contextvar and injected by a filter.
- Identities (wallet addresses, emails) are masked before they reach a record.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

LOGGER_NAME = "intellect"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Copied from `extra` into JSON output when present
STRUCTURED_FIELDS = (
    "identity",
    "action_type",
    "event_type",
    "error_code",
    "status",
    "path",
    "method",
    "latency_bucket",
)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def mask_identity(identity: Optional[str]) -> Optional[str]:
    """0x1234abcd...ef -> 0x1234...cdef; jane@example.com -> j***@example.com."""
    if not identity:
        return identity
    if "@" in identity:
        local, _, domain = identity.partition("@")
        return f"{local[:1]}***@{domain}"
    if len(identity) <= 10:
        return identity[:2] + "***"
    return f"{identity[:6]}...{identity[-4:]}"


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms")):
        if latency_ms < bound:
            return label
    return ">=1000ms"


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
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
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        rid = getattr(record, "request_id", None)
        parts = [_timestamp(record), record.levelname, f"[{LOGGER_NAME}]"]
        if rid:
            parts.append(f"[rid={rid}]")
        action = getattr(record, "action_type", None)
        if action:
            parts.append(f"[{action}]")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """Install one stdout handler on the service logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _safe_truncate(value, limit: int = 500):
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
    identity: Optional[str] = None,
    action_type: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Emit one structured event on the service logger."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        # Scripts and tests may log before main configured anything
        configure_logging(os.getenv("ENV", "development"))

    payload = {
        "request_id": request_id or get_request_id(),
        "identity": mask_identity(identity),
        "action_type": action_type,
    }
    if event_type:
        payload["event_type"] = event_type
    if error_code:
        payload["error_code"] = error_code
    for key, value in (extra or {}).items():
        payload[key] = _safe_truncate(value)

    getattr(logger, level, logger.info)(msg, extra=payload)
