from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

from restaurant_api.core.config import LOG_LEVEL
from restaurant_api.core.request_context import current_request_context

_SECRET_KEYS = ("token", "password", "secret", "api_key")
_BEARER = re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE)
_KEY_VALUE = re.compile(
    r"((?:%s)\s*[:=]\s*)([^\s\",}]+)" % "|".join(_SECRET_KEYS),
    re.IGNORECASE,
)

# Copied from ``extra=`` onto the JSON line when present
_EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "duration_ms",
    "order_id",
    "order_number",
    "coupon_code",
)


def mask_secrets(text: str) -> str:
    return _KEY_VALUE.sub(r"\1***", _BEARER.sub(r"\1***", text))


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the bound request identifiers."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_request_context()
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_secrets(record.getMessage()),
            "request_id": getattr(record, "request_id", None) or context.request_id,
            "restaurant_id": getattr(record, "restaurant_id", None) or context.restaurant_id,
            "user_id": getattr(record, "user_id", None) or context.user_id,
        }
        entry.update(
            (name, getattr(record, name)) for name in _EXTRA_FIELDS if getattr(record, name, None) is not None
        )
        if record.exc_info:
            entry["exception"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # uvicorn keeps its own loggers; route them through the root handler
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
        uvicorn_logger.setLevel(level)
