"""Structured, redacting log configuration.

Modules log through ``logging.getLogger(__name__)`` and attach a category
and structured data with ``extra=event(...)``:

    log.info("Transaction submitted", extra=event(LogCategory.RPC, {"txHash": h}))

The RedactionFilter installed by configure_logging scrubs that data before
any handler sees it. Code calling the logger is still expected never to
hand it the signing key in the first place.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

PACKAGE_LOGGER = "rsk_attest"
REDACTED = "[REDACTED]"

_SENSITIVE_KEY_PARTS = ("private", "secret", "key", "mnemonic")
_HEX_SECRET = re.compile(r"0x[a-fA-F0-9]{64}")
_MNEMONIC = re.compile(r"\b(?:[a-z]+\s+){11}[a-z]+\b", re.IGNORECASE)


class LogCategory(str, enum.Enum):
    SECURITY = "SECURITY"
    RPC = "RPC"
    AGENT = "AGENT"
    CLI = "CLI"
    WORKFLOW = "WORKFLOW"
    ERROR = "ERROR"


# Categories still emitted when RSK_ATTEST_ENV=production.
PRODUCTION_CATEGORIES = frozenset({LogCategory.ERROR.value, LogCategory.SECURITY.value})


def event(category: LogCategory, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build the ``extra`` mapping for a categorised log call."""
    return {"category": category.value, "data": data}


def sanitize(data: Any) -> Any:
    """Recursively redact secrets from log data.

    Mapping keys that look sensitive are replaced wholesale. Strings have
    64-digit hex runs (private keys) and twelve-word phrases (mnemonics)
    masked.
    """
    if isinstance(data, str):
        masked = _HEX_SECRET.sub("0x[REDACTED]", data)
        return _MNEMONIC.sub("[MNEMONIC_REDACTED]", masked)
    if isinstance(data, dict):
        clean: dict[str, Any] = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
                clean[key] = REDACTED
            else:
                clean[key] = sanitize(value)
        return clean
    if isinstance(data, (list, tuple)):
        return [sanitize(item) for item in data]
    return data


def is_production() -> bool:
    return os.getenv("RSK_ATTEST_ENV", "").lower() == "production"


class RedactionFilter(logging.Filter):
    """Scrub record data and apply the production category policy."""

    def filter(self, record: logging.LogRecord) -> bool:
        category = getattr(record, "category", None)
        if category is None:
            category = (
                LogCategory.ERROR.value
                if record.levelno >= logging.ERROR
                else LogCategory.AGENT.value
            )
            record.category = category
        if is_production() and category not in PRODUCTION_CATEGORIES:
            return False
        data = getattr(record, "data", None)
        if data is not None:
            record.data = sanitize(data)
        if isinstance(record.msg, str):
            record.msg = sanitize(record.msg)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "category": getattr(record, "category", None),
            "msg": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data is not None:
            payload["data"] = data
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Install the JSON formatter and redaction filter on the package logger.

    Args:
        level: Log level name. Defaults to RSK_ATTEST_LOG_LEVEL or 'INFO'.
        stream: Output stream. Defaults to stderr so stdout stays free
            for command output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RedactionFilter())

    logger = logging.getLogger(PACKAGE_LOGGER)
    level = (level or os.getenv("RSK_ATTEST_LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.handlers = [handler]
    logger.propagate = False
    return logger
