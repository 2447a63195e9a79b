"""Logging setup and argument redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping


_SENSITIVE_KEYS = re.compile(
    r"(token|secret|api[_-]?key|password|authorization|cookie)", re.IGNORECASE
)
REDACTED = "***REDACTED***"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _redact(key, value) for key, value in payload.items()}


def _redact(key: Any, value: Any) -> Any:
    if isinstance(key, str) and _SENSITIVE_KEYS.search(key):
        return REDACTED
    if isinstance(value, Mapping):
        return redact_payload(value)
    if isinstance(value, list):
        return [redact_payload(item) if isinstance(item, Mapping) else item for item in value]
    return value
