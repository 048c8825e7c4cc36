"""JSON helpers for structured log lines."""

from __future__ import annotations

import json
import logging
from pathlib import Path


def _default(value):
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return repr(value)


def safe_json_dumps(payload, **kwargs) -> str:
    """Serialize ``payload``, falling back to ``repr`` for unknown types."""
    kwargs.setdefault("default", _default)
    kwargs.setdefault("ensure_ascii", False)
    return json.dumps(payload, **kwargs)


def log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logging.log(level, safe_json_dumps(payload, sort_keys=True))
    except (TypeError, ValueError) as exc:
        logging.log(level, f"log_event_serialization_failed: {exc} message={message}")
