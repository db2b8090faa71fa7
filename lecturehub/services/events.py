"""Structured log events emitted by stores, exports and the web layer."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union


DEFAULT_EVENT_LOGGER = logging.getLogger("lecturehub.events")

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]

_MAX_VALUE_LENGTH = 200


def sanitize_context_value(value: Any) -> Any:
    """Reduce *value* to something that can be logged and serialised as JSON."""

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        cleaned: Dict[str, Any] = {}
        for key, item in value.items():
            if key is None:
                continue
            item_value = sanitize_context_value(item)
            if item_value in (None, ""):
                continue
            cleaned[str(key)] = item_value
        return cleaned
    if isinstance(value, (list, tuple, set)):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    text = text.strip()
    if not text:
        return None
    if len(text) > _MAX_VALUE_LENGTH:
        return text[:_MAX_VALUE_LENGTH] + "…"
    return text


def normalize_context(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty keys and values and sanitise what remains."""

    if not values:
        return {}
    result: Dict[str, Any] = {}
    for key, raw in values.items():
        if not key:
            continue
        value = sanitize_context_value(raw)
        if value in (None, ""):
            continue
        result[str(key)] = value
    return result


def emit_structured_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
    correlation: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: LoggerLike = DEFAULT_EVENT_LOGGER,
) -> None:
    """Log ``[event_type] message (key=value, ...)`` and attach the parts as extras.

    The extras (``debug_event``, ``debug_payload`` and friends) are picked up by
    the in-memory debug log handler of the web server.
    """

    text = str(message).strip()
    context_values = normalize_context(context)
    payload_values = normalize_context(payload)
    correlation_values = normalize_context(correlation)

    details = {**correlation_values, **context_values, **payload_values}
    rendered = f"[{event_type}] {text}" if event_type else text
    if details:
        rendered += " (" + ", ".join(f"{key}={value}" for key, value in details.items()) + ")"

    extra: Dict[str, Any] = {"debug_event": text, "debug_event_type": event_type or ""}
    if context_values:
        extra["debug_context"] = context_values
    if payload_values:
        extra["debug_payload"] = payload_values
    if correlation_values:
        extra["debug_correlation"] = correlation_values
    if duration_ms is not None:
        extra["debug_duration_ms"] = float(duration_ms)
    logger.log(level, rendered, extra=extra)


def emit_file_event(operation: str, **kwargs: Any) -> None:
    """Emit a ``FILE_OP`` event, used when exports are written to disk."""

    emit_structured_event("FILE_OP", operation, **kwargs)


def emit_export_event(document: str, **kwargs: Any) -> None:
    """Emit an ``EXPORT`` event for generated PDF and CSV documents."""

    emit_structured_event("EXPORT", document, **kwargs)


__all__ = [
    "DEFAULT_EVENT_LOGGER",
    "emit_export_event",
    "emit_file_event",
    "emit_structured_event",
    "normalize_context",
    "sanitize_context_value",
]
