from __future__ import annotations

import logging
from collections import UserDict, deque
from types import MappingProxyType

import pytest

from lecturehub.services.events import emit_structured_event
from lecturehub.web.server import DebugLogHandler


@pytest.fixture
def handler() -> DebugLogHandler:
    return DebugLogHandler(capacity=3)


@pytest.fixture
def logger(handler: DebugLogHandler):
    test_logger = logging.getLogger("lecturehub.tests.debug")
    test_logger.setLevel(logging.DEBUG)
    test_logger.propagate = False
    test_logger.addHandler(handler)
    yield test_logger
    test_logger.removeHandler(handler)
    test_logger.propagate = True
    test_logger.setLevel(logging.NOTSET)


def test_entry_key_handles_nested_unhashable_structures(handler: DebugLogHandler) -> None:
    context = {
        "attrs": MappingProxyType({"numbers": [1, 2, 3], "flags": {"low", "high"}}),
        "extra": UserDict({"history": deque(({"event": "start"}, {"event": "stop"}))}),
    }
    payload = {"meta": {"ids": [1, {"sub": ("a", "b")}]}}

    key = handler._entry_key("TEST", "message", context, payload, {"request_id": "abc123"})

    hash(key)


def test_entry_key_is_order_insensitive(handler: DebugLogHandler) -> None:
    key_a = handler._entry_key("TEST", "message", {"values": {"b": 2, "a": 1}}, {}, {})
    key_b = handler._entry_key("TEST", "message", {"values": {"a": 1, "b": 2}}, {}, {})

    assert key_a == key_b


def test_repeated_events_are_folded(handler: DebugLogHandler, logger: logging.Logger) -> None:
    for duration in (10.0, 30.0):
        emit_structured_event(
            "DB_QUERY",
            "query",
            payload={"collection": "courses"},
            duration_ms=duration,
            logger=logger,
        )

    entries = handler.collect()

    assert len(entries) == 1
    entry = entries[0]
    assert entry["count"] == 2
    assert entry["event_type"] == "DB_QUERY"
    assert entry["payload"] == {"collection": "courses"}
    assert entry["average_duration_ms"] == pytest.approx(20.0)
    assert entry["max_duration_ms"] == 30.0
    assert entry["id"] == handler.last_id == 2


def test_slow_queries_and_errors_raise_severity(handler: DebugLogHandler, logger: logging.Logger) -> None:
    emit_structured_event("DB_QUERY", "slow query", duration_ms=600.0, logger=logger)
    emit_structured_event("DB_QUERY", "failed", payload={"status": "error"}, logger=logger)
    logger.info("plain message")

    severities = {entry["message"]: entry.get("severity") for entry in handler.collect()}

    assert severities == {"slow query": "warning", "failed": "error", "plain message": None}


def test_collect_after_returns_newer_entries(handler: DebugLogHandler, logger: logging.Logger) -> None:
    logger.info("first")
    marker = handler.last_id
    logger.info("second")

    assert [entry["message"] for entry in handler.collect(marker)] == ["second"]


def test_capacity_evicts_oldest_entries(handler: DebugLogHandler, logger: logging.Logger) -> None:
    for index in range(5):
        logger.info("message %s", index)
    logger.info("message %s", 0)

    messages = [entry["message"] for entry in handler.collect()]

    assert messages == ["message 3", "message 4", "message 0"]
    assert handler.collect()[-1]["count"] == 1


def test_export_text_lists_details(handler: DebugLogHandler, logger: logging.Logger) -> None:
    assert handler.export_text() == "# Debug log is currently empty.\n"

    emit_structured_event(
        "EXPORT",
        "Rendered PDF",
        payload={"rows": 2},
        correlation={"request_id": "req-1"},
        duration_ms=5,
        logger=logger,
    )
    emit_structured_event(
        "EXPORT",
        "Rendered PDF",
        payload={"rows": 2},
        correlation={"request_id": "req-1"},
        duration_ms=5,
        logger=logger,
    )

    text = handler.export_text()

    assert "EXPORT: Rendered PDF" in text
    assert "count=2" in text
    assert "duration_ms=5.000" in text
    assert 'payload={"rows": 2}' in text
    assert 'correlation={"request_id": "req-1"}' in text
