#!/usr/bin/env python3
"""Tests for event dispatch and payloads."""

import logging
from datetime import date

from rideway import CollectingEventSink, EventSink, MaintenanceTask, Motorcycle
from rideway.events import (
    MAINTENANCE_DUE,
    dispatch,
    maintenance_due_payload,
)


class FailingSink(EventSink):
    def emit(self, user_id, event_type, payload):
        raise ConnectionError("webhook down")


class TestDispatch:
    """Tests for fire-and-forget dispatch."""

    def test_delivers_to_sink(self):
        sink = CollectingEventSink()
        assert dispatch(sink, "alice", MAINTENANCE_DUE, {"a": 1}) is True
        assert sink.events == [("alice", MAINTENANCE_DUE, {"a": 1})]
        assert sink.of_type(MAINTENANCE_DUE) == [{"a": 1}]

    def test_no_sink(self):
        assert dispatch(None, "alice", MAINTENANCE_DUE, {}) is False

    def test_failing_sink_is_logged_not_raised(self, caplog):
        with caplog.at_level(logging.ERROR, logger="rideway.events"):
            assert dispatch(FailingSink(), "alice", MAINTENANCE_DUE, {}) is False
        assert "maintenance_due" in caplog.text


class TestPayloads:
    """Tests for payload builders."""

    def test_maintenance_due_payload(self):
        motorcycle = Motorcycle("bike-1", "alice", "Daily", "Honda", "CB500X", 2021)
        task = MaintenanceTask("t1", "bike-1", "Oil change")
        payload = maintenance_due_payload(
            motorcycle, task, due_mileage=8000, due_date=date(2025, 7, 1)
        )
        assert payload == {
            "motorcycle": {
                "id": "bike-1",
                "name": "Daily",
                "make": "Honda",
                "model": "CB500X",
                "year": 2021,
            },
            "task": {"id": "t1", "name": "Oil change"},
            "dueMileage": 8000,
            "dueDate": "2025-07-01",
        }
