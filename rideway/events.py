"""Outbound integration events and the sinks that receive them."""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger("rideway.events")

MAINTENANCE_DUE = "maintenance_due"
MAINTENANCE_COMPLETED = "maintenance_completed"
MILEAGE_UPDATED = "mileage_updated"


class EventSink:
    """Receives events for a user's configured integrations."""

    def emit(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingEventSink(EventSink):
    """Writes every event to the log."""

    def emit(self, user_id, event_type, payload):
        logger.info("Event %s for user %s: %s", event_type, user_id, payload)


class CollectingEventSink(EventSink):
    """Keeps events in memory, in emission order."""

    def __init__(self):
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def emit(self, user_id, event_type, payload):
        self.events.append((user_id, event_type, payload))

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [p for _, kind, p in self.events if kind == event_type]


def dispatch(
    sink: Optional[EventSink], user_id: str, event_type: str, payload: Dict[str, Any]
) -> bool:
    """
    Fire-and-forget delivery. A failing sink is logged and never
    undoes the committed change that produced the event.
    """
    if sink is None:
        return False
    try:
        sink.emit(user_id, event_type, payload)
    except Exception:
        logger.exception("Error triggering %s event for user %s", event_type, user_id)
        return False
    return True


def _iso(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def motorcycle_payload(motorcycle) -> Dict[str, Any]:
    return {
        "id": motorcycle.id,
        "name": motorcycle.name,
        "make": motorcycle.make,
        "model": motorcycle.model,
        "year": motorcycle.year,
    }


def task_payload(task) -> Dict[str, Any]:
    return {"id": task.id, "name": task.name}


def record_payload(record) -> Dict[str, Any]:
    return {
        "id": record.id,
        "date": _iso(record.date),
        "mileage": record.mileage,
        "cost": record.cost,
        "notes": record.notes,
    }


def maintenance_due_payload(motorcycle, task, due_mileage=None, due_date=None):
    return {
        "motorcycle": motorcycle_payload(motorcycle),
        "task": task_payload(task),
        "dueMileage": due_mileage,
        "dueDate": _iso(due_date),
    }
