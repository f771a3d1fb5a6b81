"""
Motorcycle maintenance tracking engine.

This package computes and maintains maintenance schedules:
- Status: Urgency levels (OVERDUE, DUE_SOON, OK, UNKNOWN)
- Interval: A task's recurrence rule and base point
- Motorcycle / MaintenanceTask: The tracked vehicle and its tasks
- MileageLog / ServiceRecord: Append-only history
- ScheduleView: Calculated due status for a task
- apply_mileage_update: Log a reading and propagate it to every task
- complete_task: Record service and advance the task's schedule
- DueTaskNotifier: Periodic due sweeps with once-per-transition events
"""

from .status import Status
from .errors import MaintenanceError, NotFoundError, PersistenceError, ValidationError
from .calculations import (
    calc_due_miles,
    calc_due_date,
    calc_completion_percentage,
    check_status,
    is_due,
    snap_to_milestone,
)
from .interval import Interval, IntervalBase, build_interval
from .motorcycle import Motorcycle
from .task import MaintenanceTask, Priority
from .records import MileageLog, ServiceRecord
from .config import Settings, load_settings
from .schedule import ScheduleView, calculate_schedule, recompute, recompute_schedule
from .events import CollectingEventSink, EventSink, LoggingEventSink
from .repository import InMemoryRepository, Repository
from .loader import YamlRepository, load_garage
from .propagator import MileageUpdateResult, apply_mileage_update
from .completion import Completion, CompletionResult, complete_task
from .notifier import DueTask, DueTaskNotifier, SweepResult
from .tasks import archive_task, create_task, delete_task, edit_task, unarchive_task

__all__ = [
    "Status",
    "MaintenanceError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "calc_due_miles",
    "calc_due_date",
    "calc_completion_percentage",
    "check_status",
    "is_due",
    "snap_to_milestone",
    "Interval",
    "IntervalBase",
    "build_interval",
    "Motorcycle",
    "MaintenanceTask",
    "Priority",
    "MileageLog",
    "ServiceRecord",
    "Settings",
    "load_settings",
    "ScheduleView",
    "calculate_schedule",
    "recompute",
    "recompute_schedule",
    "CollectingEventSink",
    "EventSink",
    "LoggingEventSink",
    "InMemoryRepository",
    "Repository",
    "YamlRepository",
    "load_garage",
    "MileageUpdateResult",
    "apply_mileage_update",
    "Completion",
    "CompletionResult",
    "complete_task",
    "DueTask",
    "DueTaskNotifier",
    "SweepResult",
    "archive_task",
    "create_task",
    "delete_task",
    "edit_task",
    "unarchive_task",
]
