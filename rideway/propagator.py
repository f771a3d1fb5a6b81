"""
Mileage update propagation.

A new odometer reading is logged (deduplicated at write time), stored on the
motorcycle, and pushed through every active task's schedule. Tasks that
became due because of this particular update are reported back.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Collection, List, Optional, TYPE_CHECKING

from .config import DEFAULTS, Settings
from .errors import NotFoundError, ValidationError
from .events import EventSink, MILEAGE_UPDATED, dispatch, motorcycle_payload
from .motorcycle import Motorcycle
from .records import MileageLog
from .repository import Repository
from .schedule import calculate_schedule, recompute
from .task import MaintenanceTask
from .units import unit_label

if TYPE_CHECKING:
    from .notifier import DueTaskNotifier

logger = logging.getLogger("rideway.propagator")

UNCHANGED_MESSAGE = "Mileage unchanged, no log entry created"


@dataclass
class MileageUpdateResult:
    """Outcome of one mileage update."""

    motorcycle: Motorcycle
    previous_mileage: int
    new_mileage: int
    log_entry: Optional[MileageLog] = None
    updated_tasks: List[MaintenanceTask] = field(default_factory=list)
    newly_due_tasks: List[MaintenanceTask] = field(default_factory=list)
    deduplicated: bool = False
    unchanged: bool = False
    message: str = "Mileage updated"


def get_owned_motorcycle(
    repository: Repository, user_id: str, motorcycle_id: str
) -> Motorcycle:
    """Load a motorcycle, hiding whether a foreign one exists."""
    motorcycle = repository.get_motorcycle(motorcycle_id)
    if motorcycle is None or not motorcycle.is_owned_by(user_id):
        raise NotFoundError("Motorcycle not found")
    return motorcycle


def _validate_mileage(value, name: str = "Mileage") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number")
    if value < 0:
        raise ValidationError(f"{name} cannot be negative")
    return value


def _log_entry(
    repository: Repository,
    motorcycle: Motorcycle,
    previous_mileage: Optional[int],
    new_mileage: int,
    at: datetime,
    notes: Optional[str],
    settings: Settings,
):
    """Append a log entry, or reuse a near-identical recent one."""
    recent = repository.latest_mileage_log(motorcycle.id, new_mileage)
    if recent is not None:
        age = (at - recent.timestamp).total_seconds()
        if 0 <= age <= settings.mileage_dedup_window_seconds:
            logger.info("Duplicate mileage log detected, using existing entry")
            return recent, True

    log = MileageLog(
        id=str(uuid.uuid4()),
        motorcycle_id=motorcycle.id,
        previous_mileage=(
            previous_mileage
            if previous_mileage is not None
            else motorcycle.current_mileage
        ),
        new_mileage=new_mileage,
        timestamp=at,
        notes=notes or f"Updated mileage to {new_mileage}",
    )
    repository.add_mileage_log(log)
    return log, False


def _recompute_tasks(
    repository: Repository,
    motorcycle: Motorcycle,
    old_mileage: int,
    at: datetime,
    settings: Settings,
    exclude: Collection[str] = (),
):
    """Refresh every active task's cache; return (updated, newly due)."""
    today = at.date()
    updated, newly_due = [], []

    for task in repository.list_tasks(motorcycle.id):
        if not task.has_interval:
            continue
        before = calculate_schedule(task.interval, old_mileage, today, settings)
        after = calculate_schedule(
            task.interval, motorcycle.current_mileage, today, settings
        )
        # Zero-based due points move with the odometer, so a crossed
        # milestone only shows up against the pre-update due point.
        crossed = (
            before.due_mileage is not None
            and old_mileage < before.due_mileage <= motorcycle.current_mileage
        )

        refreshed = recompute(task, motorcycle)
        repository.update_task(refreshed)
        updated.append(refreshed)

        if task.id in exclude:
            continue
        if not before.is_due and (after.is_due or crossed):
            logger.debug(
                "Task %s (%s) became due at %s",
                task.id,
                task.name,
                motorcycle.current_mileage,
            )
            newly_due.append(refreshed)

    return updated, newly_due


def propagate_mileage(
    repository: Repository,
    motorcycle: Motorcycle,
    new_mileage: int,
    at: datetime,
    previous_mileage: Optional[int] = None,
    notes: Optional[str] = None,
    settings: Settings = DEFAULTS,
    exclude: Collection[str] = (),
) -> MileageUpdateResult:
    """
    Log, store and propagate a reading for an already-authorised motorcycle.

    Runs inside the caller's transaction when there is one. Emits nothing;
    apply_mileage_update and the completion processor dispatch events after
    their transaction commits. Tasks in exclude are recomputed but never
    reported as newly due.
    """
    old_mileage = motorcycle.current_mileage
    with repository.transaction():
        log, deduplicated = _log_entry(
            repository, motorcycle, previous_mileage, new_mileage, at, notes, settings
        )
        motorcycle.current_mileage = new_mileage
        repository.update_motorcycle(motorcycle)
        updated, newly_due = _recompute_tasks(
            repository, motorcycle, old_mileage, at, settings, exclude
        )

    logger.info(
        "Mileage for %s updated %s -> %s: %d tasks recomputed, %d newly due",
        motorcycle.id,
        old_mileage,
        new_mileage,
        len(updated),
        len(newly_due),
    )
    return MileageUpdateResult(
        motorcycle=motorcycle,
        previous_mileage=old_mileage,
        new_mileage=new_mileage,
        log_entry=log,
        updated_tasks=updated,
        newly_due_tasks=newly_due,
        deduplicated=deduplicated,
    )


def announce_mileage_update(
    result: MileageUpdateResult,
    user_id: str,
    settings: Settings = DEFAULTS,
    sink: Optional[EventSink] = None,
    notifier: Optional["DueTaskNotifier"] = None,
) -> None:
    """Send the mileage_updated event and hand newly due tasks to the notifier."""
    dispatch(
        sink,
        user_id,
        MILEAGE_UPDATED,
        {
            "motorcycle": motorcycle_payload(result.motorcycle),
            "previousMileage": result.previous_mileage,
            "newMileage": result.new_mileage,
            "units": unit_label(settings.storage_units),
        },
    )
    if notifier is not None and result.newly_due_tasks:
        notifier.report_newly_due(
            user_id, result.motorcycle, result.newly_due_tasks, result.previous_mileage
        )


def apply_mileage_update(
    repository: Repository,
    user_id: str,
    motorcycle_id: str,
    new_mileage: int,
    at: Optional[datetime] = None,
    previous_mileage: Optional[int] = None,
    notes: Optional[str] = None,
    allow_decrease: Optional[bool] = None,
    settings: Settings = DEFAULTS,
    sink: Optional[EventSink] = None,
    notifier: Optional["DueTaskNotifier"] = None,
) -> MileageUpdateResult:
    """
    Record a new odometer reading for a user's motorcycle.

    An unchanged reading is a no-op. A lower reading is rejected unless
    allow_decrease (or the allow_mileage_decrease setting) permits it.
    """
    at = at or datetime.now()
    new_mileage = _validate_mileage(new_mileage)
    motorcycle = get_owned_motorcycle(repository, user_id, motorcycle_id)

    if motorcycle.current_mileage == new_mileage:
        return MileageUpdateResult(
            motorcycle=motorcycle,
            previous_mileage=new_mileage,
            new_mileage=new_mileage,
            unchanged=True,
            message=UNCHANGED_MESSAGE,
        )

    if allow_decrease is None:
        allow_decrease = settings.allow_mileage_decrease
    if new_mileage < motorcycle.current_mileage and not allow_decrease:
        raise ValidationError(
            f"New mileage {new_mileage} is lower than current mileage "
            f"{motorcycle.current_mileage}"
        )

    result = propagate_mileage(
        repository, motorcycle, new_mileage, at, previous_mileage, notes, settings
    )
    announce_mileage_update(result, user_id, settings, sink, notifier)
    return result
