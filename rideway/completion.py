"""
Completion processing: logging service and advancing a task's schedule.

Two scheduling choices are offered when a recurring task is completed:

- reset (default): the cycle restarts at the completion point
- maintain original schedule: early completion keeps the original due
  point; late completion advances one interval from the original due point,
  so the cadence does not drift toward whenever the work got done
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from .config import DEFAULTS, Settings
from .errors import ValidationError
from .events import (
    EventSink,
    MAINTENANCE_COMPLETED,
    dispatch,
    motorcycle_payload,
    record_payload,
    task_payload,
)
from .motorcycle import Motorcycle
from .propagator import (
    MileageUpdateResult,
    announce_mileage_update,
    get_owned_motorcycle,
    propagate_mileage,
)
from .records import ServiceRecord
from .repository import Repository
from .schedule import recompute
from .task import MaintenanceTask
from .tasks import get_owned_task

if TYPE_CHECKING:
    from .notifier import DueTaskNotifier

logger = logging.getLogger("rideway.completion")


@dataclass
class Completion:
    """A service performed: when, at what mileage, and what it cost."""

    date: Optional[date] = None
    mileage: Optional[int] = None
    cost: Optional[float] = None
    notes: Optional[str] = None
    motorcycle_id: Optional[str] = None


@dataclass
class CompletionResult:
    service_record: ServiceRecord
    updated_task: Optional[MaintenanceTask] = None
    mileage_update: Optional[MileageUpdateResult] = None


def reschedule(
    task: MaintenanceTask,
    motorcycle: Motorcycle,
    mileage: int,
    on: date,
    reset_schedule: bool = True,
) -> MaintenanceTask:
    """
    Return a copy of a recurring task advanced past a completion.

    Only the base point is chosen here; the due point is then recomputed at
    the completion mileage, so the stored cache always matches the base.
    Zero-based tasks land on the first milestone above the completion
    mileage either way.
    """
    updated = copy.copy(task)

    if reset_schedule:
        updated.base_odometer = mileage
        updated.base_date = on
    else:
        if task.interval_miles:
            if task.next_due_odometer is None:
                updated.base_odometer = mileage
            else:
                due_mileage = task.next_due_odometer
                if mileage >= due_mileage:
                    due_mileage += task.interval_miles
                updated.base_odometer = due_mileage - task.interval_miles

        if task.interval_days:
            if task.next_due_date is None:
                updated.base_date = on
            else:
                due_date = task.next_due_date
                if on >= due_date:
                    due_date += relativedelta(days=task.interval_days)
                updated.base_date = due_date - relativedelta(days=task.interval_days)

    at_service = copy.copy(motorcycle)
    at_service.current_mileage = mileage
    return recompute(updated, at_service)


def complete_task(
    repository: Repository,
    user_id: str,
    task_id: Optional[str],
    completion: Completion,
    reset_schedule: bool = True,
    today: Optional[date] = None,
    settings: Settings = DEFAULTS,
    sink: Optional[EventSink] = None,
    notifier: Optional["DueTaskNotifier"] = None,
) -> CompletionResult:
    """
    Record a completed service and advance the referenced task.

    Without a task id the completion is a plain service record for
    completion.motorcycle_id. A completion mileage above the odometer is
    treated as a new reading and propagated to the other tasks.
    """
    today = today or date.today()
    task = None
    if task_id is not None:
        task = get_owned_task(repository, user_id, task_id)
        motorcycle = repository.get_motorcycle(task.motorcycle_id)
    elif completion.motorcycle_id is not None:
        motorcycle = get_owned_motorcycle(repository, user_id, completion.motorcycle_id)
    else:
        raise ValidationError("A completion needs a task or a motorcycle")

    mileage = completion.mileage
    if mileage is None:
        mileage = motorcycle.current_mileage
    if isinstance(mileage, bool) or not isinstance(mileage, int):
        raise ValidationError("Maintenance mileage must be a whole number")
    if mileage < motorcycle.current_mileage:
        raise ValidationError(
            "Maintenance mileage cannot be less than current motorcycle mileage"
        )
    if completion.cost is not None and completion.cost < 0:
        raise ValidationError("Cost cannot be negative")
    on = completion.date or today

    updated_task = None
    mileage_update = None
    with repository.transaction():
        if task is not None and task.is_recurring and task.has_interval:
            updated_task = reschedule(task, motorcycle, mileage, on, reset_schedule)
            repository.update_task(updated_task)
        elif task is not None:
            updated_task = task

        if mileage > motorcycle.current_mileage:
            mileage_update = propagate_mileage(
                repository,
                motorcycle,
                mileage,
                datetime.combine(on, datetime.min.time()),
                notes=f"Service performed at {mileage}",
                settings=settings,
                exclude={task.id} if task else (),
            )
            if updated_task is not None:
                updated_task = repository.get_task(updated_task.id)

        record = ServiceRecord(
            id=str(uuid.uuid4()),
            motorcycle_id=motorcycle.id,
            date=on,
            task_id=task.id if task else None,
            mileage=mileage,
            cost=completion.cost,
            notes=completion.notes or (f"Completed {task.name}" if task else None),
            is_scheduled=task is not None,
            resets_interval=reset_schedule,
            next_due_odometer=updated_task.next_due_odometer if updated_task else None,
            next_due_date=updated_task.next_due_date if updated_task else None,
        )
        repository.add_service_record(record)

    logger.info(
        "Completed %s on motorcycle %s at %s (reset=%s)",
        task.name if task else "service",
        motorcycle.id,
        mileage,
        reset_schedule,
    )

    payload = {
        "motorcycle": motorcycle_payload(motorcycle),
        "record": record_payload(record),
    }
    if task is not None:
        payload["task"] = task_payload(task)
    dispatch(sink, user_id, MAINTENANCE_COMPLETED, payload)
    if mileage_update is not None:
        announce_mileage_update(mileage_update, user_id, settings, sink, notifier)

    return CompletionResult(
        service_record=record,
        updated_task=updated_task,
        mileage_update=mileage_update,
    )
