"""Creating, editing, archiving and deleting maintenance tasks."""

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from .errors import NotFoundError, ValidationError
from .interval import IntervalBase, build_interval
from .propagator import get_owned_motorcycle
from .repository import Repository
from .schedule import recompute
from .task import MaintenanceTask, Priority

logger = logging.getLogger("rideway.tasks")

_UNSET = object()


def get_owned_task(
    repository: Repository, user_id: str, task_id: str
) -> MaintenanceTask:
    task = repository.get_task(task_id)
    if task is None:
        raise NotFoundError("Maintenance task not found")
    motorcycle = repository.get_motorcycle(task.motorcycle_id)
    if motorcycle is None or not motorcycle.is_owned_by(user_id):
        raise NotFoundError("Maintenance task not found")
    return task


def create_task(
    repository: Repository,
    user_id: str,
    motorcycle_id: str,
    name: str,
    interval_miles: Optional[int] = None,
    interval_days: Optional[int] = None,
    interval_base=None,
    next_due_mileage: Optional[int] = None,
    priority=None,
    is_recurring: bool = True,
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> MaintenanceTask:
    """
    Add a task anchored at the motorcycle's current mileage and today.

    Supply interval_miles/interval_days, or an absolute next_due_mileage
    (optionally with interval_days).
    """
    if not name or not name.strip():
        raise ValidationError("Task name is required")
    today = today or date.today()
    motorcycle = get_owned_motorcycle(repository, user_id, motorcycle_id)

    interval = build_interval(
        motorcycle.current_mileage,
        today,
        interval_miles=interval_miles,
        interval_days=interval_days,
        interval_base=interval_base,
        next_due_mileage=next_due_mileage,
    )
    task = MaintenanceTask(
        id=str(uuid.uuid4()),
        motorcycle_id=motorcycle.id,
        name=name.strip(),
        description=description,
        priority=Priority.parse(priority),
        is_recurring=is_recurring,
        created_at=datetime.now(),
    )
    task.set_interval(interval)
    task = recompute(task, motorcycle)
    repository.add_task(task)
    logger.info("Created task %s (%s) for motorcycle %s", task.id, task.name, motorcycle.id)
    return task


def edit_task(
    repository: Repository,
    user_id: str,
    task_id: str,
    name=_UNSET,
    description=_UNSET,
    priority=_UNSET,
    is_recurring=_UNSET,
    interval_miles=_UNSET,
    interval_days=_UNSET,
    interval_base=_UNSET,
    next_due_mileage: Optional[int] = None,
    today: Optional[date] = None,
) -> MaintenanceTask:
    """
    Change a task. Arguments left out keep their current value; pass None to
    clear an interval.

    A changed mileage configuration restarts the mileage cycle at the current
    odometer; a changed day interval restarts the date cycle today.
    """
    today = today or date.today()
    task = get_owned_task(repository, user_id, task_id)
    motorcycle = repository.get_motorcycle(task.motorcycle_id)

    if name is not _UNSET:
        if not name or not name.strip():
            raise ValidationError("Task name is required")
        task.name = name.strip()
    if description is not _UNSET:
        task.description = description
    if priority is not _UNSET:
        task.priority = Priority.parse(priority)
    if is_recurring is not _UNSET:
        task.is_recurring = bool(is_recurring)

    miles_changed = (
        next_due_mileage is not None
        or (interval_miles is not _UNSET and interval_miles != task.interval_miles)
        or (
            interval_base is not _UNSET
            and IntervalBase.parse(interval_base) is not task.interval_base
        )
    )
    days_changed = interval_days is not _UNSET and interval_days != task.interval_days

    if miles_changed or days_changed:
        if next_due_mileage is not None:
            new_miles = None
        elif interval_miles is _UNSET:
            new_miles = task.interval_miles
        else:
            new_miles = interval_miles
        new_days = task.interval_days if interval_days is _UNSET else interval_days
        new_base = task.interval_base if interval_base is _UNSET else interval_base

        interval = build_interval(
            motorcycle.current_mileage,
            today,
            interval_miles=new_miles,
            interval_days=new_days,
            interval_base=new_base,
            next_due_mileage=next_due_mileage,
        )
        if not miles_changed:
            interval = interval.rebased(odometer=task.base_odometer)
        if not days_changed and task.base_date is not None:
            interval = interval.rebased(on=task.base_date)
        task.set_interval(interval)
        task = recompute(task, motorcycle)

    repository.update_task(task)
    return task


def archive_task(
    repository: Repository, user_id: str, task_id: str, archived: bool = True
) -> MaintenanceTask:
    """Hide a task from active views, sweeps and propagation (or restore it)."""
    task = get_owned_task(repository, user_id, task_id)
    task.archived = archived
    if not archived:
        # Coming back from the archive means the odometer may have moved on
        motorcycle = repository.get_motorcycle(task.motorcycle_id)
        task = recompute(task, motorcycle)
    repository.update_task(task)
    logger.info("Task %s %s", task_id, "archived" if archived else "restored")
    return task


def unarchive_task(repository: Repository, user_id: str, task_id: str) -> MaintenanceTask:
    return archive_task(repository, user_id, task_id, archived=False)


def delete_task(repository: Repository, user_id: str, task_id: str) -> None:
    """Remove a task for good; its service records are kept, detached."""
    get_owned_task(repository, user_id, task_id)
    repository.delete_task(task_id)
    logger.info("Deleted task %s", task_id)
