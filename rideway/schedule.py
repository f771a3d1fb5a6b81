"""ScheduleView dataclass and the schedule recompute transform."""

import copy
from dataclasses import dataclass
from datetime import date
from typing import Optional, TYPE_CHECKING

from .calculations import calc_completion_percentage, check_status, is_due
from .config import DEFAULTS, Settings
from .interval import Interval
from .status import Status

if TYPE_CHECKING:
    from .motorcycle import Motorcycle
    from .task import MaintenanceTask


@dataclass
class ScheduleView:
    """Calculated due information for a task."""

    due_mileage: Optional[int] = None
    due_date: Optional[date] = None
    remaining_miles: Optional[int] = None
    remaining_days: Optional[int] = None
    completion_percentage: Optional[float] = None
    is_due: bool = False
    status: Status = Status.UNKNOWN
    task_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "taskId": self.task_id,
            "dueMileage": self.due_mileage,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "remainingMiles": self.remaining_miles,
            "remainingDays": self.remaining_days,
            "completionPercentage": self.completion_percentage,
            "isDue": self.is_due,
            "status": self.status.label,
        }


def calculate_schedule(
    interval: Interval,
    current_odometer: int,
    today: date,
    settings: Settings = DEFAULTS,
) -> ScheduleView:
    """
    Calculate due points and progress for one interval configuration.

    Logic:
    - Due mileage/date come from the interval's base point (zero-based
      intervals snap to the next milestone above current_odometer)
    - Due when either trigger has arrived (whichever comes first)
    - Status escalates to the most urgent of the two dimensions
    """
    due_mileage, due_date = interval.due_point(current_odometer)

    remaining_miles = None
    if due_mileage is not None:
        remaining_miles = due_mileage - current_odometer
    remaining_days = (due_date - today).days if due_date is not None else None

    if due_mileage is None and due_date is None:
        status = Status.UNKNOWN
    else:
        status = Status.OK
        if due_mileage is not None:
            status = check_status(
                current_odometer, due_mileage, settings.due_soon_miles
            )
        if due_date is not None:
            date_status = check_status(
                today.toordinal(), due_date.toordinal(), settings.due_soon_days
            )
            if date_status.value < status.value:
                status = date_status

    return ScheduleView(
        due_mileage=due_mileage,
        due_date=due_date,
        remaining_miles=remaining_miles,
        remaining_days=remaining_days,
        completion_percentage=calc_completion_percentage(
            interval.interval_miles, remaining_miles
        ),
        is_due=is_due(current_odometer, due_mileage, today, due_date),
        status=status,
    )


def recompute_schedule(
    task: "MaintenanceTask",
    motorcycle: "Motorcycle",
    today: date,
    settings: Settings = DEFAULTS,
) -> ScheduleView:
    """Schedule view for a task at the motorcycle's current mileage."""
    view = calculate_schedule(
        task.interval, motorcycle.current_mileage, today, settings
    )
    view.task_id = task.id
    return view


def recompute(task: "MaintenanceTask", motorcycle: "Motorcycle") -> "MaintenanceTask":
    """
    Return a copy of task with its cached due point refreshed.

    next_due_odometer/next_due_date are a memo of calculate_schedule; every
    write path that changes the base or the odometer goes through here.
    """
    refreshed = copy.copy(task)
    due_mileage, due_date = task.interval.due_point(motorcycle.current_mileage)
    refreshed.next_due_odometer = due_mileage
    refreshed.next_due_date = due_date
    return refreshed
