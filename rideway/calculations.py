"""Helper functions for schedule calculations."""

from datetime import date
from dateutil.relativedelta import relativedelta
from typing import Optional

from .status import Status

ZERO = "zero"


def calc_due_miles(
    base_odometer: Optional[int],
    interval: Optional[int],
    interval_base: str = "current",
    current_odometer: int = 0,
) -> Optional[int]:
    """
    Calculate next due mileage.

    - current base: base_odometer + interval (no base counts from zero)
    - zero base: next multiple of interval strictly above current_odometer
    """
    if not interval:
        return None
    if interval_base == ZERO:
        return snap_to_milestone(current_odometer, interval)
    return (base_odometer or 0) + interval


def snap_to_milestone(odometer: int, interval: int) -> int:
    """Next multiple of interval strictly greater than odometer."""
    return (odometer // interval + 1) * interval


def calc_due_date(
    base_date: Optional[date], interval_days: Optional[int]
) -> Optional[date]:
    """Calculate next due date: base + interval days."""
    if not interval_days or base_date is None:
        return None
    return base_date + relativedelta(days=interval_days)


def calc_completion_percentage(
    interval: Optional[int], remaining: Optional[int]
) -> Optional[float]:
    """Progress through the current mileage cycle, clamped to 0-100."""
    if not interval or remaining is None:
        return None
    done = (interval - max(0, remaining)) / interval * 100
    return max(0.0, min(100.0, done))


def is_due(
    current_odometer: int,
    due_miles: Optional[int],
    today: date,
    due_date: Optional[date],
) -> bool:
    """Whichever trigger arrives first makes the task due."""
    if due_miles is not None and current_odometer >= due_miles:
        return True
    return due_date is not None and today >= due_date


def check_status(current: float, due: float, soon_threshold: float) -> Status:
    """Determine status by comparing current value to due threshold."""
    if current >= due:
        return Status.OVERDUE
    if current >= due - soon_threshold:
        return Status.DUE_SOON
    return Status.OK
