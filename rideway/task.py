"""MaintenanceTask class for recurring service definitions."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from .errors import ValidationError
from .interval import Interval, IntervalBase


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value) -> "Priority":
        if value is None:
            return cls.MEDIUM
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Priority must be low, medium or high, got {value!r}"
            ) from None


class MaintenanceTask:
    """A maintenance task defining when a service should be performed."""

    def __init__(
        self,
        id: str,
        motorcycle_id: str,
        name: str,
        interval_miles: Optional[int] = None,
        interval_days: Optional[int] = None,
        interval_base: IntervalBase = IntervalBase.CURRENT,
        base_odometer: Optional[int] = None,
        base_date: Optional[date] = None,
        next_due_odometer: Optional[int] = None,
        next_due_date: Optional[date] = None,
        priority: Priority = Priority.MEDIUM,
        is_recurring: bool = True,
        archived: bool = False,
        description: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.motorcycle_id = motorcycle_id
        self.name = name
        self.description = description
        self.interval_miles = interval_miles
        self.interval_days = interval_days
        self.interval_base = IntervalBase.parse(interval_base)
        self.base_odometer = base_odometer
        self.base_date = base_date
        self.next_due_odometer = next_due_odometer
        self.next_due_date = next_due_date
        self.priority = Priority.parse(priority)
        self.is_recurring = True if is_recurring is None else is_recurring
        self.archived = archived or False
        self.created_at = created_at

    @property
    def interval(self) -> Interval:
        """The recurrence configuration as a value object."""
        return Interval(
            interval_miles=self.interval_miles,
            interval_days=self.interval_days,
            interval_base=self.interval_base,
            base_odometer=self.base_odometer,
            base_date=self.base_date,
        )

    @property
    def has_interval(self) -> bool:
        return self.interval_miles is not None or self.interval_days is not None

    def set_interval(self, interval: Interval) -> None:
        """Copy an interval's configuration and base point onto this task."""
        self.interval_miles = interval.interval_miles
        self.interval_days = interval.interval_days
        self.interval_base = interval.interval_base
        self.base_odometer = interval.base_odometer
        self.base_date = interval.base_date

    def __repr__(self) -> str:
        return f"MaintenanceTask({self.id!r}, {self.name!r})"
