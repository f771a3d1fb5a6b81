"""Interval model: a task's recurrence rule and its validation."""

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from .calculations import calc_due_date, calc_due_miles
from .errors import ValidationError


class IntervalBase(str, Enum):
    """How mileage recurrence is anchored."""

    CURRENT = "current"  # count forward from the last base point
    ZERO = "zero"  # fixed milestones at multiples of the interval

    @classmethod
    def parse(cls, value) -> "IntervalBase":
        if value is None:
            return cls.CURRENT
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Interval base must be 'current' or 'zero', got {value!r}"
            ) from None


@dataclass(frozen=True)
class Interval:
    """Recurrence configuration for one task."""

    interval_miles: Optional[int] = None
    interval_days: Optional[int] = None
    interval_base: IntervalBase = IntervalBase.CURRENT
    base_odometer: Optional[int] = None
    base_date: Optional[date] = None

    def due_point(
        self, current_odometer: int
    ) -> Tuple[Optional[int], Optional[date]]:
        """Return (due mileage, due date); None where a dimension is untracked."""
        due_miles = calc_due_miles(
            self.base_odometer,
            self.interval_miles,
            self.interval_base,
            current_odometer,
        )
        return due_miles, calc_due_date(self.base_date, self.interval_days)

    def rebased(
        self, odometer: Optional[int] = None, on: Optional[date] = None
    ) -> "Interval":
        """Copy with a new base point; None keeps the existing value."""
        return replace(
            self,
            base_odometer=self.base_odometer if odometer is None else odometer,
            base_date=self.base_date if on is None else on,
        )


def _positive(name: str, value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number")
    if value <= 0:
        raise ValidationError(f"{name} must be greater than zero")
    return value


def build_interval(
    current_odometer: int,
    today: date,
    interval_miles: Optional[int] = None,
    interval_days: Optional[int] = None,
    interval_base=None,
    next_due_mileage: Optional[int] = None,
) -> Interval:
    """
    Validate a task's interval configuration and anchor it at the current point.

    Interval style supplies interval_miles and/or interval_days. Absolute style
    supplies next_due_mileage; the equivalent interval is back-computed from
    the current odometer. The day interval may accompany either style.
    """
    base = IntervalBase.parse(interval_base)
    interval_miles = _positive("Mileage interval", interval_miles)
    interval_days = _positive("Day interval", interval_days)

    if next_due_mileage is not None:
        if interval_miles is not None:
            raise ValidationError(
                "Provide either a mileage interval or a next due mileage, not both"
            )
        if base is IntervalBase.ZERO:
            raise ValidationError(
                "A next due mileage cannot be combined with a zero-based interval"
            )
        if next_due_mileage <= current_odometer:
            raise ValidationError(
                "Next due mileage must be greater than current motorcycle mileage"
            )
        interval_miles = next_due_mileage - current_odometer

    if interval_miles is None and interval_days is None:
        raise ValidationError(
            "Either mileage interval or time interval must be provided"
        )

    return Interval(
        interval_miles=interval_miles,
        interval_days=interval_days,
        interval_base=base,
        base_odometer=current_odometer,
        base_date=today,
    )
