"""Append-only records: mileage logs and service records."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class MileageLog:
    """One odometer reading change."""

    id: str
    motorcycle_id: str
    previous_mileage: Optional[int]
    new_mileage: int
    timestamp: datetime
    notes: Optional[str] = None


@dataclass(frozen=True)
class ServiceRecord:
    """A record of maintenance performed."""

    id: str
    motorcycle_id: str
    date: date
    task_id: Optional[str] = None
    mileage: Optional[int] = None
    cost: Optional[float] = None
    notes: Optional[str] = None
    is_scheduled: bool = False
    resets_interval: bool = True
    next_due_odometer: Optional[int] = None
    next_due_date: Optional[date] = None
