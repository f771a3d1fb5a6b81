"""Status enum for maintenance urgency levels."""

from enum import Enum


class Status(Enum):
    """Maintenance status categories. Lower value = more urgent."""

    OVERDUE = 1
    DUE_SOON = 2
    OK = 3
    UNKNOWN = 4  # Neither a mileage nor a date due point

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()
