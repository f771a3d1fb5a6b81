"""Motorcycle class for vehicle identification and odometer state."""

from datetime import datetime
from typing import Optional


class Motorcycle:
    """A motorcycle owned by one user."""

    def __init__(
        self,
        id: str,
        owner_id: str,
        name: str,
        make: Optional[str] = None,
        model: Optional[str] = None,
        year: Optional[int] = None,
        current_mileage: int = 0,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.owner_id = owner_id
        self.name = name
        self.make = make
        self.model = model
        self.year = year
        self.current_mileage = current_mileage or 0
        self.created_at = created_at

    @property
    def display_name(self) -> str:
        """Human-readable motorcycle name."""
        parts = [str(p) for p in (self.year, self.make, self.model) if p]
        if not parts:
            return self.name
        return f"{self.name} ({' '.join(parts)})"

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id
