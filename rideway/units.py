"""Distance unit conversion for display. The engine itself is unit-agnostic."""

from typing import Optional

KM_PER_MILE = 1.60934
MILES_PER_KM = 0.621371

LABELS = {"metric": "km", "imperial": "mi"}


def unit_label(units: str) -> str:
    """Distance label for a unit system ('km' or 'mi')."""
    return LABELS.get(units, "km")


def convert_distance(value: Optional[float], from_units: str, to_units: str):
    """Convert a distance between unit systems; None passes through."""
    if value is None or from_units == to_units:
        return value
    if from_units == "imperial" and to_units == "metric":
        return value * KM_PER_MILE
    return value * MILES_PER_KM


def format_distance(
    value: Optional[float],
    units: str,
    from_units: Optional[str] = None,
    with_label: bool = True,
) -> str:
    """Format a distance, converting from storage units when given."""
    if value is None:
        return "-"
    value = convert_distance(value, from_units or units, units)
    text = f"{value:,.0f}"
    return f"{text} {unit_label(units)}" if with_label else text
