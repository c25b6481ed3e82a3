# backend/lib/elec_calc_core/units.py
"""
Display-unit handling for the four physical inputs.

Each quantity has its base unit and exactly one alternate unit with a fixed
factor. For kV and kW the alternate unit is the larger one (1 kV = 1000 V);
for mA and min it is the smaller one (1 h = 60 min).
"""
from typing import Dict, NamedTuple


class AlternateUnit(NamedTuple):
    unit: str
    factor: float
    larger: bool


BASE_UNITS = {"voltage": "V", "current": "A", "power": "W", "time": "h"}

ALTERNATE_UNITS = {
    "voltage": AlternateUnit("kV", 1000.0, True),
    "current": AlternateUnit("mA", 1000.0, False),
    "power": AlternateUnit("kW", 1000.0, True),
    "time": AlternateUnit("min", 60.0, False),
}


def default_units() -> Dict[str, str]:
    return dict(BASE_UNITS)


def validate_unit(quantity: str, unit: str) -> str:
    if not isinstance(quantity, str) or quantity not in BASE_UNITS:
        raise ValueError(f"Unknown quantity {quantity!r}")
    if not isinstance(unit, str) or unit not in (BASE_UNITS[quantity], ALTERNATE_UNITS[quantity].unit):
        raise ValueError(f"Unknown unit {unit!r} for {quantity!r}")
    return unit


def to_base(value: float, quantity: str, unit: str) -> float:
    """Normalize a displayed value to the quantity's base unit."""
    validate_unit(quantity, unit)
    if unit == BASE_UNITS[quantity]:
        return value
    alt = ALTERNATE_UNITS[quantity]
    return value * alt.factor if alt.larger else value / alt.factor


def from_base(value: float, quantity: str, unit: str) -> float:
    validate_unit(quantity, unit)
    if unit == BASE_UNITS[quantity]:
        return value
    alt = ALTERNATE_UNITS[quantity]
    return value / alt.factor if alt.larger else value * alt.factor


def convert(value: float, quantity: str, from_unit: str, to_unit: str) -> float:
    """
    Rescale a displayed value when the active unit toggles.

    2 h -> 120 min, 2 A -> 2000 mA, 230 V -> 0.23 kV.
    """
    if from_unit == to_unit:
        validate_unit(quantity, from_unit)
        return value
    return from_base(to_base(value, quantity, from_unit), quantity, to_unit)
