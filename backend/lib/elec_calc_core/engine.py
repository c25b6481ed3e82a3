# backend/lib/elec_calc_core/engine.py
from typing import Optional

from .models import Derivation, Reading


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def derive(reading: Reading) -> Derivation:
    """
    Compute every quantity the reading allows.

    Power, current and voltage prefer the value rebuilt from the other two
    inputs (P = V * I and its inversions) over a directly supplied field.
    Energy is based on the derived power when there is one, otherwise on
    the raw power field, and is normalized from Wh to kWh. Cost needs
    energy and a tariff. Anything without its inputs stays None.
    """
    v, i, p = reading.voltage, reading.current, reading.power
    t, tariff = reading.time, reading.tariff

    # P = V * I
    if _positive(v) and _positive(i):
        power = v * i
    elif _positive(p):
        power = p
    else:
        power = None

    # I = P / V
    if _positive(p) and _positive(v):
        current = p / v
    elif _positive(i):
        current = i
    else:
        current = None

    # V = P / I
    if _positive(p) and _positive(i):
        voltage = p / i
    elif _positive(v):
        voltage = v
    else:
        voltage = None

    # E = P * t, in kWh
    effective_power = power if power is not None else p
    if _positive(effective_power) and _positive(t):
        energy = effective_power * t / 1000
    else:
        energy = None

    if energy is not None and _positive(tariff):
        cost = energy * tariff
    else:
        cost = None

    return Derivation(power=power, current=current, voltage=voltage, energy=energy, cost=cost)
