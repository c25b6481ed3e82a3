# backend/lib/elec_calc_core/io.py
import json
import math
from typing import Iterable, List, Mapping, Optional

from .models import INPUT_FIELDS, HistoryEntry, Reading
from . import units as unit_conv
from backend.lib.app_logger import get_logger

log = get_logger(__name__)


def parse_value(raw) -> Optional[float]:
    """
    Parse one raw field into a float.

    Empty, non-numeric and non-finite input maps to None (absent) instead
    of raising.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def parse_reading(fields: Mapping[str, object], units: Optional[Mapping[str, str]] = None) -> Reading:
    """
    Build a Reading from raw field values keyed by field name.

    When `units` maps a quantity to its active display unit, the parsed
    value is normalized to the base unit (kV -> V, mA -> A, kW -> W, min -> h).
    """
    values = {}
    for name in INPUT_FIELDS:
        value = parse_value(fields.get(name))
        if value is not None and units and name in units:
            value = unit_conv.to_base(value, name, units[name])
        values[name] = value
    return Reading(**values)


def is_usable(reading: Reading) -> bool:
    # Need at least 2 positive values to perform calculations
    positive = [v for v in reading.to_dict().values() if v is not None and v > 0]
    return len(positive) >= 2


def field_status(raw, minimum: float = 0.0) -> Optional[str]:
    """Per-field check for the UI: None when empty, else 'valid' or 'invalid'."""
    if raw is None or str(raw).strip() == "":
        return None
    value = parse_value(raw)
    if value is None or value < minimum:
        return "invalid"
    return "valid"


def dump_history(entries: Iterable[HistoryEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries])


def parse_history(text: str) -> List[HistoryEntry]:
    """
    Decode a JSON history log, newest first.

    Raises ValueError when the text is not a JSON array. Individual malformed
    entries are skipped.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("history log must be a JSON array")
    entries = []
    for item in data:
        try:
            entries.append(HistoryEntry.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning("Skipping malformed history entry %r: %s", item, e)
    return entries
