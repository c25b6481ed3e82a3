# backend/lib/elec_calc_core/models.py
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

INPUT_FIELDS = ("voltage", "current", "power", "time", "tariff")
RESULT_FIELDS = ("power", "current", "voltage", "energy", "cost")


@dataclass(frozen=True)
class Reading:
    """
    Raw input snapshot in base units (V, A, W, h, currency/kWh).
    None means the field is absent; consumers treat it as zero.
    """
    voltage: Optional[float] = None
    current: Optional[float] = None
    power: Optional[float] = None
    time: Optional[float] = None
    tariff: Optional[float] = None

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "Reading":
        return cls(**{name: _optional_float(data.get(name)) for name in INPUT_FIELDS})


@dataclass(frozen=True)
class Derivation:
    """Computed quantities; None marks an undetermined value."""
    power: Optional[float] = None
    current: Optional[float] = None
    voltage: Optional[float] = None
    energy: Optional[float] = None
    cost: Optional[float] = None

    @classmethod
    def empty(cls) -> "Derivation":
        return cls()

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "Derivation":
        return cls(**{name: _optional_float(data.get(name)) for name in RESULT_FIELDS})


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: datetime
    reading: Reading
    derivation: Derivation

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "inputs": self.reading.to_dict(),
            "results": self.derivation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        # Raises KeyError/TypeError/ValueError on malformed entries
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00")),
            reading=Reading.from_dict(data["inputs"]),
            derivation=Derivation.from_dict(data["results"]),
        )


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)
