"""
=============================================================================
SESSION - Process-wide calculator state and the UI command contract
=============================================================================
One CalculatorSession is built at startup and handed to the web layer.
Every UI action maps to one method here:

    edit a field        -> edit_field(name, raw)   (debounced calculate)
    Ctrl+Enter          -> calculate()
    toggle a unit       -> toggle_unit(quantity, unit)
    reset               -> reset()
    toggle theme        -> toggle_theme()
    export CSV / chart  -> export_csv() / chart_png()
=============================================================================
"""

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from backend.lib import presentation
from backend.lib.app_logger import get_logger
from backend.lib.elec_calc_core import units as unit_conv
from backend.lib.elec_calc_core.engine import derive
from backend.lib.elec_calc_core.history import HistoryStore, ThemeStore
from backend.lib.elec_calc_core.io import field_status, is_usable, parse_reading, parse_value
from backend.lib.elec_calc_core.models import INPUT_FIELDS, Derivation, HistoryEntry, Reading

log = get_logger(__name__)


class Debouncer:
    """
    Run `func` once `wait` seconds after the last trigger.

    Each trigger cancels the pending timer and starts a new one.
    `timer_factory` has the threading.Timer signature so tests can swap
    in a manual timer.
    """

    def __init__(self, wait: float, func: Callable[[], object],
                 timer_factory: Callable = threading.Timer):
        self.wait = wait
        self.func = func
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self.timer_factory(self.wait, lambda: self._run(timer))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Run a pending call now instead of waiting."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self.func()

    def _run(self, timer) -> None:
        with self._lock:
            if self._timer is not timer:
                # superseded by a later trigger
                return
            self._timer = None
        self.func()


class CalculatorSession:
    def __init__(self, history: HistoryStore, theme_store: ThemeStore,
                 offline_cache=None, default_tariff: str = "8.5",
                 debounce_seconds: float = 0.3, currency: str = "₹",
                 timer_factory: Callable = threading.Timer):
        self.history_store = history
        self.theme_store = theme_store
        self.offline_cache = offline_cache
        self.default_tariff = default_tariff
        self.currency = currency

        self._lock = threading.RLock()
        self.fields: Dict[str, str] = {}
        self.units: Dict[str, str] = unit_conv.default_units()
        self.derivation = Derivation.empty()
        self.theme = "light"

        self._debouncers = {
            name: Debouncer(debounce_seconds, self.calculate, timer_factory)
            for name in INPUT_FIELDS
        }
        self._clear_fields()

    def start(self) -> None:
        """Load persisted theme and history. Called once at startup."""
        with self._lock:
            self.theme = self.theme_store.load()
            entries = self.history_store.load()
        log.info("Session started: theme=%s, %d recent calculations", self.theme, len(entries))

    def _clear_fields(self) -> None:
        self.fields = {name: "" for name in INPUT_FIELDS}
        self.fields["tariff"] = self.default_tariff

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def reading(self) -> Reading:
        with self._lock:
            return parse_reading(self.fields, self.units)

    def set_fields(self, values: Dict[str, object]) -> None:
        self.update(fields=values)

    def update(self, fields: Optional[Dict[str, object]] = None,
               units: Optional[Dict[str, str]] = None) -> None:
        """
        Store several fields and active units at once.

        Every name and unit is checked before anything is written, so a
        ValueError leaves the session unchanged.
        """
        fields, units = fields or {}, units or {}
        for name in fields:
            self._check_field(name)
        for quantity, unit in units.items():
            unit_conv.validate_unit(quantity, unit)
        with self._lock:
            for name, raw in fields.items():
                self.fields[name] = "" if raw is None else str(raw)
            self.units.update(units)

    def edit_field(self, name: str, raw) -> None:
        """Store a keystroke's worth of input and schedule a recompute."""
        self.set_fields({name: raw})
        self._debouncers[name].trigger()

    def flush_pending(self) -> None:
        for debouncer in self._debouncers.values():
            debouncer.flush()

    def validate_field(self, name: str, minimum: float = 0.0) -> Optional[str]:
        self._check_field(name)
        with self._lock:
            return field_status(self.fields[name], minimum)

    def field_statuses(self) -> Dict[str, Optional[str]]:
        return {name: self.validate_field(name) for name in INPUT_FIELDS}

    @staticmethod
    def _check_field(name: str) -> None:
        if not isinstance(name, str) or name not in INPUT_FIELDS:
            raise ValueError(f"Unknown field {name!r}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def calculate(self) -> Derivation:
        with self._lock:
            reading = parse_reading(self.fields, self.units)
            if not is_usable(reading):
                self.derivation = Derivation.empty()
                return self.derivation

            self.derivation = derive(reading)
            entry = self.history_store.record(reading, self.derivation)
        log.debug("Calculated %s -> %s", reading, self.derivation)
        if self.offline_cache is not None:
            self.offline_cache.post_message({"type": "CACHE_CALCULATION", "calculation": entry.to_dict()})
        return self.derivation

    def toggle_unit(self, quantity: str, unit: str) -> Derivation:
        """Switch the display unit, rescaling the field in place, then recompute."""
        with self._lock:
            unit_conv.validate_unit(quantity, unit)
            current_unit = self.units[quantity]
            value = parse_value(self.fields[quantity])
            if value is not None and unit != current_unit:
                converted = unit_conv.convert(value, quantity, current_unit, unit)
                self.fields[quantity] = str(int(converted)) if converted.is_integer() else repr(converted)
            self.units[quantity] = unit
            return self.calculate()

    def set_unit(self, quantity: str, unit: str) -> None:
        """Switch the active unit without touching the displayed value."""
        self.update(units={quantity: unit})

    def reset(self) -> None:
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        with self._lock:
            self._clear_fields()
            self.units = unit_conv.default_units()
            self.derivation = Derivation.empty()

    def toggle_theme(self) -> str:
        with self._lock:
            self.theme = self.theme_store.toggle(self.theme)
            return self.theme

    def set_theme(self, theme: str) -> str:
        with self._lock:
            self.theme = self.theme_store.save(theme)
            return self.theme

    # ------------------------------------------------------------------
    # Views and exports
    # ------------------------------------------------------------------

    def history(self) -> List[HistoryEntry]:
        return list(self.history_store.entries)

    def export_csv(self, now: Optional[datetime] = None) -> Optional[str]:
        """CSV of the current reading and derivation, or None when the reading is not usable."""
        reading = self.reading
        if not is_usable(reading):
            return None
        return presentation.export_csv(reading, derive(reading), now or datetime.now(), self.currency)

    def chart_png(self) -> bytes:
        with self._lock:
            derivation, theme = self.derivation, self.theme
        return presentation.render_chart_png(derivation, theme, self.currency)

    def state(self) -> dict:
        with self._lock:
            return {
                "fields": dict(self.fields),
                "units": dict(self.units),
                "validity": self.field_statuses(),
                "usable": is_usable(parse_reading(self.fields, self.units)),
                "results": presentation.result_slots(self.derivation),
                "chart": {
                    "labels": presentation.chart_labels(self.currency),
                    "values": presentation.chart_values(self.derivation),
                    "colors": presentation.CHART_COLORS,
                },
                "derivation": self.derivation.to_dict(),
                "theme": self.theme,
            }
