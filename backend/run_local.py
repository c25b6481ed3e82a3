# backend/run_local.py
"""
Derive quantities from command-line values without starting the server.

    python -m backend.run_local --voltage 230 --current 2 --time 5
    python -m backend.run_local --power 1 --power-unit kW --time 90 --time-unit min
"""
import argparse

from backend.lib.elec_calc_core.engine import derive
from backend.lib.elec_calc_core.io import is_usable, parse_reading
from backend.lib.elec_calc_core.units import ALTERNATE_UNITS, BASE_UNITS
from backend.lib.presentation import result_slots

UNIT_LABELS = {"power": "W", "current": "A", "voltage": "V", "energy": "kWh", "cost": ""}


def build_parser():
    parser = argparse.ArgumentParser(description="Electrical calculator")
    for name in ("voltage", "current", "power", "time"):
        parser.add_argument(f"--{name}", default="")
        parser.add_argument(
            f"--{name}-unit",
            default=BASE_UNITS[name],
            choices=[BASE_UNITS[name], ALTERNATE_UNITS[name].unit],
        )
    parser.add_argument("--tariff", default="8.5")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    fields = {
        "voltage": args.voltage,
        "current": args.current,
        "power": args.power,
        "time": args.time,
        "tariff": args.tariff,
    }
    units = {
        "voltage": args.voltage_unit,
        "current": args.current_unit,
        "power": args.power_unit,
        "time": args.time_unit,
    }
    reading = parse_reading(fields, units)
    if not is_usable(reading):
        print("Need at least two positive values.")
        return 1

    for name, slot in result_slots(derive(reading)).items():
        print(f" - {name:<8} {slot['text']} {UNIT_LABELS[name]}".rstrip())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
