from backend.lib.elec_calc_core.models import Derivation, Reading
from backend.lib.presentation import (
    chart_values,
    csv_filename,
    export_csv,
    format_number,
    render_chart_png,
    result_slots,
)
from datetime import datetime


def test_format_number():
    assert format_number(None) == "--"
    assert format_number(float("nan")) == "--"
    assert format_number(460) == "460.00"
    assert format_number(2) == "2.00"
    assert format_number(1500) == "1.50k"
    assert format_number(2_500_000) == "2.50M"
    assert format_number(0.005) == "5.00e-3"
    assert format_number(0.01) == "0.01"


def test_result_slots_mark_undetermined():
    slots = result_slots(Derivation(power=460.0, current=2.0, voltage=230.0))
    assert slots["power"] == {"text": "460.00", "determined": True}
    assert slots["energy"] == {"text": "--", "determined": False}
    assert list(slots) == ["power", "current", "voltage", "energy", "cost"]


def test_chart_values_zero_for_undetermined():
    assert chart_values(Derivation(power=1000.0, energy=5.0)) == [1000.0, 0.0, 0.0, 5.0, 0.0]


def test_export_csv_layout():
    now = datetime(2025, 11, 1, 18, 30, 5)
    text = export_csv(
        Reading(power=1000.0, time=5.0, tariff=8.5),
        Derivation(power=1000.0, energy=5.0, cost=42.5),
        now,
        currency="€",
    )
    lines = text.splitlines()
    assert len(lines) == 11
    assert lines[0] == "Timestamp,Parameter,Value,Unit"
    assert lines[1] == "2025-11-01 18:30:05,Voltage,0,V"
    assert lines[5] == "2025-11-01 18:30:05,Tariff,8.5,€/kWh"
    assert lines[7] == "2025-11-01 18:30:05,Calculated Current,N/A,A"
    assert lines[9] == "2025-11-01 18:30:05,Energy Consumption,5,kWh"
    assert lines[10] == "2025-11-01 18:30:05,Total Cost,42.5,€"
    assert csv_filename(now) == "electrical-calculations-2025-11-01.csv"


def test_render_chart_png_light_and_dark():
    png = render_chart_png(Derivation(power=460.0, current=2.0, voltage=230.0), theme="light")
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
    assert render_chart_png(Derivation(power=460.0), theme="dark").startswith(b"\x89PNG")


def test_render_chart_png_without_data():
    assert render_chart_png(Derivation.empty()).startswith(b"\x89PNG")
