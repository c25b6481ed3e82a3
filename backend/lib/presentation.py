"""
=============================================================================
PRESENTATION - Result slots, chart snapshot and CSV export
=============================================================================
Turns a Derivation into what the page shows: five labeled output slots,
a doughnut chart (rendered server-side with matplotlib) and a CSV export
of the current reading and derivation.
=============================================================================
"""

import csv
import io
import math
from datetime import datetime
from typing import Dict, List, Optional

# Figure + Agg canvas: no pyplot global state, safe inside a web server
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import Patch

from backend.lib.elec_calc_core.models import RESULT_FIELDS, Derivation, Reading

CHART_COLORS = ["#2196F3", "#FF9800", "#4CAF50", "#9C27B0", "#F44336"]

THEME_COLORS = {
    "light": {"background": "#ffffff", "text": "#212121", "empty": "#e0e0e0"},
    "dark": {"background": "#1e1e1e", "text": "#e0e0e0", "empty": "#424242"},
}

CSV_HEADER = ["Timestamp", "Parameter", "Value", "Unit"]
CHART_FILENAME = "electrical-calculations-chart.png"


def format_number(value: Optional[float]) -> str:
    """
    Format a result for display.

    >>> format_number(1234567)
    '1.23M'
    >>> format_number(460)
    '460.00'
    """
    if value is None or math.isnan(value):
        return "--"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value >= 1000:
        return f"{value / 1000:.2f}k"
    if value < 0.01:
        mantissa, exponent = f"{value:.2e}".split("e")
        return f"{mantissa}e{int(exponent):+d}"
    return f"{value:.2f}"


def chart_labels(currency: str = "₹") -> List[str]:
    return ["Power (W)", "Current (A)", "Voltage (V)", "Energy (kWh)", f"Cost ({currency})"]


def result_slots(derivation: Derivation) -> Dict[str, dict]:
    """One entry per output slot: display text and whether it is determined."""
    slots = {}
    for name in RESULT_FIELDS:
        value = getattr(derivation, name)
        slots[name] = {"text": format_number(value), "determined": value is not None}
    return slots


def chart_values(derivation: Derivation) -> List[float]:
    return [getattr(derivation, name) or 0.0 for name in RESULT_FIELDS]


def render_chart_png(derivation: Derivation, theme: str = "light", currency: str = "₹") -> bytes:
    colors = THEME_COLORS.get(theme, THEME_COLORS["light"])
    values = chart_values(derivation)

    fig = Figure(figsize=(6, 6), dpi=100, facecolor=colors["background"])
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(111)
    ax.set_facecolor(colors["background"])

    wedge_props = {"width": 0.4, "edgecolor": "#ffffff", "linewidth": 2}
    if sum(values) > 0:
        wedges, _ = ax.pie(values, colors=CHART_COLORS, startangle=90, wedgeprops=wedge_props)
    else:
        # Nothing determined yet: draw an empty ring, keep the legend
        ax.pie([1], colors=[colors["empty"]], startangle=90, wedgeprops=wedge_props)
        wedges = [Patch(color=color) for color in CHART_COLORS]
    ax.legend(
        wedges,
        chart_labels(currency),
        loc="upper center",
        bbox_to_anchor=(0.5, 0.02),
        ncol=3,
        frameon=False,
        labelcolor=colors["text"],
    )
    ax.set_aspect("equal")

    buf = io.BytesIO()
    fig.savefig(buf, format="png", facecolor=fig.get_facecolor(), bbox_inches="tight")
    return buf.getvalue()


def _csv_number(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def csv_filename(now: datetime) -> str:
    return f"electrical-calculations-{now.strftime('%Y-%m-%d')}.csv"


def export_csv(reading: Reading, derivation: Derivation, now: datetime, currency: str = "₹") -> str:
    """
    Export the current reading and derivation.

    Absent inputs are written as 0, undetermined results as N/A.
    """
    stamp = now.strftime("%Y-%m-%d %H:%M:%S")
    rows = [
        ("Voltage", reading.voltage or 0, "V"),
        ("Current", reading.current or 0, "A"),
        ("Power", reading.power or 0, "W"),
        ("Time", reading.time or 0, "h"),
        ("Tariff", reading.tariff or 0, f"{currency}/kWh"),
        ("Calculated Power", derivation.power, "W"),
        ("Calculated Current", derivation.current, "A"),
        ("Calculated Voltage", derivation.voltage, "V"),
        ("Energy Consumption", derivation.energy, "kWh"),
        ("Total Cost", derivation.cost, currency),
    ]

    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for parameter, value, unit in rows:
        writer.writerow([stamp, parameter, _csv_number(value), unit])
    return out.getvalue()
