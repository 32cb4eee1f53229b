"""Draw log export and money formatting."""

from __future__ import annotations

import csv
import io
from typing import Any

CSV_HEADER = ("timestamp", "member", "box_id", "reward")


def build_csv(state: dict[str, Any]) -> str:
    """Render the draw log as CSV in chronological order, header first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in state["drawLogs"]:
        writer.writerow((entry["timestamp"], entry["member"], entry["boxId"], entry["reward"]))
    return buffer.getvalue()


def format_money(value: int | float | None) -> str:
    """Format an amount the way the game displays it, e.g. ``20.000 đ``."""
    if value is None:
        return "-"
    return f"{value:,.0f}".replace(",", ".") + " đ"
