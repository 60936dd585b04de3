"""Text and DataFrame renderings of engine results."""
from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd

from .models import CostNode, InventionOutcome, ProfitReport

UNKNOWN = "unknown"

REPORT_COLUMNS = [
    "item_id",
    "name",
    "status",
    "unit_cost",
    "unit_sell_price",
    "output_quantity",
    "run_duration",
    "profit_per_run",
    "profit_per_hour",
    "traded_volume",
    "job_cost",
    "error",
]


def format_isk(value: Optional[float]) -> str:
    """Two decimals with thousands separators; unknown values stay visible."""
    if value is None:
        return UNKNOWN
    rounded = round(value, 2)
    if rounded == int(rounded):
        return f"{int(rounded):,}"
    return f"{rounded:,.2f}"


def format_duration(seconds: Optional[float]) -> str:
    """
    Compact duration such as ``14d 06h 56m 07s``.

    >>> format_duration(75)
    '01m 15s'
    >>> format_duration(0)
    '0s'
    """
    if seconds is None:
        return UNKNOWN
    total = int(round(seconds))
    if total == 0:
        return "0s"
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts: List[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours:02d}h")
    if minutes:
        parts.append(f"{minutes:02d}m")
    if secs:
        parts.append(f"{secs:02d}s")
    return " ".join(parts)


def format_cost_tree(node: CostNode) -> str:
    """Indented tree, one line per node."""
    lines = []
    for depth, current in node.walk():
        line = (
            f"{'  ' * depth}{current.item.name} x{current.quantity:,} "
            f"[{current.source.value}] {format_isk(current.cost)} ISK"
        )
        if current.runs:
            line += f" ({current.runs} runs, ME {current.material_efficiency}"
            if current.surplus:
                line += f", +{current.surplus} surplus"
            line += ")"
        if current.job_cost:
            line += f" + job {format_isk(current.job_cost)} ISK"
        lines.append(line)
    return "\n".join(lines)


def format_invention(name: str, outcome: InventionOutcome) -> str:
    lines = [
        f"Invention of {name}",
        f"  Success probability: {outcome.probability:.2%}",
        f"  Expected attempts:   {outcome.expected_attempts:.2f}",
        f"  Cost per attempt:    {format_isk(outcome.attempt_cost)} ISK "
        f"(job {format_isk(outcome.job_cost)} ISK)",
        f"  Expected cost:       {format_isk(outcome.expected_cost)} ISK",
        f"  Expected time:       {format_duration(outcome.expected_time)}",
        f"  Blueprint copy:      {outcome.runs_per_copy} runs, "
        f"ME {outcome.material_efficiency}, TE {outcome.time_efficiency}",
        f"  Cost per run:        {format_isk(outcome.cost_per_run)} ISK",
    ]
    for node in outcome.materials:
        lines.append(f"    {node.item.name} x{node.quantity:,}: {format_isk(node.cost)} ISK")
    return "\n".join(lines)


def format_ranking(reports: Sequence[ProfitReport]) -> str:
    """Fixed-width ranking table; unresolved rows show their status."""
    header = f"{'Item':>50}{'Volume':>20}{'Profit':>30}"
    lines = [header, "-" * len(header)]
    for report in reports:
        volume = "" if report.traded_volume is None else format_isk(report.traded_volume)
        if report.is_resolved:
            profit = f"{format_isk(report.profit_per_hour)} ISK/h"
        else:
            profit = f"{UNKNOWN} ({report.status.value})"
        lines.append(f"{report.item.name:>50}{volume:>20}{profit:>30}")
    return "\n".join(lines)


def reports_to_dataframe(reports: Sequence[ProfitReport]) -> pd.DataFrame:
    """One row per report, in ranking order. Unknown values are NaN/None, never 0."""
    return pd.DataFrame([report.to_dict() for report in reports], columns=REPORT_COLUMNS)
