"""Display formatting for durations, money and task identifiers."""

import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def round_half_up(value, quantum: str = "0.01") -> float:
    """Round half away from zero at the given quantum."""
    return float(Decimal(str(value)).quantize(Decimal(quantum), rounding=ROUND_HALF_UP))


def format_duration(minutes) -> str:
    """Format minutes to readable string like '2h 30m'."""
    if minutes is None or minutes < 0:
        return "0m"

    minutes = int(round_half_up(minutes, "1"))
    hours = minutes // 60
    mins = minutes % 60

    if hours == 0:
        return f"{mins}m"
    elif mins == 0:
        return f"{hours}h"
    else:
        return f"{hours}h {mins}m"


def format_duration_with_seconds(total_seconds) -> str:
    """
    Format elapsed seconds for a live timer: '5s', '1m 23s', '1h 0m 30s'.

    Seconds are always shown. Minutes are shown once non-zero or once
    hours are shown.
    """
    total_seconds = max(0, int(total_seconds or 0))
    hours = total_seconds // 3600
    mins = (total_seconds % 3600) // 60
    secs = total_seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if mins > 0 or hours > 0:
        parts.append(f"{mins}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def format_currency(amount) -> str:
    """Format a USD amount: '$1,234.50'."""
    amount = float(amount or 0)
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def get_project_prefix(project_name: Optional[str]) -> str:
    """First 4 letters of the project name, uppercased ('Fenceworkshop' -> 'FENC')."""
    letters = re.sub(r"[^a-zA-Z]", "", project_name or "")[:4].upper()
    return letters or "PRJ"


def format_task_identifier(task_number: Optional[int], project_name: Optional[str]) -> str:
    """Task identifier with project prefix: FENC-001, FENC-002, PRJ-???."""
    prefix = get_project_prefix(project_name)
    if task_number is None:
        return f"{prefix}-???"
    return f"{prefix}-{task_number:03d}"
