"""Utility modules for timebill."""

from .datetime_utils import get_local_now, to_naive_local
from .formatting import (
    format_duration,
    format_duration_with_seconds,
    format_currency,
    format_task_identifier,
)

__all__ = [
    "get_local_now",
    "to_naive_local",
    "format_duration",
    "format_duration_with_seconds",
    "format_currency",
    "format_task_identifier",
]
