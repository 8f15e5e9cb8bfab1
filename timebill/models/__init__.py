"""Pydantic input models."""

from .schemas import (
    ClientCreate,
    ClientUpdate,
    TaskCreate,
    TaskUpdate,
    TagCreate,
    TimeEntryUpdate,
    parse_input,
)

__all__ = [
    "ClientCreate",
    "ClientUpdate",
    "TaskCreate",
    "TaskUpdate",
    "TagCreate",
    "TimeEntryUpdate",
    "parse_input",
]
