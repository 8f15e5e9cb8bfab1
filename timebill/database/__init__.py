"""
Database module for timebill.

Handles:
- Clients, projects, tasks and tags
- The time entry ledger and per-user active timers
- Invoice snapshots
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    ClientDB,
    ProjectDB,
    TaskDB,
    TagDB,
    TimeEntryDB,
    ActiveTimerDB,
    InvoiceDB,
    TaskStatusEnum,
    EntrySourceEnum,
    StatsPeriodEnum,
)
from .exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
    NotFoundError,
    ValidationError,
    AuthorizationError,
    EmptyPeriodError,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "ClientDB",
    "ProjectDB",
    "TaskDB",
    "TagDB",
    "TimeEntryDB",
    "ActiveTimerDB",
    "InvoiceDB",
    "TaskStatusEnum",
    "EntrySourceEnum",
    "StatsPeriodEnum",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseConstraintError",
    "DatabaseOperationError",
    "NotFoundError",
    "ValidationError",
    "AuthorizationError",
    "EmptyPeriodError",
]
