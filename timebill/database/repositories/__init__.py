"""
Repository classes for database operations.

Each repository handles CRUD and queries for its entity type and takes
the acting user_id explicitly on every call.
"""

from .clients import ClientRepository, get_client_repository
from .projects import ProjectRepository, get_project_repository
from .tasks import TaskRepository, get_task_repository
from .tags import TagRepository, get_tag_repository
from .time_entries import TimeEntryRepository, get_time_entry_repository
from .timers import TimerRepository, get_timer_repository
from .invoices import InvoiceRepository, get_invoice_repository

__all__ = [
    "ClientRepository",
    "get_client_repository",
    "ProjectRepository",
    "get_project_repository",
    "TaskRepository",
    "get_task_repository",
    "TagRepository",
    "get_tag_repository",
    "TimeEntryRepository",
    "get_time_entry_repository",
    "TimerRepository",
    "get_timer_repository",
    "InvoiceRepository",
    "get_invoice_repository",
]
