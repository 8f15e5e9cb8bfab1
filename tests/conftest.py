"""
Pytest configuration and shared fixtures.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from timebill.database.connection import Database
from timebill.database.repositories import (
    ClientRepository,
    ProjectRepository,
    TaskRepository,
    TagRepository,
    TimeEntryRepository,
    TimerRepository,
    InvoiceRepository,
)
from timebill.services.reports import ReportService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeClock:
    """Controllable replacement for get_local_now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@dataclass
class Repos:
    clients: ClientRepository
    projects: ProjectRepository
    tasks: TaskRepository
    tags: TagRepository
    entries: TimeEntryRepository
    timers: TimerRepository
    invoices: InvoiceRepository
    reports: ReportService


@pytest.fixture
def clock():
    """Clock fixed at Friday 2026-10-16 10:00."""
    return FakeClock(datetime(2026, 10, 16, 10, 0))


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    database = Database("sqlite+aiosqlite:///:memory:")
    assert await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def repos(db, clock):
    """All repositories bound to the test database and clock."""
    entries = TimeEntryRepository(db)
    projects = ProjectRepository(db)
    tags = TagRepository(db)
    tasks = TaskRepository(db)
    clients = ClientRepository(db)

    timers = TimerRepository(db)
    timers.clock = clock
    invoices = InvoiceRepository(db)
    invoices.clock = clock
    reports = ReportService(projects=projects, entries=entries, tags=tags, tasks=tasks, clients=clients)
    reports.clock = clock

    return Repos(
        clients=clients,
        projects=projects,
        tasks=tasks,
        tags=tags,
        entries=entries,
        timers=timers,
        invoices=invoices,
        reports=reports,
    )


@pytest_asyncio.fixture
async def client(repos):
    """Client billed at $50/h."""
    return await repos.clients.create(USER_ID, "Acme Fencing", "billing@acme.example", hourly_rate_usd=50.0)


@pytest_asyncio.fixture
async def project(repos, client):
    return await repos.projects.create(USER_ID, client.id, "Fenceworkshop")


@pytest_asyncio.fixture
async def other_project(repos):
    """Project owned by a different user."""
    other_client = await repos.clients.create(OTHER_USER_ID, "Other Co", "ap@other.example", hourly_rate_usd=80.0)
    return await repos.projects.create(OTHER_USER_ID, other_client.id, "Other Project")
