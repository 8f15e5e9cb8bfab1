"""
Unit tests for TimerRepository with a mocked database session.

Store-level behaviour (upsert, materialization) is covered by the
integration tests against SQLite.
"""

import pytest
from unittest.mock import AsyncMock, Mock
from datetime import datetime

from timebill.database.repositories.timers import TimerRepository
from timebill.database.models import ActiveTimerDB, ProjectDB
from timebill.database.exceptions import DatabaseOperationError

NOW = datetime(2026, 10, 16, 10, 0)


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    # Mock session context manager
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    # Mock session methods
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.add = Mock()
    session.expunge = Mock()

    db.session = Mock(return_value=session)
    db.dialect_name = "sqlite"

    return db, session


@pytest.fixture
def timer_repository(mock_database):
    """Create TimerRepository with mocked database and fixed clock."""
    db, session = mock_database
    repo = TimerRepository(db)
    repo.clock = lambda: NOW
    return repo, session


def result_returning(value):
    result = Mock()
    result.scalar_one_or_none = Mock(return_value=value)
    return result


def claim_result(rowcount):
    result = Mock()
    result.rowcount = rowcount
    return result


# ============================================================
# STOP TIMER
# ============================================================

@pytest.mark.asyncio
async def test_stop_without_timer_is_noop(timer_repository):
    """Stopping with no active timer returns None and writes nothing."""
    repo, session = timer_repository
    session.execute.return_value = result_returning(None)

    assert await repo.stop_timer("user-1") is None

    session.add.assert_not_called()
    assert session.execute.await_count == 1


@pytest.mark.asyncio
async def test_stop_orphaned_timer_deletes_row_only(timer_repository):
    """A timer whose project was deleted is discarded without an entry."""
    repo, session = timer_repository
    timer = ActiveTimerDB(id=1, user_id="user-1", project_id=None, started_at=datetime(2026, 10, 16, 9, 0), tag_ids=[])
    session.execute.side_effect = [result_returning(timer), claim_result(1)]

    assert await repo.stop_timer("user-1") is None

    session.add.assert_not_called()
    session.expunge.assert_called_once_with(timer)


@pytest.mark.asyncio
async def test_stop_zero_length_timer_discarded(timer_repository):
    """A timer started at (or after) now produces no entry."""
    repo, session = timer_repository
    timer = ActiveTimerDB(id=1, user_id="user-1", project_id=3, started_at=NOW, tag_ids=[])
    session.execute.side_effect = [result_returning(timer), claim_result(1)]

    assert await repo.stop_timer("user-1") is None
    session.add.assert_not_called()
    session.expunge.assert_called_once_with(timer)


@pytest.mark.asyncio
async def test_stop_claims_row_before_writing_entry(timer_repository):
    """The timer row is deleted before the automatic entry is added."""
    repo, session = timer_repository
    timer = ActiveTimerDB(
        id=1, user_id="user-1", project_id=3, task_name="Design",
        started_at=datetime(2026, 10, 16, 9, 13), tag_ids=[],
    )

    calls = []
    results = iter([result_returning(timer), claim_result(1)])

    async def execute(stmt, *args, **kwargs):
        calls.append(("execute", stmt))
        return next(results)

    session.execute.side_effect = execute
    session.add.side_effect = lambda obj: calls.append(("add", obj))

    entry = await repo.stop_timer("user-1")

    assert entry is not None
    assert entry.source == "automatic"
    assert entry.start_time == datetime(2026, 10, 16, 9, 13)
    assert entry.end_time == NOW
    assert entry.duration_minutes == 47
    assert [name for name, _ in calls] == ["execute", "execute", "add"]
    assert calls[1][1].is_delete


@pytest.mark.asyncio
async def test_stop_lost_claim_writes_nothing(timer_repository):
    """When another call already deleted the row, no entry is written."""
    repo, session = timer_repository
    timer = ActiveTimerDB(
        id=1, user_id="user-1", project_id=3,
        started_at=datetime(2026, 10, 16, 9, 13), tag_ids=[],
    )
    session.execute.side_effect = [result_returning(timer), claim_result(0)]

    assert await repo.stop_timer("user-1") is None

    session.add.assert_not_called()
    session.flush.assert_not_called()


@pytest.mark.asyncio
async def test_stop_wraps_unexpected_errors(timer_repository):
    """Unexpected failures surface as DatabaseOperationError."""
    repo, session = timer_repository
    session.execute.side_effect = RuntimeError("connection reset")

    with pytest.raises(DatabaseOperationError):
        await repo.stop_timer("user-1")


# ============================================================
# STATUS
# ============================================================

@pytest.mark.asyncio
async def test_timer_status_formats_elapsed(timer_repository):
    """Status reports elapsed seconds and display strings."""
    repo, session = timer_repository
    timer = ActiveTimerDB(
        user_id="user-1", project_id=3, task_id=None, task_name=None,
        started_at=datetime(2026, 10, 16, 8, 59, 55), tag_ids=[1, 2],
    )
    timer.project = ProjectDB(id=3, user_id="user-1", client_id=1, name="Fenceworkshop")
    session.execute.return_value = result_returning(timer)

    status = await repo.get_timer_status("user-1")

    assert status["project_name"] == "Fenceworkshop"
    assert status["elapsed_seconds"] == 3605
    assert status["elapsed_formatted"] == "1h 0m 5s"
    assert status["duration_minutes"] == 60
    assert status["duration_formatted"] == "1h"
    assert status["tag_ids"] == [1, 2]


@pytest.mark.asyncio
async def test_timer_status_none_without_timer(timer_repository):
    repo, session = timer_repository
    session.execute.return_value = result_returning(None)

    assert await repo.get_timer_status("user-1") is None
