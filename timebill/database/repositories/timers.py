"""
Repository for the per-user active timer.

Handles timer start/stop and status polling. A user has at most one
ActiveTimer row (unique user_id). Starting a timer while one is running
first materializes the running one as an automatic time entry, in the
same transaction, before the new row is upserted.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy import select, delete

from config import settings
from ..connection import Database, get_database
from ..models import ActiveTimerDB, TimeEntryDB, ProjectDB, TagDB, EntrySourceEnum
from ..exceptions import DatabaseError, DatabaseOperationError, ValidationError
from .ownership import load_owned, load_owned_task, load_owned_tags
from ...utils.datetime_utils import get_local_now, elapsed_seconds
from ...utils.formatting import format_duration, format_duration_with_seconds

logger = logging.getLogger(__name__)


class TimerRepository:
    """Repository for active timer operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()
        self.clock = get_local_now

    def _upsert_statement(self, values: Dict[str, Any]):
        """INSERT ... ON CONFLICT (user_id) DO UPDATE for the current dialect."""
        if self.db.dialect_name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(ActiveTimerDB).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[ActiveTimerDB.user_id],
            set_={key: stmt.excluded[key] for key in values if key != "user_id"},
        )

    async def _select_for_update(self, session, user_id: str) -> Optional[ActiveTimerDB]:
        result = await session.execute(
            select(ActiveTimerDB)
            .where(ActiveTimerDB.user_id == user_id)
            .with_for_update(of=ActiveTimerDB)
        )
        return result.scalar_one_or_none()

    async def _claim(self, session, timer: ActiveTimerDB) -> bool:
        """Delete the timer row; False when another call already removed it."""
        # started_at guards against a reused id on a row upserted since the read
        result = await session.execute(
            delete(ActiveTimerDB)
            .where(
                ActiveTimerDB.id == timer.id,
                ActiveTimerDB.user_id == timer.user_id,
                ActiveTimerDB.started_at == timer.started_at,
            )
            .execution_options(synchronize_session=False)
        )
        session.expunge(timer)
        return result.rowcount == 1

    async def _materialize(self, session, timer: ActiveTimerDB, now: datetime) -> Optional[TimeEntryDB]:
        """
        Turn a running timer into an automatic entry and delete the timer row.

        The row is claimed with a conditional DELETE first; only the call
        whose DELETE matched the row writes the entry, in the same
        transaction. A timer without a project, or with no positive
        duration, is discarded without an entry.
        """
        if not await self._claim(session, timer):
            logger.info(f"Timer for user {timer.user_id} was already stopped by another call")
            return None

        entry = None

        if timer.project_id is None:
            logger.warning(f"Discarding orphaned timer for user {timer.user_id} (no project)")
        elif now <= timer.started_at:
            logger.warning(
                f"Discarding zero-length timer for user {timer.user_id} started at {timer.started_at}"
            )
        else:
            tags = []
            if timer.tag_ids:
                # Tags deleted while the timer ran are skipped
                result = await session.execute(
                    select(TagDB).where(TagDB.id.in_(timer.tag_ids), TagDB.user_id == timer.user_id)
                )
                found = {tag.id: tag for tag in result.scalars().all()}
                tags = [found[tag_id] for tag_id in timer.tag_ids if tag_id in found]

            entry = TimeEntryDB(
                user_id=timer.user_id,
                project_id=timer.project_id,
                task_id=timer.task_id,
                task_name=timer.task_name,
                start_time=timer.started_at,
                end_time=now,
                source=EntrySourceEnum.AUTOMATIC.value,
                tags=tags,
            )
            session.add(entry)
            await session.flush()

        if entry is not None:
            await session.refresh(entry)
            logger.info(
                f"Stopped timer for user {timer.user_id}: entry {entry.id}, "
                f"{format_duration(entry.duration_minutes)}"
            )
        return entry

    async def start_timer(
        self,
        user_id: str,
        project_id: int,
        task_id: Optional[int] = None,
        task_name: Optional[str] = None,
        tag_ids: Optional[List[int]] = None,
    ) -> ActiveTimerDB:
        """
        Start a timer for a project, stopping any running timer first.

        Args:
            user_id: Acting user
            project_id: Project to track against (must be owned by user_id)
            task_id: Optional task of that project
            task_name: Optional ad-hoc description
            tag_ids: Tags for the resulting entry; None copies the task's tags

        Returns:
            The new ActiveTimerDB row
        """
        async with self.db.session() as session:
            try:
                project = await load_owned(
                    session, ProjectDB, project_id, user_id, "Project", missing_error=ValidationError
                )

                task = None
                if task_id is not None:
                    task = await load_owned_task(
                        session, task_id, user_id, project_id=project.id, missing_error=ValidationError
                    )

                if tag_ids is None:
                    snapshot = [tag.id for tag in task.tags] if task else []
                else:
                    snapshot = [tag.id for tag in await load_owned_tags(session, tag_ids, user_id)]

                now = self.clock()

                previous = await self._select_for_update(session, user_id)
                if previous is not None:
                    await self._materialize(session, previous, now)

                await session.execute(
                    self._upsert_statement({
                        "user_id": user_id,
                        "project_id": project.id,
                        "task_id": task.id if task else None,
                        "task_name": (task_name or "").strip() or None,
                        "started_at": now,
                        "tag_ids": snapshot,
                    })
                )

                result = await session.execute(
                    select(ActiveTimerDB)
                    .where(ActiveTimerDB.user_id == user_id)
                    .execution_options(populate_existing=True)
                )
                timer = result.scalar_one()

                logger.info(f"Started timer for user {user_id} on project {project.id}")
                return timer

            except DatabaseError:
                raise
            except Exception as e:
                logger.error(f"Timer start failed for user {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to start timer for user {user_id}: {e}") from e

    async def stop_timer(self, user_id: str) -> Optional[TimeEntryDB]:
        """
        Stop the active timer for a user.

        Returns the created entry, or None when no timer was running
        (stopping twice is not an error) or the timer had no project.
        """
        async with self.db.session() as session:
            try:
                timer = await self._select_for_update(session, user_id)
                if timer is None:
                    logger.debug(f"No active timer to stop for user {user_id}")
                    return None

                return await self._materialize(session, timer, self.clock())

            except DatabaseError:
                raise
            except Exception as e:
                logger.error(f"Timer stop failed for user {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to stop timer for user {user_id}: {e}") from e

    async def get_active_timer(self, user_id: str) -> Optional[ActiveTimerDB]:
        """Get the active timer for a user."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ActiveTimerDB).where(ActiveTimerDB.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_timer_status(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Poll-friendly view of the active timer.

        Elapsed values are for display only; the stored duration is
        computed from timestamps when the timer stops.
        """
        timer = await self.get_active_timer(user_id)
        if not timer:
            return None

        seconds = elapsed_seconds(timer.started_at, self.clock())
        minutes = seconds // 60

        return {
            "project_id": timer.project_id,
            "project_name": timer.project.name if timer.project else None,
            "task_id": timer.task_id,
            "task_name": timer.task_name,
            "tag_ids": list(timer.tag_ids or []),
            "started_at": timer.started_at,
            "elapsed_seconds": seconds,
            "elapsed_formatted": format_duration_with_seconds(seconds),
            "duration_minutes": minutes,
            "duration_formatted": format_duration(minutes),
        }

    async def get_idle_timers(self, hours: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get timers that have been running for too long (possibly stale)."""
        hours = hours if hours is not None else settings.idle_timer_hours
        now = self.clock()
        threshold = now - timedelta(hours=hours)

        async with self.db.session() as session:
            result = await session.execute(
                select(ActiveTimerDB)
                .where(ActiveTimerDB.started_at < threshold)
                .order_by(ActiveTimerDB.started_at)
            )
            timers = list(result.scalars().all())

            return [
                {
                    "user_id": t.user_id,
                    "project_id": t.project_id,
                    "task_name": t.task_name,
                    "started_at": t.started_at,
                    "duration_minutes": int((now - t.started_at).total_seconds() / 60),
                }
                for t in timers
            ]


# Singleton
_timer_repo: Optional[TimerRepository] = None


def get_timer_repository() -> TimerRepository:
    """Get the timer repository singleton."""
    global _timer_repo
    if _timer_repo is None:
        _timer_repo = TimerRepository()
    return _timer_repo
