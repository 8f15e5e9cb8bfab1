"""
Repository for completed time entries (the ledger).

Handles manual logging, edits with provenance tracking, deletion and
filtered listing. Only bounded entries are stored here; running time
lives in the active_timers table.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import TimeEntryDB, ProjectDB, EntrySourceEnum, time_entry_tags
from ..exceptions import (
    DatabaseError,
    DatabaseConstraintError,
    DatabaseOperationError,
    ValidationError,
)
from .ownership import load_owned, load_owned_task, load_owned_tags
from ...models.schemas import TimeEntryUpdate, parse_input
from ...utils.datetime_utils import to_naive_local
from ...utils.validation import validate_time_bounds, validate_entry_source

logger = logging.getLogger(__name__)


def _check_bounds(start_time: Optional[datetime], end_time: Optional[datetime]) -> None:
    result = validate_time_bounds(start_time, end_time)
    if not result.is_valid:
        raise ValidationError("; ".join(result.errors))


class TimeEntryRepository:
    """Repository for time entry operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create_entry(
        self,
        user_id: str,
        project_id: int,
        start_time: datetime,
        end_time: datetime,
        task_id: Optional[int] = None,
        task_name: Optional[str] = None,
        tag_ids: Optional[List[int]] = None,
        source: str = EntrySourceEnum.MANUAL.value,
    ) -> TimeEntryDB:
        """
        Create a bounded time entry.

        Raises:
            ValidationError: end_time is not after start_time, unknown
                project/task/tag, or invalid source
            AuthorizationError: project or tags belong to another user

        Timezone-aware bounds are converted to naive local time.
        """
        start_time = to_naive_local(start_time)
        end_time = to_naive_local(end_time)
        _check_bounds(start_time, end_time)
        source = getattr(source, "value", source)
        if not validate_entry_source(source):
            raise ValidationError(f"Invalid entry source: {source}")

        async with self.db.session() as session:
            try:
                project = await load_owned(
                    session, ProjectDB, project_id, user_id, "Project", missing_error=ValidationError
                )
                if task_id is not None:
                    await load_owned_task(
                        session, task_id, user_id, project_id=project.id, missing_error=ValidationError
                    )
                tags = await load_owned_tags(session, tag_ids or [], user_id)

                entry = TimeEntryDB(
                    user_id=user_id,
                    project_id=project.id,
                    task_id=task_id,
                    task_name=(task_name or "").strip() or None,
                    start_time=start_time,
                    end_time=end_time,
                    source=source,
                    tags=tags,
                )
                session.add(entry)
                await session.flush()
                await session.refresh(entry)

                logger.info(f"Logged {source} entry {entry.id} for user {user_id} on project {project.id}")
                return entry

            except DatabaseError:
                raise
            except IntegrityError as e:
                logger.error(f"Constraint violation creating time entry: {e}")
                raise DatabaseConstraintError(f"Cannot create time entry for project {project_id}") from e
            except Exception as e:
                logger.error(f"CRITICAL: Time entry creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create time entry: {e}") from e

    async def update_entry(
        self,
        user_id: str,
        entry_id: int,
        patch: Union[TimeEntryUpdate, Dict[str, Any]],
    ) -> TimeEntryDB:
        """
        Apply a patch to an entry.

        Only fields present in the patch are changed. Changing the bounds
        of an automatic entry marks it corrected; tag_ids, when present,
        replace the entry's tags wholesale.
        """
        if not isinstance(patch, TimeEntryUpdate):
            patch = parse_input(TimeEntryUpdate, **patch)
        fields = patch.model_fields_set

        async with self.db.session() as session:
            try:
                entry = await load_owned(session, TimeEntryDB, entry_id, user_id, "Time entry")

                new_start = to_naive_local(patch.start_time) if "start_time" in fields else entry.start_time
                new_end = to_naive_local(patch.end_time) if "end_time" in fields else entry.end_time
                _check_bounds(new_start, new_end)

                if new_start != entry.start_time or new_end != entry.end_time:
                    if entry.source == EntrySourceEnum.AUTOMATIC.value:
                        entry.source = EntrySourceEnum.CORRECTED.value
                    entry.start_time = new_start
                    entry.end_time = new_end

                if "task_id" in fields:
                    if patch.task_id is not None:
                        await load_owned_task(
                            session, patch.task_id, user_id,
                            project_id=entry.project_id, missing_error=ValidationError,
                        )
                    entry.task_id = patch.task_id

                if "task_name" in fields:
                    entry.task_name = (patch.task_name or "").strip() or None

                if "tag_ids" in fields:
                    entry.tags = await load_owned_tags(session, patch.tag_ids or [], user_id)

                await session.flush()
                await session.refresh(entry)

                logger.info(f"Updated time entry {entry_id} ({', '.join(sorted(fields)) or 'no fields'})")
                return entry

            except DatabaseError:
                raise
            except Exception as e:
                logger.error(f"CRITICAL: Time entry update failed for {entry_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update time entry {entry_id}: {e}") from e

    async def delete_entry(self, user_id: str, entry_id: int) -> bool:
        """Delete an entry and its tag links. Irreversible."""
        async with self.db.session() as session:
            entry = await load_owned(session, TimeEntryDB, entry_id, user_id, "Time entry")
            entry.tags = []
            await session.flush()
            await session.delete(entry)

            logger.info(f"Deleted time entry {entry_id} for user {user_id}")
            return True

    async def get_entry(self, user_id: str, entry_id: int) -> TimeEntryDB:
        """Get an entry owned by user_id."""
        async with self.db.session() as session:
            return await load_owned(session, TimeEntryDB, entry_id, user_id, "Time entry")

    async def list_entries(
        self,
        user_id: Optional[str] = None,
        project_ids: Optional[Iterable[int]] = None,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> List[TimeEntryDB]:
        """
        List completed entries, oldest first.

        Args:
            user_id: Restrict to one user's entries
            project_ids: Restrict to these projects (empty -> no entries)
            range_start: Entries ending at or after this instant
            range_end: Entries starting at or before this instant

        A range whose end precedes its start matches nothing.
        """
        range_start = to_naive_local(range_start)
        range_end = to_naive_local(range_end)
        if range_start is not None and range_end is not None and range_end < range_start:
            return []

        query = select(TimeEntryDB).where(TimeEntryDB.end_time.is_not(None))

        if user_id is not None:
            query = query.where(TimeEntryDB.user_id == user_id)
        if project_ids is not None:
            project_ids = list(project_ids)
            if not project_ids:
                return []
            query = query.where(TimeEntryDB.project_id.in_(project_ids))
        if range_end is not None:
            query = query.where(TimeEntryDB.start_time <= range_end)
        if range_start is not None:
            query = query.where(TimeEntryDB.end_time >= range_start)

        query = query.order_by(TimeEntryDB.start_time, TimeEntryDB.id)

        async with self.db.session() as session:
            result = await session.execute(query)
            return list(result.unique().scalars().all())

    async def get_entry_tag_ids(self, entry_ids: Iterable[int]) -> Dict[int, List[int]]:
        """Tag ids per entry id; entries without tags are absent."""
        entry_ids = list(entry_ids)
        if not entry_ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(time_entry_tags.c.time_entry_id, time_entry_tags.c.tag_id)
                .where(time_entry_tags.c.time_entry_id.in_(entry_ids))
            )
            out: Dict[int, List[int]] = {}
            for entry_id, tag_id in result:
                out.setdefault(entry_id, []).append(tag_id)
            return out


# Singleton
_time_entry_repo: Optional[TimeEntryRepository] = None


def get_time_entry_repository() -> TimeEntryRepository:
    """Get the time entry repository singleton."""
    global _time_entry_repo
    if _time_entry_repo is None:
        _time_entry_repo = TimeEntryRepository()
    return _time_entry_repo
