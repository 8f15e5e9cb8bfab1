"""
Task repository.

Tasks are numbered sequentially within their project (FENC-001,
FENC-002, ...). The number is assigned once at creation and never reused
while the task exists.
"""

import logging
from typing import Optional, List, Dict, Any, Union

from sqlalchemy import select, update, delete, func

from ..connection import Database, get_database
from ..models import TaskDB, ProjectDB, TimeEntryDB, ActiveTimerDB, TaskStatusEnum, task_tags
from ..exceptions import DatabaseError, DatabaseOperationError, ValidationError
from .ownership import load_owned, load_owned_task, load_owned_tags
from ...models.schemas import TaskCreate, TaskUpdate, parse_input
from ...utils.formatting import format_task_identifier
from ...utils.validation import validate_task_status

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for task operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def _next_task_number(self, session, project_id: int) -> int:
        result = await session.execute(
            select(func.max(TaskDB.task_number)).where(TaskDB.project_id == project_id)
        )
        return (result.scalar() or 0) + 1

    async def create(
        self,
        user_id: str,
        project_id: int,
        data: Union[TaskCreate, Dict[str, Any]],
    ) -> TaskDB:
        """
        Create a task in one of the user's projects.

        Args:
            user_id: Acting user
            project_id: Owning project
            data: TaskCreate or a dict with its fields

        Returns:
            The created TaskDB with task_number assigned
        """
        if not isinstance(data, TaskCreate):
            data = parse_input(TaskCreate, **data)

        async with self.db.session() as session:
            try:
                project = await load_owned(
                    session, ProjectDB, project_id, user_id, "Project", missing_error=ValidationError
                )
                tags = await load_owned_tags(session, data.tag_ids, user_id)

                task = TaskDB(
                    project_id=project.id,
                    name=data.name.strip(),
                    status=data.status.value,
                    description=data.description,
                    assignee_id=data.assignee_id,
                    task_number=await self._next_task_number(session, project.id),
                    tags=tags,
                )
                session.add(task)
                await session.flush()
                await session.refresh(task)

                logger.info(
                    f"Created task {format_task_identifier(task.task_number, project.name)}: {task.name}"
                )
                return task

            except DatabaseError:
                raise
            except Exception as e:
                logger.error(f"CRITICAL: Task creation failed in project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create task: {e}") from e

    async def get_by_id(self, user_id: str, task_id: int) -> TaskDB:
        """Get a task owned (through its project) by user_id."""
        async with self.db.session() as session:
            return await load_owned_task(session, task_id, user_id)

    async def get_display_id(self, user_id: str, task_id: int) -> str:
        """Display identifier like FENC-001."""
        async with self.db.session() as session:
            task = await load_owned_task(session, task_id, user_id)
            project = await session.get(ProjectDB, task.project_id)
            return format_task_identifier(task.task_number, project.name if project else None)

    async def list_for_project(
        self,
        user_id: str,
        project_id: int,
        status: Optional[str] = None,
    ) -> List[TaskDB]:
        """Tasks of a project by task_number, optionally with one status."""
        async with self.db.session() as session:
            await load_owned(session, ProjectDB, project_id, user_id, "Project")

            query = select(TaskDB).where(TaskDB.project_id == project_id)
            if status is not None:
                status = str(getattr(status, "value", status)).lower()
                if not validate_task_status(status):
                    raise ValidationError(f"Invalid task status: {status}")
                query = query.where(TaskDB.status == status)
            query = query.order_by(TaskDB.task_number)

            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_names(self, task_ids) -> Dict[int, str]:
        """Task name per id."""
        task_ids = list(task_ids)
        if not task_ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB.id, TaskDB.name).where(TaskDB.id.in_(task_ids))
            )
            return {task_id: name for task_id, name in result}

    async def update(
        self,
        user_id: str,
        task_id: int,
        patch: Union[TaskUpdate, Dict[str, Any]],
    ) -> TaskDB:
        """Apply a partial update; tag_ids, when given, replace the task's tags."""
        if not isinstance(patch, TaskUpdate):
            patch = parse_input(TaskUpdate, **patch)
        fields = patch.model_fields_set

        async with self.db.session() as session:
            task = await load_owned_task(session, task_id, user_id)

            if "name" in fields and patch.name is not None:
                task.name = patch.name.strip()
            if "status" in fields and patch.status is not None:
                task.status = patch.status.value
            if "description" in fields:
                task.description = patch.description
            if "assignee_id" in fields:
                task.assignee_id = patch.assignee_id
            if "tag_ids" in fields:
                task.tags = await load_owned_tags(session, patch.tag_ids or [], user_id)

            await session.flush()
            await session.refresh(task)

            logger.info(f"Updated task {task_id} ({', '.join(sorted(fields)) or 'no fields'})")
            return task

    async def set_status(self, user_id: str, task_id: int, status) -> TaskDB:
        """Move a task to another status column."""
        status = str(getattr(status, "value", status) or "").lower()
        if not validate_task_status(status):
            raise ValidationError(f"Invalid task status: {status}")
        return await self.update(user_id, task_id, TaskUpdate(status=TaskStatusEnum(status)))

    async def delete(self, user_id: str, task_id: int) -> bool:
        """
        Delete a task.

        Time entries keep their minutes but lose the task reference; a
        running timer on the task keeps running without it.
        """
        async with self.db.session() as session:
            await load_owned_task(session, task_id, user_id)

            await session.execute(
                update(TimeEntryDB).where(TimeEntryDB.task_id == task_id).values(task_id=None)
            )
            await session.execute(
                update(ActiveTimerDB).where(ActiveTimerDB.task_id == task_id).values(task_id=None)
            )
            await session.execute(delete(task_tags).where(task_tags.c.task_id == task_id))
            await session.execute(delete(TaskDB).where(TaskDB.id == task_id))

            logger.info(f"Deleted task {task_id}")
            return True


# Singleton
_task_repo: Optional[TaskRepository] = None


def get_task_repository() -> TaskRepository:
    """Get the task repository singleton."""
    global _task_repo
    if _task_repo is None:
        _task_repo = TaskRepository()
    return _task_repo
