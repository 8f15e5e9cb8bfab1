"""
Row-level ownership checks shared by the repositories.

Every mutation is scoped to an explicit user_id; these helpers load the
referenced rows inside the caller's session and reject foreign ones
before anything is written.
"""

from typing import Iterable, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ProjectDB, TaskDB, TagDB
from ..exceptions import AuthorizationError, NotFoundError, ValidationError


async def load_owned(
    session: AsyncSession,
    model: Type,
    entity_id: int,
    user_id: str,
    label: str,
    missing_error: Type[Exception] = NotFoundError,
):
    """Load a user-owned row by primary key or raise."""
    if entity_id is None:
        raise ValidationError(f"{label} is required")

    obj = await session.get(model, entity_id)
    if obj is None:
        raise missing_error(f"{label} {entity_id} not found")
    if obj.user_id != user_id:
        raise AuthorizationError(f"{label} {entity_id} is not owned by user {user_id}")
    return obj


async def load_owned_task(
    session: AsyncSession,
    task_id: int,
    user_id: str,
    project_id: Optional[int] = None,
    missing_error: Type[Exception] = NotFoundError,
) -> TaskDB:
    """
    Load a task owned (through its project) by user_id.

    When project_id is given the task must belong to that project.
    """
    task = await session.get(TaskDB, task_id)
    if task is None:
        raise missing_error(f"Task {task_id} not found")

    project = await session.get(ProjectDB, task.project_id)
    if project is None or project.user_id != user_id:
        raise AuthorizationError(f"Task {task_id} is not owned by user {user_id}")
    if project_id is not None and task.project_id != project_id:
        raise ValidationError(f"Task {task_id} does not belong to project {project_id}")
    return task


async def load_owned_tags(session: AsyncSession, tag_ids: Iterable[int], user_id: str) -> List[TagDB]:
    """Load tags by id, keeping the given order and dropping duplicates."""
    wanted = list(dict.fromkeys(tag_ids or []))
    if not wanted:
        return []

    result = await session.execute(select(TagDB).where(TagDB.id.in_(wanted)))
    found = {tag.id: tag for tag in result.scalars().all()}

    missing = [tag_id for tag_id in wanted if tag_id not in found]
    if missing:
        raise ValidationError(f"Unknown tag ids: {missing}")

    foreign = [tag_id for tag_id in wanted if found[tag_id].user_id != user_id]
    if foreign:
        raise AuthorizationError(f"Tags {foreign} are not owned by user {user_id}")

    return [found[tag_id] for tag_id in wanted]
