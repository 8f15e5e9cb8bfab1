"""
Project repository.

Projects belong to one client and one owning user. Deleting a project
removes its tasks, time entries and invoices; a timer running on it is
left in place without a project (it is discarded when stopped).
"""

import logging
from typing import Optional, List, Dict

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import (
    ProjectDB,
    ClientDB,
    TaskDB,
    TimeEntryDB,
    ActiveTimerDB,
    InvoiceDB,
    task_tags,
    time_entry_tags,
)
from ..exceptions import (
    DatabaseError,
    DatabaseConstraintError,
    DatabaseOperationError,
    ValidationError,
)
from .ownership import load_owned

logger = logging.getLogger(__name__)


class ProjectRepository:
    """Repository for project operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(self, user_id: str, client_id: int, name: str) -> ProjectDB:
        """Create a new project for one of the user's clients."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")

        async with self.db.session() as session:
            try:
                client = await load_owned(
                    session, ClientDB, client_id, user_id, "Client", missing_error=ValidationError
                )
                project = ProjectDB(user_id=user_id, client_id=client.id, name=name)
                session.add(project)
                await session.flush()
                await session.refresh(project)

                logger.info(f"Created project {project.id}: {name}")
                return project

            except DatabaseError:
                raise
            except IntegrityError as e:
                logger.error(f"Constraint violation creating project {name}: {e}")
                raise DatabaseConstraintError(f"Cannot create project {name}: duplicate or constraint violation") from e
            except Exception as e:
                logger.error(f"CRITICAL: Project creation failed for {name}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create project {name}: {e}") from e

    async def get_by_id(self, user_id: str, project_id: int) -> ProjectDB:
        """Get a project (with its client) owned by user_id."""
        async with self.db.session() as session:
            return await load_owned(session, ProjectDB, project_id, user_id, "Project")

    async def get_all(self, user_id: str, client_id: Optional[int] = None) -> List[ProjectDB]:
        """All projects of a user, optionally for one client, by name."""
        async with self.db.session() as session:
            query = select(ProjectDB).where(ProjectDB.user_id == user_id)
            if client_id is not None:
                query = query.where(ProjectDB.client_id == client_id)
            query = query.order_by(ProjectDB.name)

            result = await session.execute(query)
            return list(result.unique().scalars().all())

    async def rename(self, user_id: str, project_id: int, name: str) -> ProjectDB:
        """Rename a project."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")

        async with self.db.session() as session:
            project = await load_owned(session, ProjectDB, project_id, user_id, "Project")
            project.name = name
            await session.flush()
            await session.refresh(project)
            return project

    async def delete(self, user_id: str, project_id: int) -> bool:
        """Delete a project with its tasks, time entries and invoices."""
        async with self.db.session() as session:
            await load_owned(session, ProjectDB, project_id, user_id, "Project")

            entry_ids = select(TimeEntryDB.id).where(TimeEntryDB.project_id == project_id)
            task_ids = select(TaskDB.id).where(TaskDB.project_id == project_id)

            await session.execute(
                delete(time_entry_tags).where(time_entry_tags.c.time_entry_id.in_(entry_ids))
            )
            await session.execute(delete(TimeEntryDB).where(TimeEntryDB.project_id == project_id))

            # Keep a running timer, but detach it from the project
            await session.execute(
                update(ActiveTimerDB)
                .where(ActiveTimerDB.project_id == project_id)
                .values(project_id=None, task_id=None)
            )

            await session.execute(delete(task_tags).where(task_tags.c.task_id.in_(task_ids)))
            await session.execute(delete(TaskDB).where(TaskDB.project_id == project_id))
            await session.execute(delete(InvoiceDB).where(InvoiceDB.project_id == project_id))
            await session.execute(delete(ProjectDB).where(ProjectDB.id == project_id))

            logger.info(f"Deleted project {project_id} with its tasks, entries and invoices")
            return True

    async def get_rates(self, user_id: str, client_id: Optional[int] = None) -> Dict[int, float]:
        """Hourly rate per project_id, taken from each project's client."""
        async with self.db.session() as session:
            query = (
                select(ProjectDB.id, ClientDB.hourly_rate_usd)
                .join(ClientDB, ProjectDB.client_id == ClientDB.id)
                .where(ProjectDB.user_id == user_id)
            )
            if client_id is not None:
                query = query.where(ProjectDB.client_id == client_id)

            result = await session.execute(query)
            return {project_id: rate or 0.0 for project_id, rate in result}

    async def list_for_portal(self, invited_user_id: str) -> List[ProjectDB]:
        """Projects of every client linked to an invited external user (read-only)."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectDB)
                .join(ClientDB, ProjectDB.client_id == ClientDB.id)
                .where(ClientDB.invited_user_id == invited_user_id)
                .order_by(ProjectDB.name)
            )
            return list(result.unique().scalars().all())


# Singleton
_project_repo: Optional[ProjectRepository] = None


def get_project_repository() -> ProjectRepository:
    """Get the project repository singleton."""
    global _project_repo
    if _project_repo is None:
        _project_repo = ProjectRepository()
    return _project_repo
