"""
Client repository.

Clients carry the hourly rate used for billing and may be linked to an
invited external user for read-only portal access.
"""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import ClientDB, ProjectDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from .ownership import load_owned
from ...models.schemas import ClientCreate, ClientUpdate, parse_input

logger = logging.getLogger(__name__)


class ClientRepository:
    """Repository for client operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(
        self,
        user_id: str,
        name: str,
        email: str,
        hourly_rate_usd: float = 0.0,
    ) -> ClientDB:
        """Create a new client."""
        data = parse_input(ClientCreate, name=name, email=email, hourly_rate_usd=hourly_rate_usd)

        async with self.db.session() as session:
            try:
                client = ClientDB(user_id=user_id, **data.model_dump())
                session.add(client)
                await session.flush()
                await session.refresh(client)

                logger.info(f"Created client {client.id}: {client.name}")
                return client

            except IntegrityError as e:
                logger.error(f"Constraint violation creating client {name}: {e}")
                raise DatabaseConstraintError(f"Cannot create client {name}") from e
            except Exception as e:
                logger.error(f"CRITICAL: Client creation failed for {name}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create client {name}: {e}") from e

    async def get(self, user_id: str, client_id: int) -> ClientDB:
        """Get a client owned by user_id."""
        async with self.db.session() as session:
            return await load_owned(session, ClientDB, client_id, user_id, "Client")

    async def get_all(self, user_id: str) -> List[ClientDB]:
        """All clients of a user, by name."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ClientDB).where(ClientDB.user_id == user_id).order_by(ClientDB.name)
            )
            return list(result.scalars().all())

    async def update(self, user_id: str, client_id: int, updates: Dict[str, Any]) -> ClientDB:
        """Update name, email or hourly rate."""
        patch = parse_input(ClientUpdate, **updates)

        async with self.db.session() as session:
            client = await load_owned(session, ClientDB, client_id, user_id, "Client")
            for key, value in patch.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(client, key, value)
            await session.flush()
            await session.refresh(client)

            logger.info(f"Updated client {client_id}")
            return client

    async def delete(self, user_id: str, client_id: int) -> bool:
        """
        Delete a client.

        Raises:
            DatabaseConstraintError: the client still owns projects
        """
        async with self.db.session() as session:
            client = await load_owned(session, ClientDB, client_id, user_id, "Client")

            result = await session.execute(
                select(func.count(ProjectDB.id)).where(ProjectDB.client_id == client_id)
            )
            project_count = result.scalar() or 0
            if project_count:
                raise DatabaseConstraintError(
                    f"Client {client.name} has {project_count} project(s); delete them first"
                )

            await session.delete(client)
            logger.info(f"Deleted client {client_id}")
            return True

    async def set_portal_user(self, user_id: str, client_id: int, invited_user_id: Optional[str]) -> ClientDB:
        """Link (or unlink with None) the external user that may view this client's projects."""
        async with self.db.session() as session:
            client = await load_owned(session, ClientDB, client_id, user_id, "Client")
            client.invited_user_id = invited_user_id
            await session.flush()
            await session.refresh(client)

            logger.info(f"Client {client_id} portal user set to {invited_user_id}")
            return client

    async def get_for_invited_user(self, invited_user_id: str) -> Optional[ClientDB]:
        """The client record an invited external user may view, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ClientDB).where(ClientDB.invited_user_id == invited_user_id).limit(1)
            )
            return result.scalar_one_or_none()


# Singleton
_client_repo: Optional[ClientRepository] = None


def get_client_repository() -> ClientRepository:
    """Get the client repository singleton."""
    global _client_repo
    if _client_repo is None:
        _client_repo = ClientRepository()
    return _client_repo
