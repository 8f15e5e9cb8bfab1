"""
Tag repository.

Tags are scoped to one user and may be linked to any of that user's
tasks and time entries.
"""

import logging
from typing import Optional, List, Dict, Iterable

from sqlalchemy import select, delete

from config import settings
from ..connection import Database, get_database
from ..models import TagDB, task_tags, time_entry_tags
from .ownership import load_owned
from ...models.schemas import TagCreate, parse_input

logger = logging.getLogger(__name__)


class TagRepository:
    """Repository for tag operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(self, user_id: str, name: str, color: Optional[str] = None) -> TagDB:
        """Create a tag; color defaults to the configured tag color."""
        data = parse_input(TagCreate, name=(name or "").strip(), color=color)

        async with self.db.session() as session:
            tag = TagDB(user_id=user_id, name=data.name, color=data.color or settings.default_tag_color)
            session.add(tag)
            await session.flush()
            await session.refresh(tag)

            logger.info(f"Created tag {tag.id}: {tag.name}")
            return tag

    async def get(self, user_id: str, tag_id: int) -> TagDB:
        async with self.db.session() as session:
            return await load_owned(session, TagDB, tag_id, user_id, "Tag")

    async def get_all(self, user_id: str) -> List[TagDB]:
        """All tags of a user, by name."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TagDB).where(TagDB.user_id == user_id).order_by(TagDB.name)
            )
            return list(result.scalars().all())

    async def update(
        self,
        user_id: str,
        tag_id: int,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> TagDB:
        """Rename and/or recolor a tag."""
        async with self.db.session() as session:
            tag = await load_owned(session, TagDB, tag_id, user_id, "Tag")
            data = parse_input(
                TagCreate,
                name=(name.strip() if name is not None else tag.name),
                color=color if color is not None else tag.color,
            )
            tag.name = data.name
            tag.color = data.color
            await session.flush()
            await session.refresh(tag)

            logger.info(f"Updated tag {tag_id}")
            return tag

    async def delete(self, user_id: str, tag_id: int) -> bool:
        """Delete a tag and unlink it from tasks and time entries."""
        async with self.db.session() as session:
            await load_owned(session, TagDB, tag_id, user_id, "Tag")

            await session.execute(delete(task_tags).where(task_tags.c.tag_id == tag_id))
            await session.execute(delete(time_entry_tags).where(time_entry_tags.c.tag_id == tag_id))
            await session.execute(delete(TagDB).where(TagDB.id == tag_id))

            logger.info(f"Deleted tag {tag_id}")
            return True

    async def get_names(self, tag_ids: Iterable[int]) -> Dict[int, str]:
        """Tag name per id; unknown ids are absent."""
        tag_ids = list(tag_ids)
        if not tag_ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(TagDB.id, TagDB.name).where(TagDB.id.in_(tag_ids))
            )
            return {tag_id: name for tag_id, name in result}


# Singleton
_tag_repo: Optional[TagRepository] = None


def get_tag_repository() -> TagRepository:
    """Get the tag repository singleton."""
    global _tag_repo
    if _tag_repo is None:
        _tag_repo = TagRepository()
    return _tag_repo
