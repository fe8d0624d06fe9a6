"""
Tag repository, including the saved-property association table.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from app.repositories.base import BaseRepository
from app.models.tag import Tag, SavedPropertyTag
from typing import List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class TagRepository(BaseRepository[Tag]):
    """Repository for user-scoped tags."""

    def __init__(self, db: AsyncSession):
        super().__init__(Tag, db)

    async def get_by_name(self, user_id: uuid.UUID, name: str) -> Optional[Tag]:
        result = await self.db.execute(select(Tag).where(Tag.user_id == user_id, Tag.name == name))
        return result.scalar_one_or_none()

    async def list_with_usage(self, user_id: uuid.UUID) -> List[Tuple[Tag, int]]:
        """
        All of a user's tags ordered by name, each with the number of saved
        properties it is attached to.
        """
        usage = func.count(SavedPropertyTag.id).label("usage_count")
        result = await self.db.execute(
            select(Tag, usage)
            .outerjoin(SavedPropertyTag, SavedPropertyTag.tag_id == Tag.id)
            .where(Tag.user_id == user_id)
            .group_by(Tag.id)
            .order_by(Tag.name.asc())
        )
        return [(tag, count) for tag, count in result.all()]

    async def delete_with_links(self, tag_id: uuid.UUID) -> bool:
        """Delete a tag and every association that uses it."""
        try:
            await self.db.execute(delete(SavedPropertyTag).where(SavedPropertyTag.tag_id == tag_id))
            result = await self.db.execute(delete(Tag).where(Tag.id == tag_id))
            await self.db.commit()
            logger.debug(f"Deleted Tag {tag_id} with its links")
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete Tag {tag_id}: {e}")
            raise

    async def attach(self, saved_property_id: uuid.UUID, tag_id: uuid.UUID) -> SavedPropertyTag:
        """
        Link a tag to a saved property.

        Raises:
            IntegrityError: If the pair already exists
        """
        try:
            link = SavedPropertyTag(saved_property_id=saved_property_id, tag_id=tag_id)
            self.db.add(link)
            await self.db.commit()
            await self.db.refresh(link)
            logger.debug(f"Attached Tag {tag_id} to SavedProperty {saved_property_id}")
            return link
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to attach Tag {tag_id} to SavedProperty {saved_property_id}: {e}")
            raise

    async def detach(self, saved_property_id: uuid.UUID, tag_id: uuid.UUID) -> bool:
        """
        Remove a tag from a saved property.

        Returns:
            True if an association was removed
        """
        try:
            result = await self.db.execute(
                delete(SavedPropertyTag).where(
                    SavedPropertyTag.saved_property_id == saved_property_id,
                    SavedPropertyTag.tag_id == tag_id
                )
            )
            await self.db.commit()
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to detach Tag {tag_id} from SavedProperty {saved_property_id}: {e}")
            raise
