"""
Saved property repository with tag and viewing loading.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import selectinload
from app.repositories.base import BaseRepository
from app.models.listing import Listing
from app.models.saved_property import SavedProperty, PropertyStatus
from app.models.tag import SavedPropertyTag
from app.models.viewing import Viewing
from app.utils.query_engine import QuerySpec, fetch_page
from typing import Dict, List, Optional, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


def with_tags():
    return selectinload(SavedProperty.tag_links).selectinload(SavedPropertyTag.tag)


def with_viewings():
    return selectinload(SavedProperty.viewings)


class SavedPropertyRepository(BaseRepository[SavedProperty]):
    """Repository for hunters' saved properties."""

    def __init__(self, db: AsyncSession):
        super().__init__(SavedProperty, db)

    async def get_detail(self, saved_property_id: uuid.UUID) -> Optional[SavedProperty]:
        """Load a saved property with its listing, tags and viewings."""
        return await self.get_by_id(
            saved_property_id,
            options=[with_tags(), with_viewings()],
            refresh=True
        )

    async def get_with_tags(self, saved_property_id: uuid.UUID) -> Optional[SavedProperty]:
        return await self.get_by_id(saved_property_id, options=[with_tags()], refresh=True)

    async def get_for_user_listing(self, user_id: uuid.UUID, listing_id: uuid.UUID) -> Optional[SavedProperty]:
        result = await self.db.execute(
            select(SavedProperty).where(
                SavedProperty.user_id == user_id,
                SavedProperty.listing_id == listing_id
            )
        )
        return result.scalar_one_or_none()

    async def search(self, spec: QuerySpec) -> Tuple[List[SavedProperty], int]:
        """
        Paged saved properties joined to their listing, so listing filters and
        price sorting apply.

        Args:
            spec: Query with conditions on SavedProperty and Listing columns

        Returns:
            Tuple of (saved properties with tags loaded, total count)
        """
        try:
            stmt = select(SavedProperty).join(Listing, SavedProperty.listing_id == Listing.id)
            return await fetch_page(self.db, stmt, spec, options=[with_tags()])
        except Exception as e:
            logger.error(f"Failed to search saved properties: {e}")
            raise

    async def delete_with_links(self, saved_property_id: uuid.UUID) -> bool:
        """
        Delete a saved property, its tag links, and detach its viewings.

        The viewings themselves are kept; they only lose the link.
        """
        try:
            await self.db.execute(
                update(Viewing)
                .where(Viewing.saved_property_id == saved_property_id)
                .values(saved_property_id=None)
            )
            await self.db.execute(
                delete(SavedPropertyTag).where(SavedPropertyTag.saved_property_id == saved_property_id)
            )
            result = await self.db.execute(delete(SavedProperty).where(SavedProperty.id == saved_property_id))
            await self.db.commit()
            logger.debug(f"Deleted SavedProperty {saved_property_id} with its tag links")
            return result.rowcount > 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete SavedProperty {saved_property_id}: {e}")
            raise

    async def status_counts(self, user_id: uuid.UUID) -> Dict[PropertyStatus, int]:
        result = await self.db.execute(
            select(SavedProperty.status, func.count(SavedProperty.id))
            .where(SavedProperty.user_id == user_id)
            .group_by(SavedProperty.status)
        )
        return {status: count for status, count in result.all()}

    async def top_cities(self, user_id: uuid.UUID, limit: int = 5) -> List[Tuple[str, int]]:
        """Cities of the user's saved listings, most frequent first."""
        count_col = func.count(SavedProperty.id).label("count")
        result = await self.db.execute(
            select(Listing.city, count_col)
            .select_from(SavedProperty)
            .join(Listing, SavedProperty.listing_id == Listing.id)
            .where(SavedProperty.user_id == user_id)
            .group_by(Listing.city)
            .order_by(count_col.desc(), Listing.city.asc())
            .limit(limit)
        )
        return [(city, count) for city, count in result.all()]
