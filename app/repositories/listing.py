"""
Listing repository: public search, owner queries and saved-state lookups.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, exists
from app.repositories.base import BaseRepository
from app.models.listing import Listing
from app.models.saved_property import SavedProperty
from app.models.viewing import Viewing
from app.utils.query_engine import QuerySpec, fetch_page
from typing import Dict, List, Optional, Set, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class ListingRepository(BaseRepository[Listing]):
    """Repository for listings posted by listers."""

    def __init__(self, db: AsyncSession):
        super().__init__(Listing, db)

    async def search(self, spec: QuerySpec) -> Tuple[List[Listing], int]:
        """
        Run a filtered, sorted and paged listing query.

        Args:
            spec: Query built by the query engine

        Returns:
            Tuple of (listings, total count)
        """
        try:
            listings, total_count = await fetch_page(self.db, select(Listing), spec)
            logger.debug(f"Listing search returned {len(listings)} of {total_count}")
            return listings, total_count
        except Exception as e:
            logger.error(f"Failed to search listings: {e}")
            raise

    async def get_active(self, listing_id: uuid.UUID) -> Optional[Listing]:
        result = await self.db.execute(
            select(Listing).where(Listing.id == listing_id, Listing.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_many(self, listing_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Listing]:
        """
        Load several listings in one query.

        Returns:
            Mapping of id to listing for the ids that exist
        """
        if not listing_ids:
            return {}
        result = await self.db.execute(select(Listing).where(Listing.id.in_(listing_ids)))
        return {listing.id: listing for listing in result.scalars().all()}

    async def saved_listing_ids(self, user_id: uuid.UUID, listing_ids: List[uuid.UUID]) -> Set[uuid.UUID]:
        """
        Which of the given listings the user has saved, as one IN query.

        Args:
            user_id: Hunter's user id
            listing_ids: Listings on the current page

        Returns:
            Set of saved listing ids
        """
        if not listing_ids:
            return set()
        try:
            result = await self.db.execute(
                select(SavedProperty.listing_id).where(
                    SavedProperty.user_id == user_id,
                    SavedProperty.listing_id.in_(listing_ids)
                )
            )
            return set(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to look up saved listings for user {user_id}: {e}")
            raise

    async def has_user_relationship(self, listing_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """True if the user saved the listing or scheduled a viewing for it."""
        saved = exists().where(SavedProperty.listing_id == listing_id, SavedProperty.user_id == user_id)
        viewed = exists().where(Viewing.listing_id == listing_id, Viewing.user_id == user_id)
        result = await self.db.execute(select(or_(saved, viewed)))
        return bool(result.scalar())

    async def count_by_active(self, user_id: uuid.UUID) -> Dict[bool, int]:
        """
        Count an owner's listings grouped by is_active.

        Returns:
            Mapping {True: active_count, False: inactive_count}
        """
        result = await self.db.execute(
            select(Listing.is_active, func.count(Listing.id))
            .where(Listing.user_id == user_id)
            .group_by(Listing.is_active)
        )
        counts = {True: 0, False: 0}
        for is_active, count in result.all():
            counts[bool(is_active)] = count
        return counts
