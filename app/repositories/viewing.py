"""
Viewing repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.repositories.base import BaseRepository
from app.models.listing import Listing
from app.models.viewing import Viewing
from app.utils.query_engine import QuerySpec, fetch_page
from datetime import datetime
from typing import List, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class ViewingRepository(BaseRepository[Viewing]):
    """Repository for scheduled viewings."""

    def __init__(self, db: AsyncSession):
        super().__init__(Viewing, db)

    async def search(self, spec: QuerySpec) -> Tuple[List[Viewing], int]:
        try:
            return await fetch_page(self.db, select(Viewing), spec)
        except Exception as e:
            logger.error(f"Failed to search viewings: {e}")
            raise

    def _upcoming_conditions(self, user_id: uuid.UUID, after: datetime) -> list:
        return [
            Viewing.user_id == user_id,
            Viewing.attended.is_(False),
            Viewing.scheduled_date > after,
        ]

    async def get_upcoming(self, user_id: uuid.UUID, after: datetime, limit: int = 5) -> List[Viewing]:
        """
        Unattended viewings scheduled after ``after``, soonest first.

        Args:
            user_id: Hunter's user id
            after: Exclusive lower bound, normally the current time
            limit: Maximum number of viewings
        """
        result = await self.db.execute(
            select(Viewing)
            .where(*self._upcoming_conditions(user_id, after))
            .order_by(Viewing.scheduled_date.asc(), Viewing.scheduled_time.asc(), Viewing.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_upcoming(self, user_id: uuid.UUID, after: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Viewing.id)).where(*self._upcoming_conditions(user_id, after))
        )
        return result.scalar() or 0

    async def upcoming_for_listing(self, listing_id: uuid.UUID, after: datetime, limit: int = 5) -> List[Viewing]:
        """Next viewings anyone scheduled on one listing."""
        result = await self.db.execute(
            select(Viewing)
            .where(Viewing.listing_id == listing_id, Viewing.scheduled_date > after)
            .order_by(Viewing.scheduled_date.asc(), Viewing.scheduled_time.asc(), Viewing.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_on_owner_listings(self, owner_id: uuid.UUID) -> int:
        """Viewings anyone scheduled on listings posted by ``owner_id``."""
        result = await self.db.execute(
            select(func.count(Viewing.id))
            .join(Listing, Viewing.listing_id == Listing.id)
            .where(Listing.user_id == owner_id)
        )
        return result.scalar() or 0

    async def recent_on_owner_listings(self, owner_id: uuid.UUID, limit: int = 5) -> List[Viewing]:
        result = await self.db.execute(
            select(Viewing)
            .join(Listing, Viewing.listing_id == Listing.id)
            .where(Listing.user_id == owner_id)
            .order_by(Viewing.created_at.desc(), Viewing.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
