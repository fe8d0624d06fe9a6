"""
Dashboard statistics for both sides of an account: hunting and listing.
"""

from typing import Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.saved_property import PropertyStatus
from app.models.user import User
from app.repositories.listing import ListingRepository
from app.repositories.saved_property import SavedPropertyRepository
from app.repositories.viewing import ViewingRepository
from app.database import utcnow
from app.utils.exceptions import InternalServerError
import logging

logger = logging.getLogger(__name__)


class DashboardService:
    """Read-only aggregates for the dashboard."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.listing_repo = ListingRepository(db_session)
        self.saved_repo = SavedPropertyRepository(db_session)
        self.viewing_repo = ViewingRepository(db_session)

    async def get_stats(self, current_user: User) -> Dict[str, Any]:
        """
        Collect hunter and lister statistics for the user.

        Returns:
            Dictionary with ``hunter`` and ``lister`` sections
        """
        try:
            return {
                "hunter": await self._hunter_stats(current_user),
                "lister": await self._lister_stats(current_user),
            }
        except Exception as e:
            logger.error(f"Failed to build dashboard for user {current_user.id}: {e}", exc_info=True)
            raise InternalServerError("Failed to retrieve dashboard statistics")

    async def _hunter_stats(self, user: User) -> Dict[str, Any]:
        status_counts = await self.saved_repo.status_counts(user.id)
        now = utcnow()
        upcoming_count = await self.viewing_repo.count_upcoming(user.id, now)
        next_viewings = await self.viewing_repo.get_upcoming(user.id, now, limit=1)
        top_cities = await self.saved_repo.top_cities(user.id, limit=5)

        next_viewing = None
        if next_viewings:
            viewing = next_viewings[0]
            next_viewing = {
                "id": str(viewing.id),
                "listing_id": str(viewing.listing_id),
                "scheduled_date": viewing.scheduled_date.isoformat() if viewing.scheduled_date else None,
                "scheduled_time": viewing.scheduled_time.isoformat() if viewing.scheduled_time else None,
                "location_notes": viewing.location_notes,
            }

        return {
            "total_saved_properties": sum(status_counts.values()),
            "properties_by_status": [
                {"status": status.value, "count": status_counts.get(status, 0)}
                for status in PropertyStatus
            ],
            "upcoming_viewings_count": upcoming_count,
            "next_viewing": next_viewing,
            "top_cities": [{"city": city, "count": count} for city, count in top_cities],
        }

    async def _lister_stats(self, user: User) -> Dict[str, Any]:
        counts = await self.listing_repo.count_by_active(user.id)
        total_viewings = await self.viewing_repo.count_on_owner_listings(user.id)
        recent = await self.viewing_repo.recent_on_owner_listings(user.id, limit=5)

        return {
            "total_listings_posted": counts[True] + counts[False],
            "listings_by_status": [
                {"status": "active", "count": counts[True]},
                {"status": "inactive", "count": counts[False]},
            ],
            "total_viewings_scheduled_on_my_listings": total_viewings,
            "recent_activity": [viewing.to_dict(include_listing=True) for viewing in recent],
        }
