"""
Viewing service: scheduling and tracking viewings of listings.
"""

from typing import Any, List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import get_settings
from app.database import utcnow
from app.models.user import User
from app.models.viewing import Viewing
from app.repositories.listing import ListingRepository
from app.repositories.saved_property import SavedPropertyRepository
from app.repositories.viewing import ViewingRepository
from app.schemas.viewing import ViewingCreate, ViewingUpdate
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    InternalServerError
)
from app.utils.query_engine import PageMeta, SortOption, build_query, paginate
import uuid
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

VIEWING_SORT_COLUMNS = {
    SortOption.DATE_ASC: (Viewing.scheduled_date, False),
    SortOption.DATE_DESC: (Viewing.scheduled_date, True),
}


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ViewingService:
    """Service for a hunter's viewing appointments."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.viewing_repo = ViewingRepository(db_session)
        self.listing_repo = ListingRepository(db_session)
        self.saved_repo = SavedPropertyRepository(db_session)
        self.guard = OwnershipGuard(db_session)

    async def schedule_viewing(self, listing_id: uuid.UUID, data: ViewingCreate, current_user: User) -> Viewing:
        """
        Schedule a viewing of an active listing.

        If the user has saved the listing, the viewing is linked to that saved property.

        Raises:
            NotFoundError: If the listing does not exist or is inactive
        """
        user_id = current_user.id
        try:
            listing = await self.listing_repo.get_active(listing_id)
            if not listing:
                raise NotFoundError("Listing", detail="Listing not found or is inactive.")

            saved = await self.saved_repo.get_for_user_listing(user_id, listing_id)

            create_data = {
                "user_id": user_id,
                "listing_id": listing_id,
                "saved_property_id": saved.id if saved else None,
                "scheduled_date": to_utc(data.scheduled_date),
                "scheduled_time": data.scheduled_time,
                "location_notes": data.location_notes,
            }
            if data.duration_minutes is not None:
                create_data["duration_minutes"] = data.duration_minutes

            viewing = await self.viewing_repo.create(create_data)
            logger.info(f"Viewing {viewing.id} scheduled by user {user_id} for listing {listing_id}")
            return viewing

        except NotFoundError:
            raise
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Failed to schedule viewing of {listing_id} for user {user_id}: {e}")
            raise InternalServerError("Failed to schedule viewing")

    async def list_viewings(
        self,
        current_user: User,
        attended: Optional[bool] = None,
        listing_id: Optional[uuid.UUID] = None,
        sort: Any = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Tuple[List[Viewing], PageMeta]:
        """
        The user's viewings.

        Args:
            current_user: Hunter
            attended: Filter by attended flag
            listing_id: Only viewings of this listing
            sort: date_asc (default) or date_desc
            page: 1-based page
            limit: Page size, default 20
        """
        try:
            conditions = [Viewing.user_id == current_user.id]
            if attended is not None:
                conditions.append(Viewing.attended.is_(attended))
            if listing_id is not None:
                conditions.append(Viewing.listing_id == listing_id)

            spec = build_query(
                None,
                sort=sort,
                page=page,
                limit=limit,
                default_limit=settings.default_page_size,
                max_limit=settings.max_page_size,
                extra_conditions=conditions,
                sort_columns=VIEWING_SORT_COLUMNS,
                tiebreak=Viewing.id,
                default_sort=SortOption.DATE_ASC
            )
            viewings, total_count = await self.viewing_repo.search(spec)
            return viewings, paginate(total_count, spec.limit, spec.page)

        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Failed to list viewings for user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve viewings")

    async def get_upcoming_viewings(self, current_user: User, limit: int = 5) -> List[Viewing]:
        """Next unattended viewings from the start of today, soonest first."""
        try:
            return await self.viewing_repo.get_upcoming(current_user.id, utcnow(), limit)
        except Exception as e:
            logger.error(f"Failed to get upcoming viewings for user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve upcoming viewings")

    async def update_viewing(self, viewing_id: uuid.UUID, data: ViewingUpdate, current_user: User) -> Viewing:
        """
        Update viewing details or record the outcome.

        Raises:
            NotFoundError: If the viewing does not exist
            ForbiddenError: If it belongs to another user
            ValidationError: If no field was supplied
        """
        try:
            fields = data.model_dump(exclude_unset=True)
            if not fields:
                raise ValidationError("No fields to update.")

            for required in ("scheduled_date", "duration_minutes", "attended"):
                if required in fields and fields[required] is None:
                    raise ValidationError(f"{required} cannot be null")

            if "scheduled_date" in fields:
                fields["scheduled_date"] = to_utc(fields["scheduled_date"])

            viewing = await self.guard.verify(
                Viewing, viewing_id, current_user.id, resource="Viewing", action="update", lock=True
            )
            viewing = await self.viewing_repo.update(viewing, fields)

            logger.info(f"Viewing {viewing_id} updated: {', '.join(fields)}")
            return viewing

        except NotFoundError:
            raise
        except ForbiddenError:
            raise
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Failed to update viewing {viewing_id}: {e}")
            raise InternalServerError("Failed to update viewing")

    async def delete_viewing(self, viewing_id: uuid.UUID, current_user: User) -> None:
        """Cancel a viewing."""
        try:
            await self.guard.verify(
                Viewing, viewing_id, current_user.id, resource="Viewing", action="delete", lock=True
            )
            await self.viewing_repo.delete(viewing_id)
            logger.info(f"Viewing {viewing_id} deleted")

        except NotFoundError:
            raise
        except ForbiddenError:
            raise
        except Exception as e:
            logger.error(f"Failed to delete viewing {viewing_id}: {e}")
            raise InternalServerError("Failed to delete viewing")
