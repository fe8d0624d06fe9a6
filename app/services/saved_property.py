"""
Saved property service: a hunter's private list of listings with status, notes and tags.
"""

from typing import Any, List, Optional, Tuple
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import get_settings
from app.models.listing import Listing
from app.models.saved_property import SavedProperty, PropertyStatus
from app.models.user import User
from app.repositories.listing import ListingRepository
from app.repositories.saved_property import SavedPropertyRepository
from app.schemas.saved_property import SavedPropertyUpdate
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import APIException, NotFoundError, ValidationError, InternalServerError
from app.utils.query_engine import ListingFilters, PageMeta, SortOption, build_query, paginate
from app.utils.validators import parse_enum
import uuid
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

DUPLICATE_SAVE_MESSAGE = "This listing is already in your saved list."

SAVED_PROPERTY_SORT_COLUMNS = {
    SortOption.PRICE_ASC: (Listing.price, False),
    SortOption.PRICE_DESC: (Listing.price, True),
    SortOption.NEWEST: (SavedProperty.created_at, True),
}


class SavedPropertyService:
    """Service for saving listings and tracking progress on them."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.saved_repo = SavedPropertyRepository(db_session)
        self.listing_repo = ListingRepository(db_session)
        self.guard = OwnershipGuard(db_session)

    async def save_listing(self, listing_id: uuid.UUID, current_user: User) -> SavedProperty:
        """
        Save an active listing to the user's list.

        Raises:
            NotFoundError: If the listing does not exist or is inactive
            ValidationError: If the listing is already saved
        """
        user_id = current_user.id
        try:
            listing = await self.listing_repo.get_active(listing_id)
            if not listing:
                raise NotFoundError("Listing", detail="Listing not found or is inactive.")

            if await self.saved_repo.get_for_user_listing(user_id, listing_id):
                raise ValidationError(DUPLICATE_SAVE_MESSAGE)

            saved = await self.saved_repo.create({
                "user_id": user_id,
                "listing_id": listing_id,
                "status": PropertyStatus.SAVED,
                "pros": [],
                "cons": [],
            })
            logger.info(f"User {user_id} saved listing {listing_id}")
            return await self.saved_repo.get_with_tags(saved.id)

        except APIException:
            raise
        except IntegrityError:
            raise ValidationError(DUPLICATE_SAVE_MESSAGE)
        except Exception as e:
            logger.error(f"Failed to save listing {listing_id} for user {user_id}: {e}")
            raise InternalServerError("Failed to save listing")

    async def list_saved_properties(
        self,
        current_user: User,
        status: Any = None,
        city: Optional[str] = None,
        county: Optional[str] = None,
        bedrooms: Optional[int] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        sort: Any = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Tuple[List[SavedProperty], PageMeta]:
        """
        The user's saved properties whose listings are still active.

        Args:
            current_user: Hunter
            status: Optional status filter
            city: Case-insensitive exact city
            county: Case-insensitive exact county
            bedrooms: Minimum bedrooms
            min_price: Inclusive lower price bound
            max_price: Inclusive upper price bound
            sort: price_asc, price_desc or newest (default)
            page: 1-based page
            limit: Page size, default 10

        Returns:
            Tuple of (saved properties with tags loaded, page metadata)
        """
        try:
            status_filter = parse_enum(PropertyStatus, status, "status")

            extra_conditions = [SavedProperty.user_id == current_user.id]
            if status_filter is not None:
                extra_conditions.append(SavedProperty.status == status_filter)

            spec = build_query(
                ListingFilters(
                    is_active=True,
                    city=city,
                    county=county,
                    bedrooms=bedrooms,
                    min_price=min_price,
                    max_price=max_price
                ),
                sort=sort,
                page=page,
                limit=limit,
                default_limit=settings.saved_properties_page_size,
                max_limit=settings.max_page_size,
                extra_conditions=extra_conditions,
                sort_columns=SAVED_PROPERTY_SORT_COLUMNS,
                tiebreak=SavedProperty.id
            )
            saved_properties, total_count = await self.saved_repo.search(spec)
            return saved_properties, paginate(total_count, spec.limit, spec.page)

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to list saved properties for user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve saved properties")

    async def get_saved_property(self, saved_property_id: uuid.UUID, current_user: User) -> SavedProperty:
        """
        Saved property detail with listing, tags and viewings (soonest first).

        Raises:
            NotFoundError: If it does not exist or belongs to someone else
        """
        await self.guard.verify(
            SavedProperty, saved_property_id, current_user.id,
            resource="Saved property", action="view", hide_foreign=True
        )
        return await self.saved_repo.get_detail(saved_property_id)

    async def update_saved_property(
        self,
        saved_property_id: uuid.UUID,
        update_data: SavedPropertyUpdate,
        current_user: User
    ) -> SavedProperty:
        """
        Update notes, pros, cons and/or status.

        Raises:
            ValidationError: If no field was supplied or the status is unknown
            NotFoundError: If the saved property is not the user's
        """
        try:
            fields = update_data.model_dump(exclude_unset=True)
            if not fields:
                raise ValidationError("Provide at least one of notes, pros, cons or status to update.")

            if "status" in fields:
                status = parse_enum(PropertyStatus, fields["status"], "status")
                if status is None:
                    raise ValidationError("Status cannot be empty")
                fields["status"] = status

            for list_field in ("pros", "cons"):
                if list_field in fields and fields[list_field] is None:
                    fields[list_field] = []

            saved = await self.guard.verify(
                SavedProperty, saved_property_id, current_user.id,
                resource="Saved property", action="update", lock=True, hide_foreign=True
            )
            await self.saved_repo.update(saved, fields)

            logger.info(f"Saved property {saved_property_id} updated: {', '.join(fields)}")
            return await self.saved_repo.get_with_tags(saved_property_id)

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update saved property {saved_property_id}: {e}")
            raise InternalServerError("Failed to update saved property")

    async def delete_saved_property(self, saved_property_id: uuid.UUID, current_user: User) -> None:
        """Remove a listing from the user's list. Linked viewings are kept but unlinked."""
        try:
            await self.guard.verify(
                SavedProperty, saved_property_id, current_user.id,
                resource="Saved property", action="delete", lock=True, hide_foreign=True
            )
            await self.saved_repo.delete_with_links(saved_property_id)
            logger.info(f"Saved property {saved_property_id} deleted")

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete saved property {saved_property_id}: {e}")
            raise InternalServerError("Failed to delete saved property")
