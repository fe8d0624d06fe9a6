"""
Comparison service: named side-by-side sets of listings.
"""

from typing import Any, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.comparison import Comparison
from app.models.listing import Listing
from app.models.user import User
from app.repositories.comparison import ComparisonRepository
from app.repositories.listing import ListingRepository
from app.schemas.comparison import ComparisonCreate, ComparisonUpdate
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import APIException, ValidationError, InternalServerError
import uuid
import logging

logger = logging.getLogger(__name__)

MIN_LISTINGS = 2


class ComparisonService:
    """Service for comparing listings."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.comparison_repo = ComparisonRepository(db_session)
        self.listing_repo = ListingRepository(db_session)
        self.guard = OwnershipGuard(db_session)

    async def _validate_listing_ids(self, listing_ids: List[uuid.UUID]) -> List[Listing]:
        """
        Check a comparison's listings: at least two, no repeats, all existing and active.

        Returns:
            Listings in the given order

        Raises:
            ValidationError: If any rule is broken
        """
        if len(listing_ids) < MIN_LISTINGS:
            raise ValidationError("A comparison requires at least two listings.")

        if len(set(listing_ids)) != len(listing_ids):
            raise ValidationError("A comparison cannot contain the same listing twice.")

        listings = await self.listing_repo.get_many(listing_ids)
        invalid = [str(lid) for lid in listing_ids if lid not in listings or not listings[lid].is_active]
        if invalid:
            raise ValidationError(
                "One or more Listing IDs were not found or are inactive.",
                field_errors=[{"field": "listing_ids", "message": f"Unavailable listing: {lid}"} for lid in invalid]
            )

        return [listings[lid] for lid in listing_ids]

    async def create_comparison(self, data: ComparisonCreate, current_user: User) -> Dict[str, Any]:
        """
        Create a comparison.

        Returns:
            Comparison dictionary with its listings in the given order
        """
        user_id = current_user.id
        try:
            listings = await self._validate_listing_ids(data.listing_ids)

            comparison = await self.comparison_repo.create({
                "user_id": user_id,
                "name": data.name,
                "listing_ids": [str(lid) for lid in data.listing_ids],
            })
            logger.info(f"Comparison {comparison.id} created by user {user_id} with {len(listings)} listings")
            return self._detail(comparison, listings, [])

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create comparison for user {user_id}: {e}")
            raise InternalServerError("Failed to create comparison")

    async def list_comparisons(self, current_user: User) -> List[Comparison]:
        """All of the user's comparisons, newest first."""
        try:
            return await self.comparison_repo.list_for_user(current_user.id)
        except Exception as e:
            logger.error(f"Failed to list comparisons for user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve comparisons")

    async def get_comparison(self, comparison_id: uuid.UUID, current_user: User) -> Dict[str, Any]:
        """
        Comparison detail.

        Listings are returned in the stored order with ``price_per_sqft``. Listings that
        were deleted or deactivated since are left out and reported in
        ``unavailable_listing_ids``.
        """
        try:
            comparison = await self.guard.verify(
                Comparison, comparison_id, current_user.id, resource="Comparison", action="view"
            )

            listing_ids = comparison.listing_uuids
            found = await self.listing_repo.get_many(listing_ids)

            available = [found[lid] for lid in listing_ids if lid in found and found[lid].is_active]
            unavailable = [str(lid) for lid in listing_ids if lid not in found or not found[lid].is_active]

            return self._detail(comparison, available, unavailable)

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to get comparison {comparison_id}: {e}")
            raise InternalServerError("Failed to retrieve comparison")

    async def update_comparison(
        self,
        comparison_id: uuid.UUID,
        data: ComparisonUpdate,
        current_user: User
    ) -> Comparison:
        """
        Rename a comparison and/or replace its listings (re-validated).
        """
        try:
            fields = data.model_dump(exclude_unset=True)
            if not fields or all(value is None for value in fields.values()):
                raise ValidationError("Provide a name or listing_ids to update.")

            comparison = await self.guard.verify(
                Comparison, comparison_id, current_user.id, resource="Comparison", action="update", lock=True
            )

            update_fields: Dict[str, Any] = {}
            if data.name is not None:
                update_fields["name"] = data.name
            if data.listing_ids is not None:
                await self._validate_listing_ids(data.listing_ids)
                update_fields["listing_ids"] = [str(lid) for lid in data.listing_ids]

            comparison = await self.comparison_repo.update(comparison, update_fields)
            logger.info(f"Comparison {comparison_id} updated")
            return comparison

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update comparison {comparison_id}: {e}")
            raise InternalServerError("Failed to update comparison")

    async def delete_comparison(self, comparison_id: uuid.UUID, current_user: User) -> None:
        try:
            await self.guard.verify(
                Comparison, comparison_id, current_user.id, resource="Comparison", action="delete", lock=True
            )
            await self.comparison_repo.delete(comparison_id)
            logger.info(f"Comparison {comparison_id} deleted")

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete comparison {comparison_id}: {e}")
            raise InternalServerError("Failed to delete comparison")

    @staticmethod
    def _detail(comparison: Comparison, listings: List[Listing], unavailable: List[str]) -> Dict[str, Any]:
        result = comparison.to_dict()
        result["listings"] = [listing.to_dict(include_price_per_sqft=True) for listing in listings]
        result["unavailable_listing_ids"] = unavailable
        return result
