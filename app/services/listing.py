"""
Listing service: posting, searching and editing listings, including their images.
"""

from typing import Any, Dict, List, Optional, Set, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import get_settings
from app.database import utcnow
from app.models.listing import Listing
from app.models.user import User
from app.models.viewing import Viewing
from app.repositories.listing import ListingRepository
from app.repositories.viewing import ViewingRepository
from app.schemas.listing import ListingCreate
from app.services.image_reconciler import ImageReconciler, ImageCleanupQueue
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import APIException, NotFoundError, ValidationError, InternalServerError
from app.utils.file_utils import ImageUpload
from app.utils.query_engine import ListingFilters, PageMeta, SortOption, build_query, paginate
from app.utils.storage import ImageStorage, StoredImage
import uuid
import logging

logger = logging.getLogger(__name__)
settings = get_settings()


class ListingService:
    """
    Listing service for listers' listings and the public search.
    Every write goes through the ownership guard; image changes go through the reconciler.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        storage: ImageStorage,
        cleanup_queue: Optional[ImageCleanupQueue] = None
    ):
        self.db = db_session
        self.listing_repo = ListingRepository(db_session)
        self.viewing_repo = ViewingRepository(db_session)
        self.guard = OwnershipGuard(db_session)
        self.images = ImageReconciler(storage, cleanup_queue)

    @staticmethod
    def image_folder(listing_id: uuid.UUID) -> str:
        return f"{settings.image_folder.rstrip('/')}/{listing_id}"

    async def create_listing(
        self,
        listing_data: ListingCreate,
        uploads: List[ImageUpload],
        current_user: User
    ) -> Listing:
        """
        Create a listing and upload its images.

        The row is inserted first with no images so the storage folder can use its id.
        If anything after that fails, uploaded images and the row are removed again.

        Args:
            listing_data: Validated listing fields
            uploads: Validated images, at least one
            current_user: Lister posting the listing

        Returns:
            Created listing with its image URLs

        Raises:
            ValidationError: If no image was sent
            StorageError: If the image upload fails
        """
        try:
            if not uploads:
                raise ValidationError("At least one image is required for a new listing.")

            if len(uploads) > settings.max_files_per_request:
                raise ValidationError(f"At most {settings.max_files_per_request} images can be uploaded at once.")

            create_data = listing_data.model_dump()
            create_data["user_id"] = current_user.id
            create_data["image_urls"] = []
            listing = await self.listing_repo.create(create_data)
            listing_id = listing.id

            stored: List[StoredImage] = []
            try:
                stored = await self.images.upload_all(uploads, self.image_folder(listing_id))
                listing = await self.listing_repo.update(
                    listing, {"image_urls": [image.secure_url for image in stored]}
                )
            except Exception:
                await self.images.rollback(stored)
                await self._discard_listing(listing_id)
                raise

            logger.info(f"Listing created by {current_user.email}: {listing.title} (ID: {listing.id})")
            return listing

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create listing for user {current_user.id}: {e}", exc_info=True)
            raise InternalServerError("Failed to create listing")

    async def _discard_listing(self, listing_id: uuid.UUID) -> None:
        try:
            await self.listing_repo.delete(listing_id)
            logger.info(f"Removed listing {listing_id} after failed image upload")
        except Exception as e:
            logger.error(f"Failed to delete orphaned listing {listing_id}: {e}")

    async def get_listing(self, listing_id: uuid.UUID, current_user: Optional[User] = None) -> Dict[str, Any]:
        """
        Get listing details.

        Inactive listings are hidden from the public but stay visible to their owner
        and to anyone who saved them or scheduled a viewing.

        Returns:
            Listing dictionary with lister, ``is_saved`` and, for the owner, upcoming viewings

        Raises:
            NotFoundError: If the listing does not exist or is not visible to the caller
        """
        try:
            listing = await self.listing_repo.get_by_id(listing_id)
            if not listing:
                raise NotFoundError("Listing", detail="Listing not found or is inactive.")

            is_owner = current_user is not None and listing.user_id == current_user.id

            if not listing.is_active and not is_owner:
                has_relationship = current_user is not None and await self.listing_repo.has_user_relationship(
                    listing.id, current_user.id
                )
                if not has_relationship:
                    raise NotFoundError("Listing", detail="Listing not found or is inactive.")

            result = listing.to_dict(include_lister=True, include_price_per_sqft=True)

            if current_user is not None:
                saved_ids = await self.listing_repo.saved_listing_ids(current_user.id, [listing.id])
                result["is_saved"] = listing.id in saved_ids

            if is_owner:
                upcoming = await self.viewing_repo.upcoming_for_listing(listing.id, utcnow())
                result["upcoming_viewings"] = [self._viewing_summary(v) for v in upcoming]

            return result

        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Failed to get listing {listing_id}: {e}")
            raise InternalServerError("Failed to retrieve listing")

    @staticmethod
    def _viewing_summary(viewing: Viewing) -> Dict[str, Any]:
        return {
            "id": str(viewing.id),
            "scheduled_date": viewing.scheduled_date.isoformat() if viewing.scheduled_date else None,
            "scheduled_time": viewing.scheduled_time.isoformat() if viewing.scheduled_time else None,
            "duration_minutes": viewing.duration_minutes,
            "location_notes": viewing.location_notes,
        }

    async def get_my_listings(
        self,
        current_user: User,
        is_active: Optional[bool] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> Tuple[List[Listing], PageMeta]:
        """
        Listings posted by the current user, newest first.

        Args:
            current_user: Lister
            is_active: Only active (True) or inactive (False) listings; None for both
            page: 1-based page
            limit: Page size, default 10
        """
        try:
            spec = build_query(
                ListingFilters(is_active=is_active, owner_id=current_user.id),
                sort=SortOption.NEWEST,
                page=page,
                limit=limit,
                default_limit=settings.my_listings_page_size,
                max_limit=settings.max_page_size
            )
            listings, total_count = await self.listing_repo.search(spec)
            return listings, paginate(total_count, spec.limit, spec.page)

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to get listings of user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve your listings")

    async def search_public_listings(
        self,
        filters: ListingFilters,
        sort: Any = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        current_user: Optional[User] = None
    ) -> Tuple[List[Listing], Set[uuid.UUID], PageMeta]:
        """
        Search active listings.

        Args:
            filters: Listing filters; ``is_active`` is forced to True
            sort: Sort key (price_asc, price_desc, newest, oldest, bedrooms_desc)
            page: 1-based page
            limit: Page size, default 20
            current_user: Optional viewer, used for the ``is_saved`` flags

        Returns:
            Tuple of (listings, ids of listings the viewer saved, page metadata)
        """
        try:
            filters.is_active = True
            filters.owner_id = None
            spec = build_query(
                filters,
                sort=sort,
                page=page,
                limit=limit,
                default_limit=settings.default_page_size,
                max_limit=settings.max_page_size
            )
            listings, total_count = await self.listing_repo.search(spec)

            saved_ids: Set[uuid.UUID] = set()
            if current_user is not None and listings:
                saved_ids = await self.listing_repo.saved_listing_ids(
                    current_user.id, [listing.id for listing in listings]
                )

            logger.debug(f"Public search found {total_count} listings")
            return listings, saved_ids, paginate(total_count, spec.limit, spec.page)

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to search listings: {e}")
            raise InternalServerError("Failed to search listings")

    async def update_listing(
        self,
        listing_id: uuid.UUID,
        update_fields: Dict[str, Any],
        retained_image_urls: Optional[List[str]],
        uploads: List[ImageUpload],
        current_user: User
    ) -> Listing:
        """
        Update listing fields and images.

        Args:
            listing_id: Listing to update
            update_fields: Fields that were sent (already validated)
            retained_image_urls: Current images to keep, in order; None keeps all of them
            uploads: New images appended after the retained ones
            current_user: Must own the listing

        Raises:
            NotFoundError: If the listing does not exist
            ForbiddenError: If the user does not own it
            ValidationError: If the listing would end up with no images or too many
        """
        try:
            listing = await self.guard.verify(
                Listing, listing_id, current_user.id, resource="Listing", action="update", lock=True
            )

            current = list(listing.image_urls or [])
            kept_count = len(current) if retained_image_urls is None else len(retained_image_urls)
            final_count = kept_count + len(uploads)

            if final_count == 0:
                raise ValidationError("A listing must have at least one image.")
            if final_count > settings.max_images_per_listing:
                raise ValidationError(f"A listing can have at most {settings.max_images_per_listing} images.")

            result = await self.images.reconcile(
                current, retained_image_urls, uploads, self.image_folder(listing.id)
            )

            try:
                listing = await self.listing_repo.update(
                    listing, {**update_fields, "image_urls": result.final}
                )
            except Exception:
                await self.images.rollback(result.uploaded)
                raise

            await self.images.cleanup(result.to_delete)

            logger.info(f"Listing updated by {current_user.email}: {listing.id}")
            return listing

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update listing {listing_id}: {e}", exc_info=True)
            raise InternalServerError("Failed to update listing")

    async def delete_listing(self, listing_id: uuid.UUID, current_user: User) -> None:
        """
        Soft delete: the listing is deactivated and its images are kept, so hunters who
        saved it still see it.
        """
        try:
            listing = await self.guard.verify(
                Listing, listing_id, current_user.id, resource="Listing", action="delete", lock=True
            )
            await self.listing_repo.update(listing, {"is_active": False})
            logger.info(f"Listing deactivated by {current_user.email}: {listing_id}")

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete listing {listing_id}: {e}")
            raise InternalServerError("Failed to delete listing")

    async def add_images(self, listing_id: uuid.UUID, uploads: List[ImageUpload], current_user: User) -> Listing:
        """Append images to a listing, up to the per-listing cap."""
        try:
            listing = await self.guard.verify(
                Listing, listing_id, current_user.id, resource="Listing", action="update", lock=True
            )
            result = await self.images.append(
                listing.image_urls, uploads, self.image_folder(listing.id), settings.max_images_per_listing
            )

            try:
                listing = await self.listing_repo.update(listing, {"image_urls": result.final})
            except Exception:
                await self.images.rollback(result.uploaded)
                raise

            logger.info(f"Added {len(result.uploaded)} images to listing {listing_id}")
            return listing

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to add images to listing {listing_id}: {e}")
            raise InternalServerError("Failed to add images")

    async def remove_image(self, listing_id: uuid.UUID, image_url: str, current_user: User) -> Listing:
        """
        Remove one image; the last image cannot be removed.

        Raises:
            NotFoundError: If the URL is not one of the listing's images
            ValidationError: If it is the listing's only image
        """
        try:
            listing = await self.guard.verify(
                Listing, listing_id, current_user.id, resource="Listing", action="update", lock=True
            )
            result = self.images.remove(listing.image_urls, image_url)
            if not result.final:
                raise ValidationError("A listing must keep at least one image.")

            listing = await self.listing_repo.update(listing, {"image_urls": result.final})
            await self.images.cleanup(result.to_delete)

            logger.info(f"Removed image from listing {listing_id}")
            return listing

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to remove image from listing {listing_id}: {e}")
            raise InternalServerError("Failed to remove image")

    async def reorder_images(self, listing_id: uuid.UUID, image_urls: List[str], current_user: User) -> Listing:
        try:
            listing = await self.guard.verify(
                Listing, listing_id, current_user.id, resource="Listing", action="update", lock=True
            )
            new_order = self.images.reorder(listing.image_urls, image_urls)
            listing = await self.listing_repo.update(listing, {"image_urls": new_order})

            logger.info(f"Reordered images of listing {listing_id}")
            return listing

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to reorder images of listing {listing_id}: {e}")
            raise InternalServerError("Failed to reorder images")
