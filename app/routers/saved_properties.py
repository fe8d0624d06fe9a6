"""
Saved property API endpoints: a hunter's saved listings, their notes and tags.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from decimal import Decimal
from uuid import UUID

from app.models.saved_property import SavedProperty
from app.models.user import User
from app.schemas.saved_property import SavedPropertyCreate, SavedPropertyUpdate, TagAttachRequest
from app.services.saved_property import SavedPropertyService
from app.services.tag import TagService
from app.utils.dependencies import get_current_user, get_saved_property_service, get_tag_service
from app.utils.query_engine import SortOption, coerce_sort
from app.utils.responses import success_response


router = APIRouter(prefix="/saved-properties", tags=["Saved Properties"])


def _detail_payload(saved: SavedProperty) -> dict:
    result = saved.to_dict()
    result["viewings"] = [viewing.to_dict() for viewing in saved.viewings]
    return result


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Save listing",
    description="Add an active listing to the current user's saved list"
)
async def save_listing(
    request_data: SavedPropertyCreate,
    current_user: User = Depends(get_current_user),
    saved_service: SavedPropertyService = Depends(get_saved_property_service)
) -> dict:
    """
    Save a listing.

    Raises:
        NotFoundError: If the listing does not exist or is inactive
        ValidationError: If the listing is already saved
    """
    saved = await saved_service.save_listing(request_data.listing_id, current_user)
    return success_response(saved.to_dict(), message="Listing saved successfully")


@router.get(
    "",
    summary="List saved properties",
    description="Saved properties with filters, sorting and pagination"
)
async def list_saved_properties(
    status_filter: Optional[str] = Query(None, alias="status", description="Saved property status"),
    city: Optional[str] = Query(None),
    county: Optional[str] = Query(None),
    bedrooms: Optional[int] = Query(None, ge=0, description="Minimum number of bedrooms"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    sort: Optional[str] = Query(None, description="price_asc, price_desc or newest"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    saved_service: SavedPropertyService = Depends(get_saved_property_service)
) -> dict:
    saved_properties, meta = await saved_service.list_saved_properties(
        current_user,
        status=status_filter,
        city=city,
        county=county,
        bedrooms=bedrooms,
        min_price=min_price,
        max_price=max_price,
        sort=coerce_sort(sort, SortOption.NEWEST),
        page=page,
        limit=limit
    )
    return success_response([saved.to_dict() for saved in saved_properties], pagination=meta)


@router.get(
    "/{saved_property_id}",
    summary="Get saved property",
    description="Saved property with its listing, tags and viewings"
)
async def get_saved_property(
    saved_property_id: UUID,
    current_user: User = Depends(get_current_user),
    saved_service: SavedPropertyService = Depends(get_saved_property_service)
) -> dict:
    saved = await saved_service.get_saved_property(saved_property_id, current_user)
    return success_response(_detail_payload(saved))


@router.put(
    "/{saved_property_id}",
    summary="Update saved property",
    description="Update notes, pros, cons and/or status"
)
async def update_saved_property(
    saved_property_id: UUID,
    update_data: SavedPropertyUpdate,
    current_user: User = Depends(get_current_user),
    saved_service: SavedPropertyService = Depends(get_saved_property_service)
) -> dict:
    saved = await saved_service.update_saved_property(saved_property_id, update_data, current_user)
    return success_response(saved.to_dict(), message="Saved property updated successfully")


@router.delete(
    "/{saved_property_id}",
    summary="Remove saved property",
    description="Remove a listing from the saved list"
)
async def delete_saved_property(
    saved_property_id: UUID,
    current_user: User = Depends(get_current_user),
    saved_service: SavedPropertyService = Depends(get_saved_property_service)
) -> dict:
    await saved_service.delete_saved_property(saved_property_id, current_user)
    return success_response(message="Saved property removed successfully")


@router.post(
    "/{saved_property_id}/tags",
    summary="Tag saved property",
    description="Attach one of the current user's tags"
)
async def add_tag(
    saved_property_id: UUID,
    request_data: TagAttachRequest,
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    saved = await tag_service.add_tag_to_saved_property(saved_property_id, request_data.tag_id, current_user)
    return success_response(saved.to_dict(), message="Tag added successfully")


@router.delete(
    "/{saved_property_id}/tags/{tag_id}",
    summary="Untag saved property",
    description="Detach a tag from a saved property"
)
async def remove_tag(
    saved_property_id: UUID,
    tag_id: UUID,
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    await tag_service.remove_tag_from_saved_property(saved_property_id, tag_id, current_user)
    return success_response(message="Tag removed successfully")
