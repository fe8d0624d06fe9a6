"""
Viewing API endpoints: scheduling viewings and recording how they went.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from uuid import UUID

from app.models.user import User
from app.schemas.viewing import ViewingCreate, ViewingUpdate
from app.services.viewing import ViewingService
from app.utils.dependencies import get_current_user, get_viewing_service
from app.utils.query_engine import SortOption, coerce_sort
from app.utils.responses import success_response


router = APIRouter(prefix="/viewings", tags=["Viewings"])


@router.post(
    "/listings/{listing_id}/viewings",
    status_code=status.HTTP_201_CREATED,
    summary="Schedule viewing",
    description="Schedule a viewing of an active listing"
)
async def schedule_viewing(
    listing_id: UUID,
    viewing_data: ViewingCreate,
    current_user: User = Depends(get_current_user),
    viewing_service: ViewingService = Depends(get_viewing_service)
) -> dict:
    viewing = await viewing_service.schedule_viewing(listing_id, viewing_data, current_user)
    return success_response(viewing.to_dict(include_listing=True), message="Viewing scheduled successfully")


@router.get(
    "",
    summary="List viewings",
    description="The current user's viewings, by date"
)
async def list_viewings(
    attended: Optional[bool] = Query(None),
    listing_id: Optional[UUID] = Query(None),
    sort: Optional[str] = Query(None, description="date_asc or date_desc"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    viewing_service: ViewingService = Depends(get_viewing_service)
) -> dict:
    viewings, meta = await viewing_service.list_viewings(
        current_user,
        attended=attended,
        listing_id=listing_id,
        sort=coerce_sort(sort, SortOption.DATE_ASC),
        page=page,
        limit=limit
    )
    return success_response([viewing.to_dict(include_listing=True) for viewing in viewings], pagination=meta)


@router.get(
    "/upcoming",
    summary="Upcoming viewings",
    description="Next five unattended viewings from today on"
)
async def upcoming_viewings(
    current_user: User = Depends(get_current_user),
    viewing_service: ViewingService = Depends(get_viewing_service)
) -> dict:
    viewings = await viewing_service.get_upcoming_viewings(current_user)
    return success_response([viewing.to_dict(include_listing=True) for viewing in viewings])


@router.put(
    "/{viewing_id}",
    summary="Update viewing",
    description="Reschedule, mark attended, add notes or a rating"
)
async def update_viewing(
    viewing_id: UUID,
    update_data: ViewingUpdate,
    current_user: User = Depends(get_current_user),
    viewing_service: ViewingService = Depends(get_viewing_service)
) -> dict:
    viewing = await viewing_service.update_viewing(viewing_id, update_data, current_user)
    return success_response(viewing.to_dict(include_listing=True), message="Viewing updated successfully")


@router.delete(
    "/{viewing_id}",
    summary="Cancel viewing"
)
async def delete_viewing(
    viewing_id: UUID,
    current_user: User = Depends(get_current_user),
    viewing_service: ViewingService = Depends(get_viewing_service)
) -> dict:
    await viewing_service.delete_viewing(viewing_id, current_user)
    return success_response(message="Viewing deleted successfully")
