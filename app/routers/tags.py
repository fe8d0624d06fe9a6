"""
Tag API endpoints. Attaching tags to saved properties lives in the saved properties router.
"""

from fastapi import APIRouter, Depends, status
from uuid import UUID

from app.models.user import User
from app.schemas.tag import TagCreate, TagUpdate
from app.services.tag import TagService
from app.utils.dependencies import get_current_user, get_tag_service
from app.utils.responses import success_response


router = APIRouter(prefix="/tags", tags=["Tags"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create tag")
async def create_tag(
    tag_data: TagCreate,
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    """
    Create a tag.

    Raises:
        ValidationError: If the user already has a tag with this name
    """
    tag = await tag_service.create_tag(tag_data, current_user)
    return success_response(tag.to_dict(), message="Tag created successfully")


@router.get("", summary="List tags", description="The current user's tags with usage counts")
async def list_tags(
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    tags = await tag_service.list_tags(current_user)
    return success_response([{**tag.to_dict(), "usage_count": count} for tag, count in tags])


@router.put("/{tag_id}", summary="Update tag")
async def update_tag(
    tag_id: UUID,
    update_data: TagUpdate,
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    tag = await tag_service.update_tag(tag_id, update_data, current_user)
    return success_response(tag.to_dict(), message="Tag updated successfully")


@router.delete("/{tag_id}", summary="Delete tag")
async def delete_tag(
    tag_id: UUID,
    current_user: User = Depends(get_current_user),
    tag_service: TagService = Depends(get_tag_service)
) -> dict:
    await tag_service.delete_tag(tag_id, current_user)
    return success_response(message="Tag deleted successfully")
