"""
Comparison API endpoints: named side-by-side sets of listings.
"""

from fastapi import APIRouter, Depends, status
from uuid import UUID

from app.models.user import User
from app.schemas.comparison import ComparisonCreate, ComparisonUpdate
from app.services.comparison import ComparisonService
from app.utils.dependencies import get_current_user, get_comparison_service
from app.utils.responses import success_response


router = APIRouter(prefix="/comparisons", tags=["Comparisons"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create comparison",
    description="Compare two or more active listings"
)
async def create_comparison(
    comparison_data: ComparisonCreate,
    current_user: User = Depends(get_current_user),
    comparison_service: ComparisonService = Depends(get_comparison_service)
) -> dict:
    comparison = await comparison_service.create_comparison(comparison_data, current_user)
    return success_response(comparison, message="Comparison created successfully")


@router.get("", summary="List comparisons")
async def list_comparisons(
    current_user: User = Depends(get_current_user),
    comparison_service: ComparisonService = Depends(get_comparison_service)
) -> dict:
    comparisons = await comparison_service.list_comparisons(current_user)
    return success_response([comparison.to_dict() for comparison in comparisons])


@router.get(
    "/{comparison_id}",
    summary="Get comparison",
    description="Comparison with full listing details in the saved order"
)
async def get_comparison(
    comparison_id: UUID,
    current_user: User = Depends(get_current_user),
    comparison_service: ComparisonService = Depends(get_comparison_service)
) -> dict:
    return success_response(await comparison_service.get_comparison(comparison_id, current_user))


@router.put("/{comparison_id}", summary="Update comparison")
async def update_comparison(
    comparison_id: UUID,
    update_data: ComparisonUpdate,
    current_user: User = Depends(get_current_user),
    comparison_service: ComparisonService = Depends(get_comparison_service)
) -> dict:
    comparison = await comparison_service.update_comparison(comparison_id, update_data, current_user)
    return success_response(comparison.to_dict(), message="Comparison updated successfully")


@router.delete("/{comparison_id}", summary="Delete comparison")
async def delete_comparison(
    comparison_id: UUID,
    current_user: User = Depends(get_current_user),
    comparison_service: ComparisonService = Depends(get_comparison_service)
) -> dict:
    await comparison_service.delete_comparison(comparison_id, current_user)
    return success_response(message="Comparison deleted successfully")
