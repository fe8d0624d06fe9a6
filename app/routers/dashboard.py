"""
Dashboard API endpoint.
"""

from fastapi import APIRouter, Depends

from app.models.user import User
from app.services.dashboard import DashboardService
from app.utils.dependencies import get_current_user, get_dashboard_service
from app.utils.responses import success_response


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "/stats",
    summary="Dashboard statistics",
    description="Hunter and lister statistics for the current user"
)
async def get_stats(
    current_user: User = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
) -> dict:
    return success_response(await dashboard_service.get_stats(current_user))
