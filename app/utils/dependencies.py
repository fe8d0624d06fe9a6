"""
FastAPI dependency injection utilities for authentication, services and storage.
Provides reusable dependencies for route protection and user extraction.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.services.auth import AuthService
from app.services.comparison import ComparisonService
from app.services.dashboard import DashboardService
from app.services.image_reconciler import ImageCleanupQueue, get_cleanup_queue
from app.services.listing import ListingService
from app.services.saved_property import SavedPropertyService
from app.services.tag import TagService
from app.services.viewing import ViewingService
from app.utils.exceptions import (
    APIException,
    UnauthorizedError,
)
from app.utils.storage import ImageStorage, get_image_storage
import logging

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """
    Get authentication service instance.

    Args:
        db: Database session

    Returns:
        AuthService instance
    """
    return AuthService(db)


async def get_listing_service(
    db: AsyncSession = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage),
    cleanup_queue: ImageCleanupQueue = Depends(get_cleanup_queue)
) -> ListingService:
    """
    Get listing service instance.

    Args:
        db: Database session
        storage: Image storage backend
        cleanup_queue: Queue for images whose deletion failed

    Returns:
        ListingService instance
    """
    return ListingService(db, storage, cleanup_queue)


async def get_saved_property_service(db: AsyncSession = Depends(get_db)) -> SavedPropertyService:
    return SavedPropertyService(db)


async def get_viewing_service(db: AsyncSession = Depends(get_db)) -> ViewingService:
    return ViewingService(db)


async def get_comparison_service(db: AsyncSession = Depends(get_db)) -> ComparisonService:
    return ComparisonService(db)


async def get_tag_service(db: AsyncSession = Depends(get_db)) -> TagService:
    return TagService(db)


async def get_dashboard_service(db: AsyncSession = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """The Authorization header wins over the auth cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name) or None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from the bearer token or the auth cookie.

    The user is detached from the session so that its attributes stay readable after
    a service rolls the session back.

    Args:
        request: Incoming request (for the cookie)
        credentials: HTTP Bearer credentials
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthorizedError: If no token provided or token is invalid
        TokenExpiredError: If token is expired
    """
    token = _extract_token(request, credentials)
    if not token:
        raise UnauthorizedError("Authentication token required")

    try:
        user = await auth_service.get_current_user(token)
    except APIException:
        raise
    except Exception as e:
        logger.error(f"Authentication failed: {e}")
        raise UnauthorizedError("Authentication failed")

    auth_service.db.expunge(user)
    return user


async def get_optional_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """
    Get current user if a valid token is provided, otherwise return None.

    Used by public endpoints that add per-user context (such as ``is_saved``).
    """
    token = _extract_token(request, credentials)
    if not token:
        return None

    try:
        user = await auth_service.get_current_user(token)
    except UnauthorizedError:
        return None

    auth_service.db.expunge(user)
    return user
