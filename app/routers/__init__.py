"""
API route handlers for the Apartment Hunter API.
Provides organized routing for different API endpoints.
"""

from .auth import router as auth_router
from .listings import router as listings_router
from .saved_properties import router as saved_properties_router
from .viewings import router as viewings_router
from .comparisons import router as comparisons_router
from .tags import router as tags_router
from .dashboard import router as dashboard_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "listings_router",
    "saved_properties_router",
    "viewings_router",
    "comparisons_router",
    "tags_router",
    "dashboard_router",
    "health_router",
]
