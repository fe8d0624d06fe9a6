"""
Service layer for business logic implementation.
Services receive their database session (and storage, where needed) from FastAPI dependencies.
"""

from .auth import AuthService
from .listing import ListingService
from .saved_property import SavedPropertyService
from .viewing import ViewingService
from .comparison import ComparisonService
from .tag import TagService
from .dashboard import DashboardService
from .ownership import OwnershipGuard
from .image_reconciler import ImageReconciler, ImageCleanupQueue
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "ListingService",
    "SavedPropertyService",
    "ViewingService",
    "ComparisonService",
    "TagService",
    "DashboardService",
    "OwnershipGuard",
    "ImageReconciler",
    "ImageCleanupQueue",
    "ErrorHandlerService",
]
