"""
Repository layer for data access operations.
Each repository wraps one model and commits or rolls back its own writes.
"""

from app.repositories.base import BaseRepository
from app.repositories.user import UserRepository
from app.repositories.listing import ListingRepository
from app.repositories.saved_property import SavedPropertyRepository
from app.repositories.viewing import ViewingRepository
from app.repositories.comparison import ComparisonRepository
from app.repositories.tag import TagRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ListingRepository",
    "SavedPropertyRepository",
    "ViewingRepository",
    "ComparisonRepository",
    "TagRepository",
]
