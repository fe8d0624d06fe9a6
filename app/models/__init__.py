"""
Database models for the Apartment Hunter API.
Includes users, listings, saved properties, viewings, comparisons and tags.
"""

from app.models.user import User, AuthProvider
from app.models.listing import Listing, PropertyType
from app.models.saved_property import SavedProperty, PropertyStatus
from app.models.viewing import Viewing
from app.models.comparison import Comparison
from app.models.tag import Tag, SavedPropertyTag

__all__ = [
    "User",
    "AuthProvider",
    "Listing",
    "PropertyType",
    "SavedProperty",
    "PropertyStatus",
    "Viewing",
    "Comparison",
    "Tag",
    "SavedPropertyTag",
]
