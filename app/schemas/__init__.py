"""
Pydantic schemas for request/response validation.
"""

# Authentication schemas
from .auth import (
    RegisterRequest,
    LoginRequest,
    UserResponse,
    AuthResponse
)

# Listing schemas
from .listing import (
    ListingBase,
    ListingCreate,
    ListingUpdate,
    ImageRemoveRequest,
    ImageReorderRequest
)

# Hunter-side schemas
from .saved_property import SavedPropertyCreate, SavedPropertyUpdate, TagAttachRequest
from .viewing import ViewingCreate, ViewingUpdate
from .comparison import ComparisonCreate, ComparisonUpdate
from .tag import TagCreate, TagUpdate

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "UserResponse",
    "AuthResponse",
    "ListingBase",
    "ListingCreate",
    "ListingUpdate",
    "ImageRemoveRequest",
    "ImageReorderRequest",
    "SavedPropertyCreate",
    "SavedPropertyUpdate",
    "TagAttachRequest",
    "ViewingCreate",
    "ViewingUpdate",
    "ComparisonCreate",
    "ComparisonUpdate",
    "TagCreate",
    "TagUpdate",
]
