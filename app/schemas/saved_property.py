"""
Pydantic schemas for saved property requests.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
import uuid

from app.utils.validators import clean_string_list


class SavedPropertyCreate(BaseModel):
    """Save a public listing."""

    listing_id: uuid.UUID = Field(..., description="Listing to save")


class SavedPropertyUpdate(BaseModel):
    """
    Partial update of a hunter's private notes.
    Status is checked against the allowed values by the service.
    """

    notes: Optional[str] = Field(None, max_length=5000)
    pros: Optional[List[str]] = Field(None, max_length=50)
    cons: Optional[List[str]] = Field(None, max_length=50)
    status: Optional[str] = Field(None, description="saved, interested, viewed, applied or rejected")

    @field_validator("pros", "cons")
    @classmethod
    def clean_items(cls, v):
        if v is None:
            return v
        return clean_string_list(v)


class TagAttachRequest(BaseModel):
    """Attach one of the user's tags."""

    tag_id: uuid.UUID = Field(..., description="Tag to attach")
