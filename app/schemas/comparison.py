"""
Pydantic schemas for comparison requests.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
import uuid


class ComparisonCreate(BaseModel):
    """Create a named comparison of at least two listings."""

    name: str = Field(..., min_length=1, max_length=100, examples=["Shortlist for March"])
    listing_ids: List[uuid.UUID] = Field(..., description="Listings in display order")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v


class ComparisonUpdate(BaseModel):
    """Rename a comparison and/or replace its listings."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    listing_ids: Optional[List[uuid.UUID]] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v
