"""
Pydantic schemas for tag requests.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class TagCreate(BaseModel):
    """Create a tag; names are unique per user."""

    name: str = Field(..., min_length=1, max_length=50, examples=["Garden"])
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN, examples=["#3b82f6"])

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Tag name cannot be empty")
        return v


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Tag name cannot be empty")
        return v
