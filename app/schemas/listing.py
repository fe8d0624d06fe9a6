"""
Pydantic schemas for listing requests.
Create and update arrive as multipart forms; the router assembles these models from the form fields.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from app.models.listing import PropertyType


class ListingBase(BaseModel):
    """Fields shared by listing create and update."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Listing title",
        examples=["Bright two-bed flat near the park"]
    )
    address: str = Field(..., min_length=1, max_length=255, description="Street address")
    city: str = Field(..., min_length=1, max_length=100, description="City")
    county: str = Field(..., min_length=1, max_length=100, description="County")
    zip_code: Optional[str] = Field(None, max_length=20, description="Postal code")
    price: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Asking price or monthly rent",
        examples=[1450.00]
    )
    bedrooms: int = Field(..., ge=0, le=50, description="Number of bedrooms")
    bathrooms: float = Field(..., ge=0, le=50, description="Number of bathrooms, halves allowed")
    square_feet: Optional[int] = Field(None, gt=0, description="Floor area in square feet")
    property_type: PropertyType = Field(..., description="Kind of dwelling")
    listing_url: Optional[str] = Field(None, max_length=500, description="External listing URL")

    @field_validator("title", "address", "city", "county")
    @classmethod
    def strip_text(cls, v):
        """Trim whitespace and reject blank values."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be empty")
        return v

    @field_validator("zip_code", "listing_url")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return v
        return v.strip() or None


class ListingCreate(ListingBase):
    """Listing creation data (images are sent as files alongside)."""


class ListingUpdate(ListingBase):
    """Partial listing update; only fields that were sent are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    county: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[float] = Field(None, ge=0, le=50)
    property_type: Optional[PropertyType] = None
    is_active: Optional[bool] = Field(None, description="Reactivate or deactivate the listing")


class ImageRemoveRequest(BaseModel):
    """Remove one image by URL."""

    image_url: str = Field(..., min_length=1, description="URL of the image to remove")


class ImageReorderRequest(BaseModel):
    """New order for a listing's images; must contain exactly the current images."""

    image_urls: List[str] = Field(..., min_length=1, description="All current image URLs in the new order")
