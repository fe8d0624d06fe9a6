"""
Listing model for properties posted by listers.
Holds location, pricing, specifications and the ordered list of remote image URLs.
"""

from sqlalchemy import String, Integer, Float, Numeric, Boolean, JSON, Enum as SQLEnum, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
from decimal import Decimal
import enum
import uuid
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.saved_property import SavedProperty
    from app.models.viewing import Viewing


class PropertyType(str, enum.Enum):
    """Kind of dwelling."""
    APARTMENT = "apartment"
    HOUSE = "house"
    MAISONETTE = "maisonette"
    BUNGALOW = "bungalow"
    OTHER = "other"


class Listing(Base):
    """
    A property listing owned by the lister who posted it.
    Listings are soft deleted by flipping is_active; rows are never removed by the API.
    """

    __tablename__ = "listings"

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Listing title"
    )

    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Street address"
    )

    city: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="City"
    )

    county: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="County"
    )

    zip_code: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Postal code"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        index=True,
        comment="Asking price or monthly rent"
    )

    bedrooms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Number of bedrooms"
    )

    bathrooms: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Number of bathrooms, halves allowed"
    )

    square_feet: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Floor area in square feet"
    )

    property_type: Mapped[PropertyType] = mapped_column(
        SQLEnum(PropertyType, name="property_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
        comment="Kind of dwelling"
    )

    listing_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="External listing URL"
    )

    image_urls: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered remote image URLs"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="False once the lister deletes the listing"
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Lister who posted the listing"
    )

    lister: Mapped["User"] = relationship(
        "User",
        back_populates="listings",
        lazy="selectin"
    )

    saved_properties: Mapped[List["SavedProperty"]] = relationship(
        "SavedProperty",
        back_populates="listing",
        passive_deletes=True,
        lazy="raise"
    )

    viewings: Mapped[List["Viewing"]] = relationship(
        "Viewing",
        back_populates="listing",
        passive_deletes=True,
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title={self.title[:30]}, price={self.price})>"

    @property
    def price_per_sqft(self) -> Optional[float]:
        """Price divided by floor area, only when the area is known and positive."""
        if self.square_feet and self.square_feet > 0:
            return round(float(self.price) / self.square_feet, 2)
        return None

    def to_dict(self, include_lister: bool = False, include_price_per_sqft: bool = False) -> dict:
        """
        Convert listing to dictionary.

        Args:
            include_lister: Whether to include the lister's public profile
            include_price_per_sqft: Add ``price_per_sqft``; the key is left out when the area is unknown

        Returns:
            Dictionary representation of listing
        """
        result = {
            "id": str(self.id),
            "title": self.title,
            "address": self.address,
            "city": self.city,
            "county": self.county,
            "zip_code": self.zip_code,
            "price": float(self.price),
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "square_feet": self.square_feet,
            "property_type": self.property_type.value,
            "listing_url": self.listing_url,
            "image_urls": list(self.image_urls or []),
            "is_active": self.is_active,
            "user_id": str(self.user_id),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_lister and self.lister:
            result["lister"] = {
                "id": str(self.lister.id),
                "name": self.lister.name,
                "email": self.lister.email,
                "profile_picture": self.lister.profile_picture,
            }

        if include_price_per_sqft and self.price_per_sqft is not None:
            result["price_per_sqft"] = self.price_per_sqft

        return result


# Public search: active listings filtered by location and sorted by price or recency
location_active_index = Index(
    "idx_listings_city_county_active",
    Listing.city,
    Listing.county,
    Listing.is_active
)

price_active_index = Index(
    "idx_listings_price_active",
    Listing.price,
    Listing.is_active
)

# "My listings" page
owner_active_index = Index(
    "idx_listings_owner_active",
    Listing.user_id,
    Listing.is_active,
    Listing.created_at.desc()
)
