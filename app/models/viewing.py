"""
Viewing model: an appointment to see a listing.
"""

from sqlalchemy import Integer, SmallInteger, Boolean, Text, DateTime, Time, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
from datetime import datetime, time
import uuid
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.listing import Listing
    from app.models.saved_property import SavedProperty


class Viewing(Base):
    """
    A viewing scheduled by a hunter for one listing.
    Optionally linked to the hunter's saved property for the same listing.
    """

    __tablename__ = "viewings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Hunter who scheduled the viewing"
    )

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Listing being viewed"
    )

    saved_property_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("saved_properties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Saved property linked at scheduling time"
    )

    scheduled_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Date (and optionally time) of the viewing"
    )

    scheduled_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
        comment="Time of day, when given separately"
    )

    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    location_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    attended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    viewing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    rating: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="viewings", lazy="raise")

    listing: Mapped["Listing"] = relationship("Listing", back_populates="viewings", lazy="selectin")

    saved_property: Mapped[Optional["SavedProperty"]] = relationship(
        "SavedProperty",
        back_populates="viewings",
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Viewing(id={self.id}, listing_id={self.listing_id}, scheduled_date={self.scheduled_date})>"

    def to_dict(self, include_listing: bool = False) -> dict:
        result = {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "listing_id": str(self.listing_id),
            "saved_property_id": str(self.saved_property_id) if self.saved_property_id else None,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time.isoformat() if self.scheduled_time else None,
            "duration_minutes": self.duration_minutes,
            "location_notes": self.location_notes,
            "attended": self.attended,
            "viewing_notes": self.viewing_notes,
            "rating": self.rating,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_listing and self.listing is not None:
            result["listing"] = {
                "id": str(self.listing.id),
                "title": self.listing.title,
                "address": self.listing.address,
                "city": self.listing.city,
                "image_urls": list(self.listing.image_urls or []),
            }
        return result


upcoming_index = Index(
    "idx_viewings_user_upcoming",
    Viewing.user_id,
    Viewing.attended,
    Viewing.scheduled_date
)
