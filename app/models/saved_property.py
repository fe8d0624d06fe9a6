"""
Saved property model: a hunter's private tracking record for one listing.
"""

from sqlalchemy import Text, JSON, Enum as SQLEnum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
import enum
import uuid
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.listing import Listing
    from app.models.viewing import Viewing
    from app.models.tag import SavedPropertyTag


class PropertyStatus(str, enum.Enum):
    """Where the hunter is with a saved listing."""
    SAVED = "saved"
    INTERESTED = "interested"
    VIEWED = "viewed"
    APPLIED = "applied"
    REJECTED = "rejected"


class SavedProperty(Base):
    """
    Tracking record for a listing saved by a hunter.
    At most one per (user, listing).
    """

    __tablename__ = "saved_properties"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="uq_saved_properties_user_listing"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Hunter who saved the listing"
    )

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Saved listing"
    )

    status: Mapped[PropertyStatus] = mapped_column(
        SQLEnum(PropertyStatus, name="property_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PropertyStatus.SAVED,
        index=True,
        comment="Tracking status"
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pros: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    cons: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    user: Mapped["User"] = relationship("User", back_populates="saved_properties", lazy="raise")

    listing: Mapped["Listing"] = relationship(
        "Listing",
        back_populates="saved_properties",
        lazy="selectin"
    )

    viewings: Mapped[List["Viewing"]] = relationship(
        "Viewing",
        back_populates="saved_property",
        passive_deletes=True,
        lazy="raise",
        order_by="Viewing.scheduled_date.asc()"
    )

    tag_links: Mapped[List["SavedPropertyTag"]] = relationship(
        "SavedPropertyTag",
        back_populates="saved_property",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<SavedProperty(id={self.id}, listing_id={self.listing_id}, status={self.status})>"

    @property
    def tags(self) -> list:
        """Tags attached through the join table, sorted by name."""
        return sorted((link.tag for link in self.tag_links if link.tag is not None), key=lambda t: t.name)

    def to_dict(self, include_listing: bool = True, include_tags: bool = True) -> dict:
        result = {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "listing_id": str(self.listing_id),
            "status": self.status.value,
            "notes": self.notes,
            "pros": list(self.pros or []),
            "cons": list(self.cons or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_listing and self.listing is not None:
            result["listing"] = self.listing.to_dict()
        if include_tags:
            result["tags"] = [tag.to_dict() for tag in self.tags]
        return result
