"""
Tag model and the join table linking tags to saved properties.
"""

from sqlalchemy import String, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
import uuid
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.saved_property import SavedProperty


class Tag(Base):
    """User-scoped label. Names are unique per user."""

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tags_user_name"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the tag"
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True, comment="Hex colour, e.g. #3b82f6")

    user: Mapped["User"] = relationship("User", back_populates="tags", lazy="raise")

    saved_property_links: Mapped[List["SavedPropertyTag"]] = relationship(
        "SavedPropertyTag",
        back_populates="tag",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "color": self.color,
        }


class SavedPropertyTag(Base):
    """Association between a saved property and a tag."""

    __tablename__ = "saved_property_tags"
    __table_args__ = (
        UniqueConstraint("saved_property_id", "tag_id", name="uq_saved_property_tags_pair"),
    )

    saved_property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("saved_properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    saved_property: Mapped["SavedProperty"] = relationship(
        "SavedProperty",
        back_populates="tag_links",
        lazy="raise"
    )

    tag: Mapped["Tag"] = relationship("Tag", back_populates="saved_property_links", lazy="selectin")
