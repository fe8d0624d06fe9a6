"""
Comparison model: a named, ordered set of listing ids.
"""

from sqlalchemy import String, JSON, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
import uuid
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User


class Comparison(Base):
    """
    Side-by-side comparison of listings.
    Membership is stored by id, so listings that later go inactive stay in the list.
    """

    __tablename__ = "comparisons"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the comparison"
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    listing_ids: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered listing ids as strings"
    )

    user: Mapped["User"] = relationship("User", back_populates="comparisons", lazy="raise")

    def __repr__(self) -> str:
        return f"<Comparison(id={self.id}, name={self.name}, listings={len(self.listing_ids or [])})>"

    @property
    def listing_uuids(self) -> List[uuid.UUID]:
        return [uuid.UUID(str(value)) for value in self.listing_ids or []]

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "name": self.name,
            "listing_ids": list(self.listing_ids or []),
            "listing_count": len(self.listing_ids or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
