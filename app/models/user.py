"""
User model with local and Google authentication.
Any user can act both as a hunter (saving listings) and a lister (posting listings).
"""

from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
from email_validator import validate_email, EmailNotValidError
import enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.listing import Listing
    from app.models.saved_property import SavedProperty
    from app.models.viewing import Viewing
    from app.models.comparison import Comparison
    from app.models.tag import Tag


class AuthProvider(str, enum.Enum):
    """How the account authenticates."""
    LOCAL = "local"
    GOOGLE = "google"


class User(Base):
    """
    User account.
    Local accounts carry a bcrypt password hash; Google accounts carry a google_id.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - unique, stored lower-cased"
    )

    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Bcrypt hashed password, null for Google-only accounts"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name"
    )

    google_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        comment="Google account subject id"
    )

    profile_picture: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Profile picture URL"
    )

    auth_provider: Mapped[AuthProvider] = mapped_column(
        SQLEnum(AuthProvider, name="auth_provider", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AuthProvider.LOCAL,
        comment="Authentication provider"
    )

    listings: Mapped[List["Listing"]] = relationship(
        "Listing",
        back_populates="lister",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    saved_properties: Mapped[List["SavedProperty"]] = relationship(
        "SavedProperty",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    viewings: Mapped[List["Viewing"]] = relationship(
        "Viewing",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    comparisons: Mapped[List["Comparison"]] = relationship(
        "Comparison",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, provider={self.auth_provider})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """
        Validate email format using email-validator.

        Args:
            email: Email address to validate

        Returns:
            Normalized, lower-cased email address

        Raises:
            ValueError: If email format is invalid
        """
        try:
            valid_email = validate_email(email, check_deliverability=False)
            return valid_email.normalized.lower()
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email format: {str(e)}")

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    def to_dict(self) -> dict:
        """
        Convert user to dictionary (excluding the password hash).

        Returns:
            Dictionary representation of user
        """
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "profile_picture": self.profile_picture,
            "auth_provider": self.auth_provider.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
