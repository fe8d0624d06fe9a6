"""
User repository for account lookup and creation.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.repositories.base import BaseRepository
from app.models.user import User, AuthProvider
from app.utils.auth import hash_password
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for user accounts (local and Google)."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Create a local account with a hashed password.

        Args:
            user_data: Must include email, password and name

        Returns:
            Created user instance

        Raises:
            ValueError: If email or password validation fails
        """
        email = User.validate_email_format(user_data["email"])
        create_data = {
            "email": email,
            "name": user_data["name"].strip(),
            "password_hash": hash_password(user_data["password"]),
            "auth_provider": AuthProvider.LOCAL,
        }

        created_user = await self.create(create_data)
        logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
        return created_user

    async def create_google_user(self, google_id: str, email: str, name: str,
                                 profile_picture: Optional[str] = None) -> User:
        created_user = await self.create({
            "email": User.validate_email_format(email),
            "name": name,
            "google_id": google_id,
            "profile_picture": profile_picture,
            "auth_provider": AuthProvider.GOOGLE,
        })
        logger.info(f"Created Google user: {created_user.email} (ID: {created_user.id})")
        return created_user

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address (case-insensitive).

        Args:
            email: Email address to search for

        Returns:
            User instance if found, None otherwise
        """
        try:
            normalized_email = email.lower().strip()
            result = await self.db.execute(select(User).where(User.email == normalized_email))
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def get_by_google_id(self, google_id: str) -> Optional[User]:
        return await self.get_by_field("google_id", google_id)
