"""
Authentication service for registration, login, Google sign-in and token validation.
"""

from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.user import UserRepository
from app.models.user import User, AuthProvider
from app.schemas.auth import RegisterRequest
from app.utils.auth import create_access_token, verify_token, verify_password
from app.utils.exceptions import (
    APIException,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    ConflictError,
    ValidationError,
    InternalServerError
)
from app.utils.google_oauth import GoogleOAuthClient
from jose import ExpiredSignatureError, JWTError
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for local and Google accounts.
    Issues JWTs that are accepted from the Authorization header or the auth cookie.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    def create_token(self, user: User) -> str:
        return create_access_token(user_id=user.id, email=user.email)

    async def register(self, data: RegisterRequest) -> Tuple[User, str]:
        """
        Register a local account.

        Args:
            data: Validated registration data

        Returns:
            Tuple of (user, access_token)

        Raises:
            ConflictError: If the email is already registered
            ValidationError: If email or password fail validation
        """
        try:
            existing = await self.user_repo.get_by_email(data.email)
            if existing:
                raise ConflictError("User with this email already exists.")

            user = await self.user_repo.create_user(data.model_dump())
            logger.info(f"New local user registered: {user.id}")
            return user, self.create_token(user)

        except ConflictError:
            raise
        except IntegrityError:
            raise ConflictError("User with this email already exists.")
        except ValueError as e:
            raise ValidationError(str(e))
        except Exception as e:
            logger.error(f"Failed to register {data.email}: {e}")
            raise InternalServerError("Failed to register user")

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Check local credentials.

        Args:
            email: User's email address
            password: Plain text password

        Returns:
            Authenticated User object

        Raises:
            InvalidCredentialsError: If credentials are invalid or the account has no password
        """
        try:
            if not email or not email.strip():
                raise ValidationError("Email is required")

            if not password:
                raise ValidationError("Password is required")

            user = await self.user_repo.get_by_email(email)

            if not user:
                logger.warning(f"Failed authentication attempt for email: {email}")
                raise InvalidCredentialsError()

            if not user.has_password:
                raise InvalidCredentialsError("This account uses Google sign-in. Please log in with Google.")

            if not verify_password(password, user.password_hash):
                logger.warning(f"Failed authentication attempt for email: {email}")
                raise InvalidCredentialsError()

            logger.info(f"User authenticated successfully: {user.email}")
            return user

        except ValidationError:
            raise
        except InvalidCredentialsError:
            raise
        except Exception as e:
            logger.error(f"Authentication error for {email}: {e}")
            raise InvalidCredentialsError()

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Authenticate user and create a token.

        Returns:
            Tuple of (user, access_token)
        """
        user = await self.authenticate_user(email, password)
        return user, self.create_token(user)

    async def get_current_user(self, token: str) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            TokenExpiredError: If token is expired
            InvalidTokenError: If token is invalid or the user no longer exists
        """
        try:
            token_payload = verify_token(token)
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            logger.debug(f"Rejected token: {e}")
            raise InvalidTokenError()

        user = await self.user_repo.get_by_id(token_payload.user_uuid)
        if not user:
            raise InvalidTokenError("User for this token no longer exists")
        return user

    async def find_or_create_google_user(
        self,
        google_id: str,
        email: str,
        name: str,
        profile_picture: Optional[str] = None
    ) -> User:
        """
        Sign in with a Google identity.

        Looks the user up by Google id first, then links an existing account with the
        same email (keeping its password), and otherwise creates a new Google account.
        """
        try:
            user = await self.user_repo.get_by_google_id(google_id)
            if user:
                user = await self.user_repo.update(user, {
                    "name": name or user.name,
                    "profile_picture": profile_picture or user.profile_picture,
                    "auth_provider": AuthProvider.GOOGLE,
                })
                logger.info(f"Existing Google user logged in: {user.id}")
                return user

            user = await self.user_repo.get_by_email(email)
            if user:
                user = await self.user_repo.update(user, {
                    "google_id": google_id,
                    "profile_picture": user.profile_picture or profile_picture,
                    "auth_provider": AuthProvider.GOOGLE,
                })
                logger.info(f"Local user linked to Google: {user.id}")
                return user

            user = await self.user_repo.create_google_user(google_id, email, name, profile_picture)
            logger.info(f"New Google user created: {user.id}")
            return user

        except APIException:
            raise
        except ValueError as e:
            raise ValidationError(str(e))
        except Exception as e:
            logger.error(f"Google sign-in failed for {email}: {e}")
            raise InternalServerError("Failed to sign in with Google")

    async def google_login(self, code: str, oauth_client: GoogleOAuthClient) -> Tuple[User, str]:
        """
        Complete the Google callback: exchange the code, then find or create the user.

        Returns:
            Tuple of (user, access_token)
        """
        profile = await oauth_client.fetch_profile(code)
        user = await self.find_or_create_google_user(
            profile.google_id,
            profile.email,
            profile.name,
            profile.picture
        )
        return user, self.create_token(user)
