"""
Authentication utilities for JWT token management, password hashing and the auth cookie.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Response
from jose import JWTError, ExpiredSignatureError, jwt
from passlib.context import CryptContext
from app.config import settings
import uuid


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenPayload:
    """JWT token payload structure."""

    def __init__(self, user_id: str, email: str, exp: datetime):
        self.user_id = user_id
        self.email = email
        self.exp = exp

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPayload":
        """Create TokenPayload from dictionary."""
        return cls(
            user_id=data.get("id") or data["sub"],
            email=data["email"],
            exp=datetime.fromtimestamp(data["exp"], tz=timezone.utc)
        )

    @property
    def user_uuid(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed JWT carrying the user's id and email.

    Args:
        user_id: User's UUID
        email: User's email address
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.jwt_expire_days))

    to_encode = {
        "sub": str(user_id),
        "id": str(user_id),
        "email": email,
        "exp": expire,
        "iat": now,
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def verify_token(token: str) -> TokenPayload:
    """
    Verify and decode JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded TokenPayload

    Raises:
        ExpiredSignatureError: If the token has expired
        JWTError: If token is invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError:
        raise
    except JWTError:
        raise
    except Exception as e:
        raise JWTError(f"Token validation error: {str(e)}")

    if not (payload.get("id") or payload.get("sub")) or not payload.get("email"):
        raise JWTError("Invalid token payload")

    try:
        token_payload = TokenPayload.from_dict(payload)
        uuid.UUID(token_payload.user_id)
    except (KeyError, ValueError) as e:
        raise JWTError(f"Invalid token payload: {str(e)}")

    return token_payload


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Raises:
        ValueError: If password is too short
    """
    if not password or len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")

    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a plain password against a stored hash; accounts without a hash never match."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def set_auth_cookie(response: Response, token: str) -> None:
    """Attach the JWT as an httpOnly, SameSite=strict cookie."""
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.auth_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
