"""
Pydantic schemas for authentication requests and responses.
Handles registration, login and the public user profile.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from app.models.user import AuthProvider
import uuid


class RegisterRequest(BaseModel):
    """Local account registration."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["hunter@example.com"]
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        examples=["securepassword123"]
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Display name",
        examples=["Jane Doe"]
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["hunter@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="User's password"
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()


class UserResponse(BaseModel):
    """Public user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str
    profile_picture: Optional[str] = None
    auth_provider: AuthProvider
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    """Returned by register and login; the token is also set as the auth cookie."""

    user: UserResponse
    token: str = Field(..., description="JWT access token")
