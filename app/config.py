"""
Configuration management using Pydantic settings.
Handles database URL, JWT and cookie settings, upload limits and image storage.
"""

from pydantic import validator
from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from the environment and an optional .env file."""

    # Application configuration
    app_name: str = "Apartment Hunter API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/apartment_hunter"

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7

    # Auth cookie
    auth_cookie_name: str = "jwt"
    auth_cookie_secure: Optional[bool] = None

    # API configuration
    api_v1_prefix: str = "/api"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    frontend_url: str = "http://localhost:3000"

    # Pagination defaults
    default_page_size: int = 20
    my_listings_page_size: int = 10
    saved_properties_page_size: int = 10
    max_page_size: int = 100

    # Upload limits
    max_file_size: int = 5 * 1024 * 1024  # 5MB
    max_files_per_request: int = 10
    max_images_per_listing: int = 50

    # Image storage
    storage_backend: str = "local"
    upload_dir: str = "./uploads"
    public_base_url: str = "http://localhost:8000/uploads"
    image_folder: str = "apartment-hunter/properties"
    s3_bucket_name: Optional[str] = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    s3_public_base_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    cleanup_max_attempts: int = 5

    # Google OAuth
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: str = "http://localhost:8000/api/auth/google/callback"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @validator("database_url", pre=True)
    def validate_database_url(cls, v):
        """Ensure an async driver is used."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v and v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @validator("jwt_secret_key", pre=True)
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @validator("environment")
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @validator("storage_backend")
    def validate_storage_backend(cls, v):
        """Validate image storage backend."""
        allowed = ["local", "s3"]
        if v not in allowed:
            raise ValueError(f"Storage backend must be one of: {allowed}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies default to on in production only."""
        if self.auth_cookie_secure is not None:
            return self.auth_cookie_secure
        return self.is_production

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
