"""
Test configuration and fixtures for the Apartment Hunter API.
Provides database fixtures, an in-memory image storage, test data factories, and common test utilities.
"""

import os
import tempfile

# Settings are read once at import time, so the test environment is set up first.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "apartment-hunter-test-uploads"))

import io
import uuid
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db, enable_sqlite_foreign_keys
from app.models.user import User
from app.models.listing import Listing, PropertyType
from app.repositories.user import UserRepository
from app.repositories.listing import ListingRepository
from app.services.auth import AuthService
from app.services.comparison import ComparisonService
from app.services.dashboard import DashboardService
from app.services.image_reconciler import ImageCleanupQueue, get_cleanup_queue
from app.services.listing import ListingService
from app.services.ownership import OwnershipGuard
from app.services.saved_property import SavedPropertyService
from app.services.tag import TagService
from app.services.viewing import ViewingService
from app.utils.auth import create_access_token
from app.utils.exceptions import StorageError
from app.utils.file_utils import ImageUpload
from app.utils.storage import ImageStorage, StoredImage, build_public_id, get_image_storage


# Test database configuration
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

FAKE_STORAGE_BASE_URL = "https://images.test/media"


@pytest.fixture
async def test_engine():
    """Fresh schema per test; StaticPool keeps the in-memory database alive across sessions."""
    is_sqlite = TEST_DATABASE_URL.startswith("sqlite")
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False} if is_sqlite else {}
    )
    if is_sqlite:
        enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


class FakeImageStorage(ImageStorage):
    """
    In-memory storage with failure injection.

    ``fail_uploads_after`` lets that many uploads succeed and fails the rest;
    ``fail_deletes`` makes every delete raise.
    """

    def __init__(self):
        super().__init__(FAKE_STORAGE_BASE_URL)
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.upload_calls = 0
        self.fail_uploads_after: Optional[int] = None
        self.fail_deletes = False

    async def upload(self, upload: ImageUpload, folder: str) -> StoredImage:
        self.upload_calls += 1
        if self.fail_uploads_after is not None and self.upload_calls > self.fail_uploads_after:
            raise StorageError(f"Failed to store image '{upload.filename}'")
        public_id = build_public_id(folder, upload)
        self.objects[public_id] = upload.content
        return StoredImage(public_id=public_id, secure_url=self.url_for(public_id))

    async def delete(self, public_id: str) -> bool:
        if self.fail_deletes:
            raise StorageError(f"Failed to delete image '{public_id}'")
        self.objects.pop(public_id, None)
        self.deleted.append(public_id)
        return True

    def seed(self, folder: str = "apartment-hunter/properties/seed", name: str = "photo.jpg") -> str:
        """Store a placeholder object and return its URL."""
        public_id = f"{folder}/{uuid.uuid4().hex}-{name}"
        self.objects[public_id] = b"seed"
        return self.url_for(public_id)


@pytest.fixture
def fake_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture
def cleanup_queue() -> ImageCleanupQueue:
    return ImageCleanupQueue(max_attempts=3)


def make_image_bytes(fmt: str = "PNG", size=(4, 4)) -> bytes:
    """A real, decodable image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


def make_upload(filename: str = "photo.png") -> ImageUpload:
    return ImageUpload(filename=filename, content_type="image/png", content=make_image_bytes())


def image_files(count: int = 1) -> list:
    """Multipart ``images`` parts for httpx."""
    return [("images", (f"photo{i}.png", make_image_bytes(), "image/png")) for i in range(count)]


@pytest.fixture
async def async_client(session_factory, fake_storage, cleanup_queue) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; every request gets its own session, like production."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_storage] = lambda: fake_storage
    app.dependency_overrides[get_cleanup_queue] = lambda: cleanup_queue

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# Repository fixtures
@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def listing_repository(db_session: AsyncSession) -> ListingRepository:
    return ListingRepository(db_session)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession) -> AuthService:
    return AuthService(db_session)


@pytest.fixture
def listing_service(db_session: AsyncSession, fake_storage, cleanup_queue) -> ListingService:
    return ListingService(db_session, fake_storage, cleanup_queue)


@pytest.fixture
def saved_property_service(db_session: AsyncSession) -> SavedPropertyService:
    return SavedPropertyService(db_session)


@pytest.fixture
def viewing_service(db_session: AsyncSession) -> ViewingService:
    return ViewingService(db_session)


@pytest.fixture
def comparison_service(db_session: AsyncSession) -> ComparisonService:
    return ComparisonService(db_session)


@pytest.fixture
def tag_service(db_session: AsyncSession) -> TagService:
    return TagService(db_session)


@pytest.fixture
def dashboard_service(db_session: AsyncSession) -> DashboardService:
    return DashboardService(db_session)


@pytest.fixture
def ownership_guard(db_session: AsyncSession) -> OwnershipGuard:
    return OwnershipGuard(db_session)


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    DEFAULT_PASSWORD = "testpassword123"

    @staticmethod
    async def create_user(
        user_repo: UserRepository,
        email: str = None,
        password: str = DEFAULT_PASSWORD,
        name: str = "Test User"
    ) -> User:
        """
        Create a local user. The instance is detached from the session, like the
        request user, so it stays readable after a service rolls back.
        """
        user = await user_repo.create_user({
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "name": name,
        })
        user_repo.db.expunge(user)
        return user


class ListingFactory:
    """Factory for creating listings straight through the repository."""

    @staticmethod
    def create_listing_data(
        user_id: uuid.UUID,
        title: str = "Test Listing",
        city: str = "Dublin",
        county: str = "Dublin",
        price: Decimal = Decimal("1500.00"),
        bedrooms: int = 2,
        bathrooms: float = 1.0,
        square_feet: Optional[int] = 750,
        property_type: PropertyType = PropertyType.APARTMENT,
        image_urls: Optional[List[str]] = None,
        is_active: bool = True
    ) -> dict:
        return {
            "user_id": user_id,
            "title": title,
            "address": "1 Test Street",
            "city": city,
            "county": county,
            "price": price,
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            "square_feet": square_feet,
            "property_type": property_type,
            "image_urls": image_urls if image_urls is not None else [f"{FAKE_STORAGE_BASE_URL}/seed/{uuid.uuid4().hex}.png"],
            "is_active": is_active,
        }

    @staticmethod
    async def create_listing(listing_repo: ListingRepository, user_id: uuid.UUID, **overrides) -> Listing:
        return await listing_repo.create(ListingFactory.create_listing_data(user_id, **overrides))


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user_id=user.id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


# Common test fixtures
@pytest.fixture
async def lister(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, email="lister@test.com", name="Lara Lister")


@pytest.fixture
async def hunter(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, email="hunter@test.com", name="Harry Hunter")


@pytest.fixture
async def other_user(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(user_repository, email="other@test.com", name="Olive Other")


@pytest.fixture
async def listing(listing_repository: ListingRepository, lister: User, fake_storage: FakeImageStorage) -> Listing:
    """Active listing with two images known to the fake storage."""
    return await ListingFactory.create_listing(
        listing_repository,
        lister.id,
        title="Sunny two-bed",
        image_urls=[fake_storage.seed(name="a.jpg"), fake_storage.seed(name="b.jpg")]
    )


@pytest.fixture
async def inactive_listing(listing_repository: ListingRepository, lister: User) -> Listing:
    return await ListingFactory.create_listing(
        listing_repository,
        lister.id,
        title="Withdrawn cottage",
        property_type=PropertyType.HOUSE,
        is_active=False
    )
