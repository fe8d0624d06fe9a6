"""
Tests for service classes.
Covers business rules, ownership checks and the interactions between services.
"""

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.exc import InvalidRequestError

from app.models.listing import Listing, PropertyType
from app.models.saved_property import PropertyStatus
from app.models.user import AuthProvider, User
from app.repositories.listing import ListingRepository
from app.repositories.saved_property import SavedPropertyRepository
from app.repositories.user import UserRepository
from app.repositories.viewing import ViewingRepository
from app.schemas.auth import RegisterRequest
from app.schemas.comparison import ComparisonCreate, ComparisonUpdate
from app.schemas.listing import ListingCreate
from app.schemas.saved_property import SavedPropertyUpdate
from app.schemas.tag import TagCreate, TagUpdate
from app.schemas.viewing import ViewingCreate, ViewingUpdate
from app.services.auth import AuthService
from app.services.comparison import ComparisonService
from app.services.dashboard import DashboardService
from app.services.listing import ListingService
from app.services.saved_property import DUPLICATE_SAVE_MESSAGE, SavedPropertyService
from app.services.tag import DUPLICATE_LINK_MESSAGE, DUPLICATE_TAG_MESSAGE, TagService
from app.services.viewing import ViewingService
from app.utils.auth import create_access_token
from app.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    StorageError,
    TokenExpiredError,
    ValidationError,
)
from app.utils.query_engine import ListingFilters
from tests.conftest import FakeImageStorage, ListingFactory, UserFactory, make_upload


def in_days(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def listing_create(**overrides) -> ListingCreate:
    data = {
        "title": "Bright flat near the park",
        "address": "12 Park Road",
        "city": "Galway",
        "county": "Galway",
        "price": Decimal("1800.00"),
        "bedrooms": 2,
        "bathrooms": 1.5,
        "square_feet": 900,
        "property_type": PropertyType.APARTMENT,
    }
    data.update(overrides)
    return ListingCreate(**data)


class TestAuthService:
    """Test AuthService functionality."""

    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, auth_service: AuthService):
        user, token = await auth_service.register(
            RegisterRequest(email="New.Person@Example.com", password="longenough1", name=" New Person ")
        )

        assert user.email == "new.person@example.com"
        assert user.name == "New Person"
        assert user.auth_provider == AuthProvider.LOCAL
        assert user.password_hash != "longenough1"
        assert token

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, auth_service: AuthService, hunter: User):
        """Registering an existing email is a conflict."""
        with pytest.raises(ConflictError):
            await auth_service.register(RegisterRequest(email=hunter.email, password="longenough1", name="Again"))

    @pytest.mark.asyncio
    async def test_login_success(self, auth_service: AuthService, hunter: User):
        user, token = await auth_service.login(hunter.email, UserFactory.DEFAULT_PASSWORD)
        assert user.id == hunter.id
        assert (await auth_service.get_current_user(token)).id == hunter.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, auth_service: AuthService, hunter: User):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(hunter.email, "wrongpassword")

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, auth_service: AuthService):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("nobody@example.com", "whatever123")

    @pytest.mark.asyncio
    async def test_google_only_account_cannot_use_password(self, auth_service: AuthService, user_repository: UserRepository):
        """Accounts created through Google have no password."""
        await user_repository.create_google_user("g-123", "gonly@example.com", "Google Only")

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await auth_service.login("gonly@example.com", "anything123")
        assert "Google" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_expired_token(self, auth_service: AuthService, hunter: User):
        token = create_access_token(hunter.id, hunter.email, expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenExpiredError):
            await auth_service.get_current_user(token)

    @pytest.mark.asyncio
    async def test_malformed_token(self, auth_service: AuthService):
        with pytest.raises(InvalidTokenError):
            await auth_service.get_current_user("not-a-jwt")

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, auth_service: AuthService):
        token = create_access_token(uuid.uuid4(), "ghost@example.com")
        with pytest.raises(InvalidTokenError):
            await auth_service.get_current_user(token)

    @pytest.mark.asyncio
    async def test_google_sign_in_creates_account(self, auth_service: AuthService):
        user = await auth_service.find_or_create_google_user("g-new", "fresh@example.com", "Fresh", "https://pics.test/f.png")

        assert user.google_id == "g-new"
        assert user.auth_provider == AuthProvider.GOOGLE
        assert not user.has_password

    @pytest.mark.asyncio
    async def test_google_sign_in_links_local_account(self, auth_service: AuthService, hunter: User):
        """A local account with the same email is linked and keeps its password."""
        hunter_id = hunter.id
        user = await auth_service.find_or_create_google_user("g-hunter", hunter.email, "Harry G")

        assert user.id == hunter_id
        assert user.google_id == "g-hunter"
        assert user.has_password

        again = await auth_service.find_or_create_google_user("g-hunter", hunter.email, "Harry G")
        assert again.id == hunter_id


class TestListingService:
    """Test ListingService functionality."""

    @pytest.mark.asyncio
    async def test_create_requires_images(self, listing_service: ListingService, lister: User):
        with pytest.raises(ValidationError, match="At least one image"):
            await listing_service.create_listing(listing_create(), [], lister)

    @pytest.mark.asyncio
    async def test_create_uploads_images_in_order(
        self, listing_service: ListingService, lister: User, fake_storage: FakeImageStorage
    ):
        listing = await listing_service.create_listing(
            listing_create(), [make_upload("front.png"), make_upload("kitchen.jpg")], lister
        )

        assert listing.user_id == lister.id
        assert listing.is_active is True
        assert len(listing.image_urls) == 2
        assert listing.image_urls[0].endswith(".png")
        assert listing.image_urls[1].endswith(".jpg")
        assert all(f"/{listing.id}/" in url for url in listing.image_urls)
        assert len(fake_storage.objects) == 2

    @pytest.mark.asyncio
    async def test_failed_upload_leaves_nothing_behind(
        self,
        listing_service: ListingService,
        listing_repository: ListingRepository,
        lister: User,
        fake_storage: FakeImageStorage
    ):
        """A partial upload failure removes the row and the images that made it."""
        fake_storage.fail_uploads_after = 1

        with pytest.raises(StorageError):
            await listing_service.create_listing(listing_create(), [make_upload(), make_upload()], lister)

        assert await listing_repository.count() == 0
        assert fake_storage.objects == {}

    @pytest.mark.asyncio
    async def test_inactive_listing_hidden_from_public(self, listing_service: ListingService, inactive_listing: Listing):
        with pytest.raises(NotFoundError):
            await listing_service.get_listing(inactive_listing.id)

    @pytest.mark.asyncio
    async def test_inactive_listing_visible_to_owner(
        self, listing_service: ListingService, inactive_listing: Listing, lister: User
    ):
        result = await listing_service.get_listing(inactive_listing.id, lister)
        assert result["is_active"] is False
        assert result["upcoming_viewings"] == []

    @pytest.mark.asyncio
    async def test_soft_deleted_listing_stays_visible_to_saver(
        self,
        listing_service: ListingService,
        saved_property_service: SavedPropertyService,
        listing: Listing,
        lister: User,
        hunter: User,
        other_user: User
    ):
        listing_id = listing.id
        await saved_property_service.save_listing(listing_id, hunter)
        await listing_service.delete_listing(listing_id, lister)

        result = await listing_service.get_listing(listing_id, hunter)
        assert result["is_active"] is False
        assert result["is_saved"] is True
        assert "upcoming_viewings" not in result

        with pytest.raises(NotFoundError):
            await listing_service.get_listing(listing_id, other_user)

    @pytest.mark.asyncio
    async def test_owner_sees_upcoming_viewings(
        self,
        listing_service: ListingService,
        viewing_service: ViewingService,
        listing: Listing,
        lister: User,
        hunter: User
    ):
        listing_id = listing.id
        await viewing_service.schedule_viewing(listing_id, ViewingCreate(scheduled_date=in_days(3)), hunter)
        await viewing_service.schedule_viewing(listing_id, ViewingCreate(scheduled_date=in_days(-3)), hunter)

        result = await listing_service.get_listing(listing_id, lister)
        assert len(result["upcoming_viewings"]) == 1
        assert result["lister"]["email"] == lister.email
        assert result["price_per_sqft"] == 2.0

    @pytest.mark.asyncio
    async def test_price_per_sqft_left_out_without_area(
        self, listing_service: ListingService, listing_repository: ListingRepository, lister: User
    ):
        no_area = await ListingFactory.create_listing(listing_repository, lister.id, square_feet=None)
        zero_area = await ListingFactory.create_listing(listing_repository, lister.id, square_feet=0)

        for listing_id in (no_area.id, zero_area.id):
            result = await listing_service.get_listing(listing_id)
            assert "price_per_sqft" not in result

    @pytest.mark.asyncio
    async def test_search_marks_saved_listings(
        self,
        listing_service: ListingService,
        saved_property_service: SavedPropertyService,
        listing_repository: ListingRepository,
        listing: Listing,
        lister: User,
        hunter: User
    ):
        other = await ListingFactory.create_listing(listing_repository, lister.id, title="Unsaved")
        await saved_property_service.save_listing(listing.id, hunter)

        listings, saved_ids, meta = await listing_service.search_public_listings(ListingFilters(), current_user=hunter)

        assert meta.total_count == 2
        assert listing.id in saved_ids
        assert other.id not in saved_ids

    @pytest.mark.asyncio
    async def test_search_forces_active_only(self, listing_service: ListingService, listing: Listing, inactive_listing: Listing):
        listings, _, meta = await listing_service.search_public_listings(ListingFilters(is_active=False))
        assert [item.id for item in listings] == [listing.id]
        assert meta.total_count == 1

    @pytest.mark.asyncio
    async def test_my_listings_include_inactive(
        self, listing_service: ListingService, listing: Listing, inactive_listing: Listing, lister: User
    ):
        listings, meta = await listing_service.get_my_listings(lister)
        assert meta.total_count == 2
        assert meta.limit == 10

        only_inactive, _ = await listing_service.get_my_listings(lister, is_active=False)
        assert [item.id for item in only_inactive] == [inactive_listing.id]

    @pytest.mark.asyncio
    async def test_update_reconciles_images(
        self, listing_service: ListingService, listing: Listing, lister: User, fake_storage: FakeImageStorage
    ):
        """Dropped images are deleted after the commit, new ones go at the end."""
        first, second = list(listing.image_urls)

        updated = await listing_service.update_listing(
            listing.id, {"title": "Renamed"}, [second], [make_upload("new.png")], lister
        )

        assert updated.title == "Renamed"
        assert updated.image_urls[0] == second
        assert updated.image_urls[1].endswith(".png")
        assert fake_storage.deleted == [fake_storage.public_id_from_url(first)]

    @pytest.mark.asyncio
    async def test_update_keeps_images_when_not_sent(
        self, listing_service: ListingService, listing: Listing, lister: User, fake_storage: FakeImageStorage
    ):
        images = list(listing.image_urls)
        updated = await listing_service.update_listing(listing.id, {"price": Decimal("1600")}, None, [], lister)

        assert updated.image_urls == images
        assert fake_storage.deleted == []

    @pytest.mark.asyncio
    async def test_update_cannot_remove_every_image(self, listing_service: ListingService, listing: Listing, lister: User):
        with pytest.raises(ValidationError, match="at least one image"):
            await listing_service.update_listing(listing.id, {}, [], [], lister)

    @pytest.mark.asyncio
    async def test_update_by_non_owner_forbidden(
        self, listing_service: ListingService, listing: Listing, hunter: User, fake_storage: FakeImageStorage
    ):
        with pytest.raises(ForbiddenError):
            await listing_service.update_listing(listing.id, {"title": "Mine now"}, None, [make_upload()], hunter)
        assert fake_storage.upload_calls == 0

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_images(
        self,
        listing_service: ListingService,
        listing_repository: ListingRepository,
        listing: Listing,
        lister: User,
        fake_storage: FakeImageStorage
    ):
        listing_id = listing.id
        await listing_service.delete_listing(listing_id, lister)

        stored = await listing_repository.get_by_id(listing_id, refresh=True)
        assert stored is not None
        assert stored.is_active is False
        assert len(stored.image_urls) == 2
        assert fake_storage.deleted == []

    @pytest.mark.asyncio
    async def test_add_images_appends(self, listing_service: ListingService, listing: Listing, lister: User):
        before = list(listing.image_urls)
        updated = await listing_service.add_images(listing.id, [make_upload("extra.png")], lister)

        assert updated.image_urls[:2] == before
        assert updated.image_urls[2].endswith(".png")

    @pytest.mark.asyncio
    async def test_remove_image(
        self, listing_service: ListingService, listing: Listing, lister: User, fake_storage: FakeImageStorage
    ):
        first, second = list(listing.image_urls)
        updated = await listing_service.remove_image(listing.id, first, lister)

        assert updated.image_urls == [second]
        assert fake_storage.public_id_from_url(first) in fake_storage.deleted

    @pytest.mark.asyncio
    async def test_last_image_cannot_be_removed(
        self,
        listing_service: ListingService,
        listing_repository: ListingRepository,
        lister: User,
        fake_storage: FakeImageStorage
    ):
        only = fake_storage.seed()
        single = await ListingFactory.create_listing(listing_repository, lister.id, image_urls=[only])

        with pytest.raises(ValidationError):
            await listing_service.remove_image(single.id, only, lister)
        assert fake_storage.deleted == []

    @pytest.mark.asyncio
    async def test_reorder_images(
        self, listing_service: ListingService, listing_repository: ListingRepository, listing: Listing, lister: User
    ):
        listing_id = listing.id
        reversed_urls = list(reversed(listing.image_urls))
        updated = await listing_service.reorder_images(listing_id, reversed_urls, lister)
        assert updated.image_urls == reversed_urls

        with pytest.raises(ValidationError):
            await listing_service.reorder_images(listing_id, reversed_urls[:1], lister)

        stored = await listing_repository.get_by_id(listing_id, refresh=True)
        assert stored.image_urls == reversed_urls


class TestSavedPropertyService:
    """Test SavedPropertyService functionality."""

    @pytest.mark.asyncio
    async def test_save_listing(self, saved_property_service: SavedPropertyService, listing: Listing, hunter: User):
        saved = await saved_property_service.save_listing(listing.id, hunter)

        assert saved.status == PropertyStatus.SAVED
        assert saved.pros == []
        assert saved.tags == []
        assert saved.listing.id == listing.id

    @pytest.mark.asyncio
    async def test_collections_load_only_on_request(
        self, saved_property_service: SavedPropertyService, session_factory, listing: Listing, hunter: User
    ):
        saved_id = (await saved_property_service.save_listing(listing.id, hunter)).id

        async with session_factory() as session:
            repository = SavedPropertyRepository(session)
            plain = await repository.get_by_id(saved_id)
            with pytest.raises(InvalidRequestError):
                plain.tag_links

            loaded = await repository.get_with_tags(saved_id)
            assert loaded.tags == []

    @pytest.mark.asyncio
    async def test_save_twice_rejected(
        self, saved_property_service: SavedPropertyService, db_session, listing: Listing, hunter: User
    ):
        listing_id, hunter_id = listing.id, hunter.id
        await saved_property_service.save_listing(listing_id, hunter)

        with pytest.raises(ValidationError) as exc_info:
            await saved_property_service.save_listing(listing_id, hunter)
        assert exc_info.value.detail == DUPLICATE_SAVE_MESSAGE
        assert await SavedPropertyRepository(db_session).count({"user_id": hunter_id}) == 1

    @pytest.mark.asyncio
    async def test_cannot_save_inactive_listing(
        self, saved_property_service: SavedPropertyService, inactive_listing: Listing, hunter: User
    ):
        with pytest.raises(NotFoundError):
            await saved_property_service.save_listing(inactive_listing.id, hunter)

    @pytest.mark.asyncio
    async def test_list_hides_deactivated_listings(
        self,
        saved_property_service: SavedPropertyService,
        listing_repository: ListingRepository,
        listing: Listing,
        lister: User,
        hunter: User
    ):
        second = await ListingFactory.create_listing(listing_repository, lister.id, title="Second")
        await saved_property_service.save_listing(listing.id, hunter)
        await saved_property_service.save_listing(second.id, hunter)
        await listing_repository.update(second, {"is_active": False})

        saved, meta = await saved_property_service.list_saved_properties(hunter)

        assert [item.listing_id for item in saved] == [listing.id]
        assert meta.total_count == 1

    @pytest.mark.asyncio
    async def test_list_filters_by_status(
        self, saved_property_service: SavedPropertyService, listing: Listing, hunter: User
    ):
        saved = await saved_property_service.save_listing(listing.id, hunter)
        await saved_property_service.update_saved_property(saved.id, SavedPropertyUpdate(status="viewed"), hunter)

        viewed, _ = await saved_property_service.list_saved_properties(hunter, status="VIEWED")
        interested, _ = await saved_property_service.list_saved_properties(hunter, status="interested")

        assert len(viewed) == 1
        assert interested == []

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_status(self, saved_property_service: SavedPropertyService, hunter: User):
        with pytest.raises(ValidationError):
            await saved_property_service.list_saved_properties(hunter, status="shortlisted")

    @pytest.mark.asyncio
    async def test_list_sorted_by_price(
        self,
        saved_property_service: SavedPropertyService,
        listing_repository: ListingRepository,
        listing: Listing,
        lister: User,
        hunter: User
    ):
        cheaper = await ListingFactory.create_listing(listing_repository, lister.id, price=Decimal("800"))
        await saved_property_service.save_listing(listing.id, hunter)
        await saved_property_service.save_listing(cheaper.id, hunter)

        saved, _ = await saved_property_service.list_saved_properties(hunter, sort="price_asc")
        assert [item.listing_id for item in saved] == [cheaper.id, listing.id]

    @pytest.mark.asyncio
    async def test_update_notes_pros_cons(
        self, saved_property_service: SavedPropertyService, listing: Listing, hunter: User
    ):
        saved = await saved_property_service.save_listing(listing.id, hunter)

        updated = await saved_property_service.update_saved_property(
            saved.id,
            SavedPropertyUpdate(notes="Ask about parking", pros=[" Garden ", ""], cons=None),
            hunter
        )

        assert updated.notes == "Ask about parking"
        assert updated.pros == ["Garden"]
        assert updated.cons == []
        assert updated.status == PropertyStatus.SAVED

    @pytest.mark.asyncio
    async def test_update_requires_a_field(
        self, saved_property_service: SavedPropertyService, listing: Listing, hunter: User
    ):
        saved = await saved_property_service.save_listing(listing.id, hunter)
        with pytest.raises(ValidationError):
            await saved_property_service.update_saved_property(saved.id, SavedPropertyUpdate(), hunter)

    @pytest.mark.asyncio
    async def test_foreign_saved_property_is_not_found(
        self, saved_property_service: SavedPropertyService, listing: Listing, hunter: User, other_user: User
    ):
        saved = await saved_property_service.save_listing(listing.id, hunter)

        with pytest.raises(NotFoundError):
            await saved_property_service.get_saved_property(saved.id, other_user)
        with pytest.raises(NotFoundError):
            await saved_property_service.update_saved_property(saved.id, SavedPropertyUpdate(notes="x"), other_user)

    @pytest.mark.asyncio
    async def test_delete_keeps_viewings(
        self,
        saved_property_service: SavedPropertyService,
        viewing_service: ViewingService,
        db_session,
        listing: Listing,
        hunter: User
    ):
        """Viewings survive removal of the saved property, without the link."""
        saved = await saved_property_service.save_listing(listing.id, hunter)
        saved_id = saved.id
        viewing = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(2)), hunter)
        viewing_id = viewing.id
        assert viewing.saved_property_id == saved_id

        await saved_property_service.delete_saved_property(saved_id, hunter)

        assert await SavedPropertyRepository(db_session).get_by_id(saved_id) is None
        kept = await ViewingRepository(db_session).get_by_id(viewing_id, refresh=True)
        assert kept is not None
        assert kept.saved_property_id is None

    @pytest.mark.asyncio
    async def test_detail_includes_viewings(
        self,
        saved_property_service: SavedPropertyService,
        viewing_service: ViewingService,
        listing: Listing,
        hunter: User
    ):
        saved = await saved_property_service.save_listing(listing.id, hunter)
        await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(5)), hunter)
        await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)

        detail = await saved_property_service.get_saved_property(saved.id, hunter)

        assert len(detail.viewings) == 2
        assert detail.viewings[0].scheduled_date < detail.viewings[1].scheduled_date


class TestViewingService:
    """Test ViewingService functionality."""

    @pytest.mark.asyncio
    async def test_schedule_unsaved_listing(self, viewing_service: ViewingService, listing: Listing, hunter: User):
        viewing = await viewing_service.schedule_viewing(
            listing.id,
            ViewingCreate(scheduled_date=in_days(1), scheduled_time="14:30", location_notes="Ring flat 2"),
            hunter
        )

        assert viewing.saved_property_id is None
        assert viewing.attended is False
        assert viewing.duration_minutes == 30
        assert viewing.scheduled_time.hour == 14

    @pytest.mark.asyncio
    async def test_cannot_schedule_inactive_listing(
        self, viewing_service: ViewingService, inactive_listing: Listing, hunter: User
    ):
        with pytest.raises(NotFoundError):
            await viewing_service.schedule_viewing(inactive_listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)

    @pytest.mark.asyncio
    async def test_upcoming_excludes_past_and_attended(
        self, viewing_service: ViewingService, listing: Listing, hunter: User
    ):
        await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(-2)), hunter)
        later = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(4)), hunter)
        soon = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)
        done = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(2)), hunter)
        await viewing_service.update_viewing(done.id, ViewingUpdate(attended=True, rating=4), hunter)

        upcoming = await viewing_service.get_upcoming_viewings(hunter)

        assert [v.id for v in upcoming] == [soon.id, later.id]

    @pytest.mark.asyncio
    async def test_viewing_minutes_ago_is_not_upcoming(
        self, viewing_service: ViewingService, listing: Listing, hunter: User
    ):
        just_missed = await viewing_service.schedule_viewing(
            listing.id, ViewingCreate(scheduled_date=datetime.now(timezone.utc) - timedelta(minutes=5)), hunter
        )
        later_today = await viewing_service.schedule_viewing(
            listing.id, ViewingCreate(scheduled_date=datetime.now(timezone.utc) + timedelta(minutes=30)), hunter
        )

        upcoming = await viewing_service.get_upcoming_viewings(hunter)

        assert just_missed.id not in [v.id for v in upcoming]
        assert [v.id for v in upcoming] == [later_today.id]

    @pytest.mark.asyncio
    async def test_list_filters_and_sorts(self, viewing_service: ViewingService, listing: Listing, hunter: User):
        first = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)
        second = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(3)), hunter)
        await viewing_service.update_viewing(second.id, ViewingUpdate(attended=True), hunter)

        ascending, meta = await viewing_service.list_viewings(hunter)
        descending, _ = await viewing_service.list_viewings(hunter, sort="date_desc")
        attended, _ = await viewing_service.list_viewings(hunter, attended=True)

        assert [v.id for v in ascending] == [first.id, second.id]
        assert [v.id for v in descending] == [second.id, first.id]
        assert [v.id for v in attended] == [second.id]
        assert meta.total_count == 2

    @pytest.mark.asyncio
    async def test_record_outcome(self, viewing_service: ViewingService, listing: Listing, hunter: User):
        viewing = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(-1)), hunter)

        updated = await viewing_service.update_viewing(
            viewing.id, ViewingUpdate(attended=True, rating=5, viewing_notes="Great light"), hunter
        )

        assert updated.attended is True
        assert updated.rating == 5
        assert updated.viewing_notes == "Great light"

    @pytest.mark.asyncio
    async def test_update_validation(self, viewing_service: ViewingService, listing: Listing, hunter: User):
        viewing = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)

        with pytest.raises(ValidationError):
            await viewing_service.update_viewing(viewing.id, ViewingUpdate(), hunter)
        with pytest.raises(ValidationError, match="attended cannot be null"):
            await viewing_service.update_viewing(viewing.id, ViewingUpdate(attended=None), hunter)

    @pytest.mark.asyncio
    async def test_other_users_viewing_is_forbidden(
        self, viewing_service: ViewingService, listing: Listing, hunter: User, other_user: User
    ):
        viewing = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)

        with pytest.raises(ForbiddenError):
            await viewing_service.update_viewing(viewing.id, ViewingUpdate(attended=True), other_user)
        with pytest.raises(ForbiddenError):
            await viewing_service.delete_viewing(viewing.id, other_user)

    @pytest.mark.asyncio
    async def test_delete(self, viewing_service: ViewingService, listing: Listing, hunter: User):
        viewing = await viewing_service.schedule_viewing(listing.id, ViewingCreate(scheduled_date=in_days(1)), hunter)
        viewing_id = viewing.id

        await viewing_service.delete_viewing(viewing_id, hunter)

        with pytest.raises(NotFoundError):
            await viewing_service.delete_viewing(viewing_id, hunter)


class TestComparisonService:
    """Test ComparisonService functionality."""

    @pytest.fixture
    async def second_listing(self, listing_repository: ListingRepository, lister: User) -> Listing:
        return await ListingFactory.create_listing(
            listing_repository, lister.id, title="Second", price=Decimal("2000"), square_feet=None
        )

    @pytest.mark.asyncio
    async def test_create_keeps_order(
        self, comparison_service: ComparisonService, listing: Listing, second_listing: Listing, hunter: User
    ):
        result = await comparison_service.create_comparison(
            ComparisonCreate(name=" Shortlist ", listing_ids=[second_listing.id, listing.id]), hunter
        )

        assert result["name"] == "Shortlist"
        assert [item["id"] for item in result["listings"]] == [str(second_listing.id), str(listing.id)]
        assert "price_per_sqft" not in result["listings"][0]
        assert result["listings"][1]["price_per_sqft"] == 2.0
        assert result["unavailable_listing_ids"] == []

    @pytest.mark.asyncio
    async def test_needs_two_distinct_listings(
        self, comparison_service: ComparisonService, listing: Listing, hunter: User
    ):
        with pytest.raises(ValidationError):
            await comparison_service.create_comparison(ComparisonCreate(name="One", listing_ids=[listing.id]), hunter)
        with pytest.raises(ValidationError):
            await comparison_service.create_comparison(
                ComparisonCreate(name="Twice", listing_ids=[listing.id, listing.id]), hunter
            )

    @pytest.mark.asyncio
    async def test_inactive_or_missing_listing_rejected(
        self, comparison_service: ComparisonService, listing: Listing, inactive_listing: Listing, hunter: User
    ):
        missing = uuid.uuid4()
        with pytest.raises(ValidationError) as exc_info:
            await comparison_service.create_comparison(
                ComparisonCreate(name="Bad", listing_ids=[listing.id, inactive_listing.id, missing]), hunter
            )
        assert len(exc_info.value.field_errors) == 2

    @pytest.mark.asyncio
    async def test_detail_reports_unavailable_listings(
        self,
        comparison_service: ComparisonService,
        listing_repository: ListingRepository,
        listing: Listing,
        second_listing: Listing,
        hunter: User
    ):
        created = await comparison_service.create_comparison(
            ComparisonCreate(name="Pair", listing_ids=[listing.id, second_listing.id]), hunter
        )
        await listing_repository.update(second_listing, {"is_active": False})

        detail = await comparison_service.get_comparison(uuid.UUID(created["id"]), hunter)

        assert [item["id"] for item in detail["listings"]] == [str(listing.id)]
        assert detail["unavailable_listing_ids"] == [str(second_listing.id)]
        assert detail["listing_count"] == 2

    @pytest.mark.asyncio
    async def test_other_users_comparison_is_forbidden(
        self, comparison_service: ComparisonService, listing: Listing, second_listing: Listing, hunter: User, other_user: User
    ):
        created = await comparison_service.create_comparison(
            ComparisonCreate(name="Mine", listing_ids=[listing.id, second_listing.id]), hunter
        )
        with pytest.raises(ForbiddenError):
            await comparison_service.get_comparison(uuid.UUID(created["id"]), other_user)

    @pytest.mark.asyncio
    async def test_update_and_delete(
        self, comparison_service: ComparisonService, listing: Listing, second_listing: Listing, hunter: User
    ):
        listing_id, second_id = listing.id, second_listing.id
        created = await comparison_service.create_comparison(
            ComparisonCreate(name="Draft", listing_ids=[listing.id, second_listing.id]), hunter
        )
        comparison_id = uuid.UUID(created["id"])

        with pytest.raises(ValidationError):
            await comparison_service.update_comparison(comparison_id, ComparisonUpdate(), hunter)
        with pytest.raises(ValidationError):
            await comparison_service.update_comparison(
                comparison_id, ComparisonUpdate(name="Shrunk", listing_ids=[listing_id]), hunter
            )

        unchanged = await comparison_service.get_comparison(comparison_id, hunter)
        assert unchanged["name"] == "Draft"
        assert [item["id"] for item in unchanged["listings"]] == [str(listing_id), str(second_id)]


        updated = await comparison_service.update_comparison(
            comparison_id, ComparisonUpdate(name="Final", listing_ids=[second_listing.id, listing.id]), hunter
        )
        assert updated.name == "Final"
        assert updated.listing_ids == [str(second_listing.id), str(listing.id)]

        await comparison_service.delete_comparison(comparison_id, hunter)
        assert await comparison_service.list_comparisons(hunter) == []


class TestTagService:
    """Test TagService functionality."""

    @pytest.mark.asyncio
    async def test_names_unique_per_user(self, tag_service: TagService, hunter: User, other_user: User):
        await tag_service.create_tag(TagCreate(name="Garden", color="#22c55e"), hunter)

        with pytest.raises(ValidationError) as exc_info:
            await tag_service.create_tag(TagCreate(name="Garden"), hunter)
        assert exc_info.value.detail == DUPLICATE_TAG_MESSAGE

        other = await tag_service.create_tag(TagCreate(name="Garden"), other_user)
        assert other.user_id == other_user.id

    @pytest.mark.asyncio
    async def test_list_with_usage_counts(
        self,
        tag_service: TagService,
        saved_property_service: SavedPropertyService,
        listing: Listing,
        hunter: User
    ):
        garden = await tag_service.create_tag(TagCreate(name="Garden"), hunter)
        await tag_service.create_tag(TagCreate(name="Balcony"), hunter)
        saved = await saved_property_service.save_listing(listing.id, hunter)
        await tag_service.add_tag_to_saved_property(saved.id, garden.id, hunter)

        tags = await tag_service.list_tags(hunter)

        assert [(tag.name, count) for tag, count in tags] == [("Balcony", 0), ("Garden", 1)]

    @pytest.mark.asyncio
    async def test_rename_checks_uniqueness(self, tag_service: TagService, hunter: User):
        await tag_service.create_tag(TagCreate(name="Quiet"), hunter)
        noisy = await tag_service.create_tag(TagCreate(name="Noisy"), hunter)

        with pytest.raises(ValidationError):
            await tag_service.update_tag(noisy.id, TagUpdate(name="Quiet"), hunter)
        with pytest.raises(ValidationError):
            await tag_service.update_tag(noisy.id, TagUpdate(), hunter)

        recolored = await tag_service.update_tag(noisy.id, TagUpdate(color="#ef4444"), hunter)
        assert recolored.name == "Noisy"
        assert recolored.color == "#ef4444"

    @pytest.mark.asyncio
    async def test_attach_and_detach(
        self,
        tag_service: TagService,
        saved_property_service: SavedPropertyService,
        db_session,
        listing: Listing,
        hunter: User
    ):
        tag = await tag_service.create_tag(TagCreate(name="Shortlist"), hunter)
        tag_id = tag.id
        saved = await saved_property_service.save_listing(listing.id, hunter)
        saved_id = saved.id

        tagged = await tag_service.add_tag_to_saved_property(saved_id, tag_id, hunter)
        assert [t.name for t in tagged.tags] == ["Shortlist"]

        with pytest.raises(ValidationError) as exc_info:
            await tag_service.add_tag_to_saved_property(saved_id, tag_id, hunter)
        assert exc_info.value.detail == DUPLICATE_LINK_MESSAGE

        await tag_service.remove_tag_from_saved_property(saved_id, tag_id, hunter)
        untagged = await SavedPropertyRepository(db_session).get_with_tags(saved_id)
        assert untagged.tags == []

        with pytest.raises(NotFoundError):
            await tag_service.remove_tag_from_saved_property(saved_id, tag_id, hunter)

    @pytest.mark.asyncio
    async def test_cannot_attach_someone_elses_tag(
        self,
        tag_service: TagService,
        saved_property_service: SavedPropertyService,
        listing: Listing,
        hunter: User,
        other_user: User
    ):
        foreign = await tag_service.create_tag(TagCreate(name="Theirs"), other_user)
        foreign_id = foreign.id
        saved = await saved_property_service.save_listing(listing.id, hunter)

        with pytest.raises(NotFoundError):
            await tag_service.add_tag_to_saved_property(saved.id, foreign_id, hunter)

    @pytest.mark.asyncio
    async def test_delete_removes_links(
        self,
        tag_service: TagService,
        saved_property_service: SavedPropertyService,
        db_session,
        listing: Listing,
        hunter: User
    ):
        tag = await tag_service.create_tag(TagCreate(name="Temporary"), hunter)
        tag_id = tag.id
        saved = await saved_property_service.save_listing(listing.id, hunter)
        saved_id = saved.id
        await tag_service.add_tag_to_saved_property(saved_id, tag_id, hunter)

        await tag_service.delete_tag(tag_id, hunter)

        reloaded = await SavedPropertyRepository(db_session).get_with_tags(saved_id)
        assert reloaded.tags == []
        assert await tag_service.list_tags(hunter) == []


class TestDashboardService:
    """Test DashboardService functionality."""

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, dashboard_service: DashboardService, hunter: User):
        stats = await dashboard_service.get_stats(hunter)

        assert stats["hunter"]["total_saved_properties"] == 0
        assert len(stats["hunter"]["properties_by_status"]) == len(PropertyStatus)
        assert all(entry["count"] == 0 for entry in stats["hunter"]["properties_by_status"])
        assert stats["hunter"]["next_viewing"] is None
        assert stats["lister"]["total_listings_posted"] == 0

    @pytest.mark.asyncio
    async def test_hunter_and_lister_sections(
        self,
        dashboard_service: DashboardService,
        saved_property_service: SavedPropertyService,
        viewing_service: ViewingService,
        listing_repository: ListingRepository,
        listing: Listing,
        inactive_listing: Listing,
        lister: User,
        hunter: User
    ):
        cork = await ListingFactory.create_listing(listing_repository, lister.id, city="Cork", county="Cork")
        saved = await saved_property_service.save_listing(listing.id, hunter)
        await saved_property_service.save_listing(cork.id, hunter)
        await saved_property_service.update_saved_property(saved.id, SavedPropertyUpdate(status="applied"), hunter)
        viewing = await viewing_service.schedule_viewing(
            listing.id, ViewingCreate(scheduled_date=in_days(2), location_notes="Side door"), hunter
        )
        await viewing_service.schedule_viewing(
            cork.id, ViewingCreate(scheduled_date=datetime.now(timezone.utc) - timedelta(minutes=5)), hunter
        )

        hunter_stats = (await dashboard_service.get_stats(hunter))["hunter"]
        by_status = {entry["status"]: entry["count"] for entry in hunter_stats["properties_by_status"]}

        assert hunter_stats["total_saved_properties"] == 2
        assert by_status["saved"] == 1
        assert by_status["applied"] == 1
        assert hunter_stats["upcoming_viewings_count"] == 1
        assert hunter_stats["next_viewing"]["id"] == str(viewing.id)
        assert hunter_stats["next_viewing"]["location_notes"] == "Side door"
        assert {entry["city"] for entry in hunter_stats["top_cities"]} == {"Dublin", "Cork"}

        lister_stats = (await dashboard_service.get_stats(lister))["lister"]

        assert lister_stats["total_listings_posted"] == 3
        assert lister_stats["listings_by_status"] == [
            {"status": "active", "count": 2},
            {"status": "inactive", "count": 1},
        ]
        assert lister_stats["total_viewings_scheduled_on_my_listings"] == 2
        assert {entry["listing"]["id"] for entry in lister_stats["recent_activity"]} == {str(listing.id), str(cork.id)}
