"""
Tests for the ownership guard used by every mutating operation.
"""

import pytest
import uuid

from app.models.listing import Listing
from app.models.tag import Tag
from app.models.user import User
from app.repositories.tag import TagRepository
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import ForbiddenError, NotFoundError


class TestOwnershipGuard:

    @pytest.mark.asyncio
    async def test_owner_gets_entity(self, ownership_guard: OwnershipGuard, listing: Listing, lister: User):
        entity = await ownership_guard.verify(Listing, listing.id, lister.id, resource="Listing", lock=True)
        assert entity.id == listing.id

    @pytest.mark.asyncio
    async def test_missing_entity(self, ownership_guard: OwnershipGuard, lister: User):
        with pytest.raises(NotFoundError, match="Listing not found."):
            await ownership_guard.verify(Listing, uuid.uuid4(), lister.id, resource="Listing")

    @pytest.mark.asyncio
    async def test_foreign_entity_is_forbidden(self, ownership_guard: OwnershipGuard, listing: Listing, hunter: User):
        with pytest.raises(ForbiddenError) as exc_info:
            await ownership_guard.verify(Listing, listing.id, hunter.id, resource="Listing", action="update")
        assert exc_info.value.detail == "You do not have permission to update this listing."

    @pytest.mark.asyncio
    async def test_foreign_entity_can_be_hidden(self, ownership_guard: OwnershipGuard, db_session, hunter: User, other_user: User):
        tag = await TagRepository(db_session).create({"user_id": other_user.id, "name": "Quiet"})
        with pytest.raises(NotFoundError):
            await ownership_guard.verify(Tag, tag.id, hunter.id, resource="Tag", hide_foreign=True)

    @pytest.mark.asyncio
    async def test_resource_name_defaults_to_model(self, ownership_guard: OwnershipGuard, hunter: User):
        with pytest.raises(NotFoundError, match="Tag not found."):
            await ownership_guard.verify(Tag, uuid.uuid4(), hunter.id)
