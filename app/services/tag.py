"""
Tag service: user-scoped labels and their attachment to saved properties.
"""

from typing import List, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.saved_property import SavedProperty
from app.models.tag import Tag
from app.models.user import User
from app.repositories.saved_property import SavedPropertyRepository
from app.repositories.tag import TagRepository
from app.schemas.tag import TagCreate, TagUpdate
from app.services.ownership import OwnershipGuard
from app.utils.exceptions import APIException, NotFoundError, ValidationError, InternalServerError
import uuid
import logging

logger = logging.getLogger(__name__)

DUPLICATE_TAG_MESSAGE = "A tag with this name already exists for your account."
DUPLICATE_LINK_MESSAGE = "This tag is already assigned to this property."


class TagService:
    """
    Service for tags.
    Tag names are unique per user; two users may each have a tag with the same name.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.tag_repo = TagRepository(db_session)
        self.saved_repo = SavedPropertyRepository(db_session)
        self.guard = OwnershipGuard(db_session)

    async def create_tag(self, data: TagCreate, current_user: User) -> Tag:
        """
        Create a tag.

        Raises:
            ValidationError: If the user already has a tag with this name
        """
        user_id = current_user.id
        try:
            if await self.tag_repo.get_by_name(user_id, data.name):
                raise ValidationError(DUPLICATE_TAG_MESSAGE)

            tag = await self.tag_repo.create({"user_id": user_id, "name": data.name, "color": data.color})
            logger.info(f"Tag '{tag.name}' created by user {user_id}")
            return tag

        except APIException:
            raise
        except IntegrityError:
            raise ValidationError(DUPLICATE_TAG_MESSAGE)
        except Exception as e:
            logger.error(f"Failed to create tag for user {user_id}: {e}")
            raise InternalServerError("Failed to create tag")

    async def list_tags(self, current_user: User) -> List[Tuple[Tag, int]]:
        """The user's tags by name, each with how many saved properties use it."""
        try:
            return await self.tag_repo.list_with_usage(current_user.id)
        except Exception as e:
            logger.error(f"Failed to list tags for user {current_user.id}: {e}")
            raise InternalServerError("Failed to retrieve tags")

    async def update_tag(self, tag_id: uuid.UUID, data: TagUpdate, current_user: User) -> Tag:
        """
        Rename and/or recolour a tag.

        Raises:
            NotFoundError: If the tag does not exist
            ForbiddenError: If the tag belongs to another user
            ValidationError: If the new name is taken
        """
        user_id = current_user.id
        try:
            fields = data.model_dump(exclude_unset=True)
            if not fields:
                raise ValidationError("Provide a name or color to update.")
            if "name" in fields and fields["name"] is None:
                raise ValidationError("Tag name cannot be empty")

            tag = await self.guard.verify(Tag, tag_id, user_id, resource="Tag", action="update", lock=True)

            if "name" in fields and fields["name"] != tag.name:
                existing = await self.tag_repo.get_by_name(user_id, fields["name"])
                if existing and existing.id != tag_id:
                    raise ValidationError(DUPLICATE_TAG_MESSAGE)

            tag = await self.tag_repo.update(tag, fields)
            logger.info(f"Tag {tag_id} updated")
            return tag

        except APIException:
            raise
        except IntegrityError:
            raise ValidationError(DUPLICATE_TAG_MESSAGE)
        except Exception as e:
            logger.error(f"Failed to update tag {tag_id}: {e}")
            raise InternalServerError("Failed to update tag")

    async def delete_tag(self, tag_id: uuid.UUID, current_user: User) -> None:
        """Delete a tag and remove it from every saved property."""
        try:
            await self.guard.verify(Tag, tag_id, current_user.id, resource="Tag", action="delete", lock=True)
            await self.tag_repo.delete_with_links(tag_id)
            logger.info(f"Tag {tag_id} deleted")

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete tag {tag_id}: {e}")
            raise InternalServerError("Failed to delete tag")

    async def add_tag_to_saved_property(
        self,
        saved_property_id: uuid.UUID,
        tag_id: uuid.UUID,
        current_user: User
    ) -> SavedProperty:
        """
        Attach a tag. Both the saved property and the tag must belong to the user.

        Returns:
            The saved property with its tags

        Raises:
            NotFoundError: If either is missing or foreign
            ValidationError: If the tag is already attached
        """
        user_id = current_user.id
        try:
            await self.guard.verify(
                SavedProperty, saved_property_id, user_id,
                resource="Saved property", action="tag", lock=True, hide_foreign=True
            )
            await self.guard.verify(Tag, tag_id, user_id, resource="Tag", action="use", hide_foreign=True)

            await self.tag_repo.attach(saved_property_id, tag_id)
            logger.info(f"Tag {tag_id} attached to saved property {saved_property_id}")
            return await self.saved_repo.get_with_tags(saved_property_id)

        except APIException:
            raise
        except IntegrityError:
            raise ValidationError(DUPLICATE_LINK_MESSAGE)
        except Exception as e:
            logger.error(f"Failed to tag saved property {saved_property_id}: {e}")
            raise InternalServerError("Failed to add tag")

    async def remove_tag_from_saved_property(
        self,
        saved_property_id: uuid.UUID,
        tag_id: uuid.UUID,
        current_user: User
    ) -> None:
        """
        Detach a tag.

        Raises:
            NotFoundError: If the saved property is not the user's or the tag is not attached
        """
        try:
            await self.guard.verify(
                SavedProperty, saved_property_id, current_user.id,
                resource="Saved property", action="untag", lock=True, hide_foreign=True
            )
            removed = await self.tag_repo.detach(saved_property_id, tag_id)
            if not removed:
                raise NotFoundError("Tag", detail="Tag not found on this saved property.")
            logger.info(f"Tag {tag_id} removed from saved property {saved_property_id}")

        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to untag saved property {saved_property_id}: {e}")
            raise InternalServerError("Failed to remove tag")
