"""
Ownership checks shared by every mutating operation.
"""

from typing import Optional, Sequence, Type, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import Base
from app.utils.exceptions import NotFoundError, ForbiddenError
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class OwnershipGuard:
    """
    Loads an entity by id and asserts the requester owns it.
    The guard never modifies anything; callers perform the write in the same session.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def verify(
        self,
        model: Type[ModelType],
        entity_id: uuid.UUID,
        requester_id: uuid.UUID,
        resource: Optional[str] = None,
        action: str = "modify",
        lock: bool = False,
        hide_foreign: bool = False,
        options: Sequence = ()
    ) -> ModelType:
        """
        Load ``entity_id`` and check its ``user_id`` against the requester.

        Args:
            model: Model class with a ``user_id`` owner column
            entity_id: Id of the entity
            requester_id: Authenticated user's id
            resource: Human readable resource name for messages
            action: Verb used in the forbidden message
            lock: Take a row lock so the following write sees the checked state
            hide_foreign: Report someone else's entity as not found
            options: Loader options for the returned entity

        Returns:
            The owned entity

        Raises:
            NotFoundError: If the entity does not exist (or is foreign and hidden)
            ForbiddenError: If the entity belongs to another user
        """
        resource = resource or model.__name__

        query = select(model).where(model.id == entity_id).execution_options(populate_existing=True)
        if options:
            query = query.options(*options)
        if lock:
            query = query.with_for_update()

        result = await self.db.execute(query)
        entity = result.scalar_one_or_none()

        if entity is None:
            raise NotFoundError(resource, detail=f"{resource} not found.")

        if entity.user_id != requester_id:
            logger.warning(f"User {requester_id} tried to {action} {resource} {entity_id} owned by {entity.user_id}")
            if hide_foreign:
                raise NotFoundError(resource, detail=f"{resource} not found.")
            raise ForbiddenError(f"You do not have permission to {action} this {resource.lower()}.")

        return entity
