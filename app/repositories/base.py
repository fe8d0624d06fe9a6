"""
Generic async repository shared by every model.
Writes commit immediately and roll back on failure, so a service sees either the new row or an exception.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import Select, select, delete, func
from app.database import Base
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type, Sequence
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """CRUD for one model over an injected session."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    @property
    def _name(self) -> str:
        return self.model.__name__

    def _apply_filters(self, query: Select, filters: Optional[Dict[str, Any]]) -> Select:
        """Equality filters on model columns; list values become ``IN``. Unknown fields are ignored."""
        for field, value in (filters or {}).items():
            column = getattr(self.model, field, None)
            if column is None:
                continue
            query = query.where(column.in_(value) if isinstance(value, list) else column == value)
        return query

    async def _commit_and_refresh(self, db_obj: ModelType, action: str) -> ModelType:
        obj_id = getattr(db_obj, "id", None)
        try:
            await self.db.commit()
            await self.db.refresh(db_obj)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to {action} {self._name} {obj_id or ''}: {e}")
            raise
        logger.debug(f"{action.capitalize()}d {self._name} {db_obj.id}")
        return db_obj

    async def create(self, obj_in: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**obj_in)
        self.db.add(db_obj)
        return await self._commit_and_refresh(db_obj, "create")

    async def update(self, db_obj: ModelType, obj_in: Dict[str, Any]) -> ModelType:
        """
        Set fields on an instance loaded in this session and commit.

        ``None`` values are written as NULL; callers leave out the fields they don't touch.
        """
        for field, value in obj_in.items():
            setattr(db_obj, field, value)
        return await self._commit_and_refresh(db_obj, "update")

    async def get_by_id(
        self,
        id: uuid.UUID,
        options: Sequence = (),
        for_update: bool = False,
        refresh: bool = False
    ) -> Optional[ModelType]:
        """
        Load one row by primary key.

        Args:
            id: Primary key
            options: Loader options such as ``selectinload``
            for_update: Take a row lock held until the session's transaction ends
            refresh: Overwrite a copy already in the identity map (``populate_existing``)

        Returns:
            The instance, or None
        """
        query = select(self.model).where(self.model.id == id).options(*options)
        if for_update:
            query = query.with_for_update()
        if refresh:
            query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_field(self, field: str, value: Any, options: Sequence = ()) -> Optional[ModelType]:
        column = getattr(self.model, field, None)
        if column is None:
            raise ValueError(f"{self._name} has no field '{field}'")
        result = await self.db.execute(select(self.model).where(column == value).options(*options))
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[ModelType]:
        """
        List rows matching ``filters``.

        ``order_by`` names a column, with a leading ``-`` for descending; newest first by default.
        """
        query = self._apply_filters(select(self.model), filters)

        column = getattr(self.model, (order_by or "-created_at").lstrip("-"), None)
        if column is not None:
            query = query.order_by(column.desc() if (order_by or "-").startswith("-") else column.asc())

        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        query = self._apply_filters(select(func.count(self.model.id)), filters)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def delete(self, id: uuid.UUID) -> bool:
        """
        Delete by primary key with a bulk ``DELETE``; database cascades remove dependent rows.

        Returns:
            True if a row was deleted
        """
        try:
            result = await self.db.execute(delete(self.model).where(self.model.id == id))
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete {self._name} {id}: {e}")
            raise

        logger.debug(f"Deleted {self._name} {id}" if result.rowcount else f"No {self._name} {id} to delete")
        return result.rowcount > 0
