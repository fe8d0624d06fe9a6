"""
Comparison repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.base import BaseRepository
from app.models.comparison import Comparison
from typing import List
import uuid


class ComparisonRepository(BaseRepository[Comparison]):
    """Repository for named listing comparisons."""

    def __init__(self, db: AsyncSession):
        super().__init__(Comparison, db)

    async def list_for_user(self, user_id: uuid.UUID) -> List[Comparison]:
        return await self.get_multi(filters={"user_id": user_id}, order_by="-created_at")
