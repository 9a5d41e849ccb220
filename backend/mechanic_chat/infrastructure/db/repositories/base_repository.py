"""
Base Repository for Mechanic Chat

Primary-key lookup and insert shared by the entity repositories.
Flushes but never commits; the request-scoped session owns the transaction.
"""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        return await self._session.get(self._model, id)

    async def add(self, db_obj: ModelType) -> ModelType:
        """Insert and refresh so server-side defaults are visible."""
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj
