# class_registration/services/base_service.py
"""Base service with common read helpers shared by the engine services."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Type, Any, Optional, TypeVar, Generic

# Define generic type
T = TypeVar('T')

class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_fresh(self, id: Any) -> Optional[T]:
        """Re-read a row, overwriting any stale copy held by the session"""
        stmt = select(self.model).where(self.model.id == id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, obj: T) -> T:
        """Stage a new row in the current transaction; the caller's unit of work commits"""
        self.db.add(obj)
        await self.db.flush()
        return obj
