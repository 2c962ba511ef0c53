"""
Base Repository
Common CRUD operations for all entities
"""

from typing import Generic, TypeVar, Type, Optional, Dict, Any
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from ..connection import Base

# Type variables for generic repository
ModelType = TypeVar("ModelType", bound=Base)


class RepositoryError(Exception):
    """Base repository error"""
    pass


class NotFoundError(RepositoryError):
    """Entity not found error"""
    pass


class ConflictError(RepositoryError):
    """Data conflict error"""
    pass


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations.

    Repositories flush but never commit or roll back; the caller owns the
    transaction, so a failed write unwinds everything done alongside it.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, obj_in: Optional[Any] = None, **kwargs) -> ModelType:
        """Create a new entity from a schema and/or keyword fields"""
        obj_data: Dict[str, Any] = {}
        if obj_in is not None:
            obj_data.update(obj_in.model_dump())
        obj_data.update(kwargs)

        db_obj = self.model(**obj_data)
        self.session.add(db_obj)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Data conflict: {str(e)}")
        return db_obj

    async def get(self, id: str) -> Optional[ModelType]:
        """Get entity by ID"""
        try:
            result = await self.session.execute(
                select(self.model).where(self.model.id == id)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error getting entity: {str(e)}")

    async def get_or_404(self, id: str) -> ModelType:
        """Get entity by ID or raise NotFoundError"""
        obj = await self.get(id)
        if obj is None:
            raise NotFoundError(f"{self.model.__name__} with id {id} not found")
        return obj
