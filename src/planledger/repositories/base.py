"""
Base repository class with common persistence operations.

Repositories never commit: they add, flush and query inside whatever
transaction the caller's unit of work has open.
"""

from abc import ABC
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from planledger.app_logger import get_logger

logger = get_logger(__name__)


# Generic type for model classes with id attribute
class HasId(Protocol):
    id: Any


ModelType = TypeVar("ModelType", bound=HasId)


class BaseRepository(Generic[ModelType], ABC):
    """
    Base repository providing common operations.

    Implements the Repository pattern with async SQLAlchemy operations
    and logging. Transaction boundaries belong to the caller.
    """

    def __init__(self, session: AsyncSession, model_class: type[ModelType]) -> None:
        """
        Initialize repository with database session and model class.

        Args:
            session: Async SQLAlchemy session
            model_class: The SQLAlchemy model class for this repository
        """
        self.session = session
        self.model_class = model_class
        self.model_name = model_class.__name__

    async def add(self, instance: ModelType) -> ModelType:
        """
        Stage a new instance and flush it so database defaults and
        constraints are applied immediately.

        Args:
            instance: Unsaved model instance

        Returns:
            The flushed instance
        """
        self.session.add(instance)
        await self.session.flush()
        logger.debug(f"Created {self.model_name}: {instance.id}")
        return instance

    async def add_all(self, instances: list[ModelType]) -> list[ModelType]:
        self.session.add_all(instances)
        await self.session.flush()
        logger.debug(f"Created {len(instances)} {self.model_name} rows")
        return instances

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new model instance.

        Args:
            **kwargs: Model attributes

        Returns:
            Created model instance
        """
        return await self.add(self.model_class(**kwargs))

    async def get_by_id(self, id: UUID, *, fresh: bool = False) -> ModelType | None:
        """
        Get model instance by ID.

        Args:
            id: Model UUID
            fresh: Overwrite any copy already in the identity map

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(self.model_class.id == id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        instance = result.scalar_one_or_none()

        if instance is None:
            logger.debug(f"{self.model_name} not found: {id}")
        return instance

    async def count(self) -> int:
        """
        Get count of all model instances.

        Returns:
            Total count of instances
        """
        stmt = select(func.count()).select_from(self.model_class)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, id: UUID) -> bool:
        """
        Check if model instance exists by ID.

        Args:
            id: Model UUID

        Returns:
            True if exists, False otherwise
        """
        stmt = select(self.model_class.id).where(self.model_class.id == id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
