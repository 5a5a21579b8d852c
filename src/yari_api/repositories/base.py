"""Base repository class with common CRUD operations."""

import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from yari_api.database.models import Base
from yari_api.exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)

# Type variable for the model type
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations.

    Unique-constraint violations and stale version counters surface as
    ``ConflictError``; every other ``SQLAlchemyError`` becomes ``DatabaseError``.
    The caller owns the transaction and decides whether to roll back.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """
        Get a record by ID.

        Args:
            id: Record ID

        Returns:
            Model instance or None if not found
        """
        try:
            # Conditional UPDATEs bypass the identity map; always reload the row state
            result = await self.session.execute(
                select(self.model)
                .where(self.model.id == id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self.model.__name__} by ID {id}: {e}")
            raise DatabaseError(f"Failed to retrieve {self.model.__name__}") from e

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.refresh(instance)
            logger.debug(f"Created {self.model.__name__} with ID: {instance.id}")
            return instance
        except IntegrityError as e:
            logger.warning(f"Unique constraint rejected new {self.model.__name__}: {e.orig}")
            raise ConflictError(
                f"{self.model.__name__} conflicts with an existing record"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            raise DatabaseError(f"Failed to create {self.model.__name__}") from e

    async def save(self, instance: ModelType) -> ModelType:
        """
        Flush pending attribute changes on a loaded instance.

        The mapper's version counter turns a concurrent modification into
        ``ConflictError`` instead of a lost update.
        """
        try:
            await self.session.flush()
            await self.session.refresh(instance)
            logger.debug(f"Updated {self.model.__name__} with ID: {instance.id}")
            return instance
        except StaleDataError as e:
            logger.warning(f"Stale {self.model.__name__} {instance.id}: {e}")
            raise ConflictError(
                f"{self.model.__name__} was modified concurrently, reload and retry"
            ) from e
        except IntegrityError as e:
            logger.warning(f"Unique constraint rejected {self.model.__name__} update: {e.orig}")
            raise ConflictError(
                f"{self.model.__name__} conflicts with an existing record"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__} with ID {instance.id}: {e}")
            raise DatabaseError(f"Failed to update {self.model.__name__}") from e

    async def delete(self, instance: ModelType) -> None:
        """
        Delete a loaded record under its version check.

        Args:
            instance: Model instance to delete
        """
        try:
            await self.session.delete(instance)
            await self.session.flush()
            logger.debug(f"Deleted {self.model.__name__} with ID: {instance.id}")
        except StaleDataError as e:
            logger.warning(f"Stale {self.model.__name__} {instance.id} on delete: {e}")
            raise ConflictError(
                f"{self.model.__name__} was modified concurrently, reload and retry"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model.__name__} with ID {instance.id}: {e}")
            raise DatabaseError(f"Failed to delete {self.model.__name__}") from e
