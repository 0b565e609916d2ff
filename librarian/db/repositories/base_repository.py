"""Base repository with common database operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Common persistence operations for one table.

    Writes are flushed immediately so constraint violations surface at the
    call site; committing is left to the caller (request dependency or job).
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLModel table class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def save(self, obj: ModelType) -> ModelType:
        """
        Insert or update a record and reload server-side values.

        Args:
            obj: Model instance to write

        Returns:
            The refreshed instance

        Raises:
            Exception: Whatever ``translate_integrity_error`` maps a
                constraint violation to; the session is rolled back first
        """
        self.session.add(obj)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            translated = self.translate_integrity_error(e, obj)
            if translated is e:
                raise
            raise translated from e
        await self.session.refresh(obj)
        return obj

    def translate_integrity_error(self, error: IntegrityError, obj: ModelType) -> Exception:
        """Map a constraint violation to a domain error; unmapped errors pass through."""
        return error

    async def get_by_id(self, id: Any) -> ModelType | None:
        """
        Get record by primary key.

        Args:
            id: Record primary key

        Returns:
            Model instance or None
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    async def delete(self, obj: ModelType) -> None:
        await self.session.delete(obj)
        await self.session.flush()
