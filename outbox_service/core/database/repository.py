"""Minimal generic repository for SQLAlchemy models.

Session is always explicit: the caller owns the transaction, repositories
never commit. For queries not covered here, use the session directly.

Example:
    class WorkspaceRepository(BaseRepository[Workspace]):
        async def find_by_name(self, session: AsyncSession, name: str) -> Workspace | None:
            stmt = select(Workspace).where(Workspace.name == name)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import inspect

from outbox_service.core.exceptions import NotFoundException

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Thin convenience layer over an ``AsyncSession`` for one model.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundException)
    """

    __slots__ = ("model", "_logger")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class (e.g., EventRecord)
        """
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
    ) -> T | None:
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value

        Returns:
            Entity if found, None otherwise
        """
        instance = await session.get(self.model, id)
        self._logger.debug(
            "db.get: %s(%s) -> %s",
            self.model.__name__,
            id,
            "found" if instance else "not found",
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
    ) -> T:
        """Get entity by primary key or raise NotFoundException.

        Raises:
            NotFoundException: If entity doesn't exist
        """
        instance = await self.get(session, id)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise self.not_found(id)
        return instance

    def not_found(self, id: Any) -> NotFoundException:  # noqa: A002
        """Build the NotFoundException raised for a missing primary key."""
        return NotFoundException(
            detail=f"{self.model.__name__} with id {id} not found",
            type=f"{self._type_slug()}-not-found",
            extra={"id": str(id)},
        )

    def _type_slug(self) -> str:
        table = inspect(self.model).local_table.name
        return table.rstrip("s").replace("_", "-")
