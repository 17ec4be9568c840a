from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import Executable
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Shared helpers for the lookup repositories.

    Reads never commit. Writes go through `add` + `commit`; a failed commit is
    rolled back so the request session stays usable for the error response.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None) -> List[Any]:
        """Execute and return all scalar rows as a list."""
        result = await self.execute(statement, params)
        return list(result.scalars())

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def add(self, entity: Any) -> None:
        self.session.add(entity)

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
