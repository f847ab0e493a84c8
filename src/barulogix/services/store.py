"""Session-bound base class for services that talk to the database.

Every store failure surfaces as InternalError (or ConflictError for
constraint violations) with the driver message attached as details.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from barulogix.services.errors import ConflictError, InternalError

if TYPE_CHECKING:
    from sqlalchemy.engine import Result
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql import Executable

logger = logging.getLogger(__name__)


class StoreService:
    """Base for services that operate on an AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the service.

        Args:
            session: SQLAlchemy async session for database operations.
        """
        self._session = session

    async def _execute(self, statement: Executable) -> Result[Any]:
        try:
            return await self._session.execute(statement)
        except SQLAlchemyError as e:
            logger.warning("Store query failed: %s", e)
            raise InternalError("Error consultando la base de datos", details=str(e)) from e

    async def _flush(self) -> None:
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("El registro viola una restricción de unicidad", str(e)) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise InternalError("Error escribiendo en la base de datos", details=str(e)) from e

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError("El registro viola una restricción de unicidad", str(e)) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise InternalError("Error guardando en la base de datos", details=str(e)) from e
