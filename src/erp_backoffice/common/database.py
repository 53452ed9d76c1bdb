"""Async database manager for the ERP back-office (single pooled store)."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from erp_backoffice.common.config import BackofficeSettings, get_settings
from erp_backoffice.common.exceptions import ConflictError, InvalidInputError
from erp_backoffice.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import erp_backoffice.auth.models  # noqa: F401
import erp_backoffice.rbac.models  # noqa: F401
import erp_backoffice.approvals.models  # noqa: F401
import erp_backoffice.masterdata.models  # noqa: F401
import erp_backoffice.activity.models  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def translate_integrity_error(exc: IntegrityError) -> ConflictError | InvalidInputError:
    """Map a constraint violation onto the client-facing error kind."""
    detail = str(exc.orig).lower()
    if "unique" in detail or "duplicate" in detail:
        return ConflictError("Data already exists")
    if "foreign key" in detail:
        return InvalidInputError("Referenced data does not exist")
    return InvalidInputError("Data violates a database constraint")


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: BackofficeSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session whose work commits as one transaction.

        Any error rolls the transaction back; leaving the block by any path,
        cancellation included, returns the connection to the pool.
        """
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise translate_integrity_error(exc) from exc
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
