"""VaultDatabase — engine lifecycle, table creation, transactional sessions."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .exceptions import StorageError, VaultError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterable

    from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite://"


def _is_memory_sqlite(engine: AsyncEngine) -> bool:
    return engine.dialect.name == "sqlite" and engine.url.database in (None, "", ":memory:")


class VaultDatabase:
    """Owns the async engine and hands out one transaction per operation.

    Pass a URL to let the database create (and later dispose) its own
    engine, or an existing ``AsyncEngine`` that the caller keeps owning.
    ``sqlite+aiosqlite://`` gives a volatile in-memory store; a file or
    PostgreSQL URL gives a durable one. Nothing else changes.
    """

    def __init__(
        self,
        url: str = DEFAULT_DATABASE_URL,
        *,
        engine: AsyncEngine | None = None,
        models: Iterable[type[SQLModel]] = (),
        echo: bool = False,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.url = url
        self.echo = echo
        self.busy_timeout_ms = busy_timeout_ms
        self._models = tuple(models)
        self._engine: AsyncEngine | None = engine
        self._owns_engine = engine is None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()
        self._memory_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine | None:
        """The async engine, available after ``open()``."""
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession] | None:
        """The async session factory, available after ``open()``."""
        return self._session_factory

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    @property
    def dialect(self) -> str | None:
        return self._engine.dialect.name if self._engine is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the engine if needed and ensure every table exists."""
        if self._session_factory is not None:
            return
        async with self._init_lock:
            if self._session_factory is not None:
                return

            if self._engine is None:
                self._engine = create_async_engine(self.url, echo=self.echo)
            if self._engine.dialect.name == "sqlite" and not _is_memory_sqlite(self._engine):
                self._configure_sqlite(self._engine)

            tables = [model.__table__ for model in self._models]  # type: ignore[attr-defined]
            try:
                async with self._engine.begin() as conn:
                    for table in tables:
                        await conn.run_sync(lambda c, t=table: t.create(c, checkfirst=True))
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to initialise tables: {e}") from e

            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.debug("Opened vault database (%s)", self._engine.dialect.name)

    def _configure_sqlite(self, engine: AsyncEngine) -> None:
        busy_timeout_ms = self.busy_timeout_ms

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
            cursor.execute("PRAGMA journal_mode=WAL")
            result = cursor.fetchone()
            if result[0].lower() != "wal":
                logger.warning("WAL mode not active, got: %s", result[0])
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            cursor.execute("PRAGMA synchronous=FULL")
            cursor.close()

    async def close(self) -> None:
        """Dispose the engine if this database created it."""
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None
        logger.debug("Closed vault database")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session whose work commits on success and rolls back on error.

        Vault errors propagate unchanged; other backend failures are
        re-raised as ``StorageError``.

        An in-memory SQLite engine shares a single connection between all
        sessions, so sessions on it run one at a time.
        """
        if self._session_factory is None or self._engine is None:
            raise StorageError("Database is not open; call open() first")

        guard = self._memory_lock if _is_memory_sqlite(self._engine) else nullcontext()
        async with guard:
            session = self._session_factory()
            try:
                yield session
                await session.commit()
            except VaultError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Backend failure: {e}") from e
            except BaseException:
                await session.rollback()
                raise
            finally:
                await session.close()
