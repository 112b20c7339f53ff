"""
Database configuration and session management

A Database owns the async engine and session factory for the lifetime of the
process; it is built at startup and disposed at shutdown, then handed down to
whatever needs it (FastAPI dependencies, scripts, tests).

Each unit of work runs in a DbSession: one transaction in either "read" or
"write" mode. Write sessions must be committed explicitly; any session still
open when its ``async with`` block exits is rolled back.

Usage:
    async with database.session("write") as session:
        await create_tag(session, "subject/nature", "Nature")
        await session.commit()
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Result
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.sql import Executable
from sqlmodel import SQLModel

from gallery.config import SessionMode, Settings
from gallery.core.errors import AlreadyExists, SessionStateError, ValidationError
from gallery.core.logging import get_logger, serialize_error

logger = get_logger(__name__)


class SessionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled back"
    DISPOSED = "disposed"


class DbSession:
    """
    A single database transaction with an explicit lifecycle.

    open -> committed | rolled back -> disposed

    Every operation on a session that is not open raises SessionStateError naming
    the operation. commit() and rollback() are single-shot; dispose() is
    idempotent and rolls back a still-open transaction.
    """

    def __init__(self, session: AsyncSession, mode: str) -> None:
        self._session = session
        self._mode = mode
        self._state = SessionState.OPEN

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_writable(self) -> bool:
        return self._mode == SessionMode.WRITE

    def _assert_open(self, operation: str) -> None:
        if self._state is not SessionState.OPEN:
            logger.error(
                "db_session_invalid_state",
                operation=operation,
                state=self._state.value,
                mode=self._mode,
            )
            raise SessionStateError(operation, self._state.value)

    def require_write(self, operation: str) -> None:
        """Fail unless this session is open and in write mode."""
        self._assert_open(operation)
        if not self.is_writable:
            logger.error("db_session_not_writable", operation=operation, mode=self._mode)
            raise SessionStateError(operation, "read-only")

    async def execute(self, statement: Executable, params: Any = None) -> Result[Any]:
        self._assert_open("execute statements")
        return await self._session.execute(statement, params)

    async def scalar(self, statement: Executable) -> Any:
        self._assert_open("execute statements")
        return await self._session.scalar(statement)

    async def scalars(self, statement: Executable) -> list[Any]:
        self._assert_open("execute statements")
        result = await self._session.scalars(statement)
        return list(result.all())

    async def get(self, model: type[SQLModel], key: Any) -> Any:
        self._assert_open("load rows")
        return await self._session.get(model, key)

    def add(self, instance: SQLModel) -> None:
        self.require_write("add rows")
        self._session.add(instance)

    def add_all(self, instances: Iterable[SQLModel]) -> None:
        self.require_write("add rows")
        self._session.add_all(instances)

    async def insert_new(self, instance: SQLModel, entity: str, key: str) -> None:
        """
        Add a new row and flush it.

        A key collision with a row committed by a concurrent writer rolls the
        session back and raises AlreadyExists.
        """
        self.require_write("add rows")
        self._session.add(instance)
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self.rollback()
            logger.warning("db_insert_conflict", entity=entity, key=key)
            raise AlreadyExists(entity, key) from e

    async def flush(self) -> None:
        self._assert_open("flush")
        await self._session.flush()

    async def commit(self) -> None:
        self._assert_open("commit")
        try:
            await self._session.commit()
        except Exception as e:
            logger.error(
                "db_commit_failed", mode=self._mode, state=self._state.value, error=serialize_error(e)
            )
            raise
        self._state = SessionState.COMMITTED

    async def rollback(self) -> None:
        self._assert_open("rollback")
        try:
            await self._session.rollback()
        except Exception as e:
            logger.error(
                "db_rollback_failed",
                mode=self._mode,
                state=self._state.value,
                error=serialize_error(e),
            )
            raise
        self._state = SessionState.ROLLED_BACK

    async def dispose(self) -> None:
        if self._state is SessionState.DISPOSED:
            return

        try:
            if self._state is SessionState.OPEN:
                await self.rollback()
        finally:
            await self._session.close()
            self._state = SessionState.DISPOSED

    async def __aenter__(self) -> "DbSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine_kwargs(settings: Settings) -> dict[str, Any]:
    """Engine options; QueuePool sizing only applies to non-SQLite engines."""
    kwargs: dict[str, Any] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs["pool_size"] = settings.DB_POOL_SIZE
        kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        kwargs["pool_recycle"] = 3600
    return kwargs


class Database:
    """Process-wide handle on the async engine and its session factory."""

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.DATABASE_URL, **get_engine_kwargs(settings))

    def session(self, mode: str) -> DbSession:
        """Start a transactional session; use it with ``async with``."""
        if mode not in (SessionMode.READ, SessionMode.WRITE):
            logger.error("db_unsupported_session_mode", mode=mode)
            raise ValidationError(f"Unsupported session mode: {mode}")
        return DbSession(self._sessionmaker(), mode)

    async def create_all(self) -> None:
        """Create all tables from the SQLModel metadata (development and tests)."""
        import gallery.models  # noqa: F401  - registers tables with SQLModel.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
