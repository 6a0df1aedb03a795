"""SQLAlchemy-backed transactional store and unit-of-work factories."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tradepost.adapters.sqlalchemy.mappings import enforce_foreign_keys, start_mappers
from tradepost.adapters.sqlalchemy.migrations import upgrade_head
from tradepost.adapters.sqlalchemy.repositories import sqlalchemy_repositories
from tradepost.config import get_database_config
from tradepost.domain.unit_of_work import SessionUnitOfWork, StagingUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @engine.setter
    def engine(self, value: AsyncEngine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Await tradepost.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self._engine, class_=AsyncSession, expire_on_commit=False
            )
        return self._session_factory


_STATE = _AdapterState()


async def startup(
    *,
    engine: AsyncEngine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the async engine, mappers, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        config = get_database_config()
        engine = create_async_engine(database_uri or config.uri, echo=config.echo)
    enforce_foreign_keys(engine)
    start_mappers()
    await upgrade_head(engine=engine)

    _STATE.engine = engine
    log.info("SQLAlchemy adapter started on %s", engine.url.render_as_string(hide_password=True))


def configured_engine() -> AsyncEngine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


async def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        await _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyStore:
    """Transactions are ``AsyncSession`` objects with an explicitly begun transaction.

    Every session is closed once its transaction is committed or rolled back,
    whether or not that call succeeds.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def open_transaction(self) -> AsyncSession:
        session = self.session_factory()
        try:
            await session.begin()
        except BaseException:
            await session.close()
            raise
        return session

    async def commit(self, transaction: AsyncSession) -> None:
        try:
            await transaction.commit()
        finally:
            await transaction.close()

    async def rollback(self, transaction: AsyncSession) -> None:
        try:
            await transaction.rollback()
        finally:
            await transaction.close()


def sqlalchemy_store() -> SqlAlchemyStore:
    return SqlAlchemyStore(_STATE.session_factory)


def staging_unit_of_work() -> StagingUnitOfWork[AsyncSession]:
    """Get a new command-staging unit of work."""

    return StagingUnitOfWork(sqlalchemy_store(), sqlalchemy_repositories())


def session_unit_of_work() -> SessionUnitOfWork[AsyncSession]:
    """Get a new session unit of work."""

    return SessionUnitOfWork(sqlalchemy_store())


if TYPE_CHECKING:
    from tradepost.domain.ports.unit_of_work import (
        SessionUnitOfWorkPort,
        StagingUnitOfWorkPort,
        TransactionalStore,
    )

    _store_check: TransactionalStore[AsyncSession] = sqlalchemy_store()
    _staging_check: StagingUnitOfWorkPort = staging_unit_of_work()
    _session_check: SessionUnitOfWorkPort[AsyncSession] = session_unit_of_work()
