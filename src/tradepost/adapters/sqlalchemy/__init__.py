"""SQLAlchemy adapter package for tradepost."""

from __future__ import annotations

from .mappings import (
    enforce_foreign_keys,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyAggregateRepository,
    SqlAlchemyOrderRepository,
    SqlAlchemyShopRepository,
    SqlAlchemyUserRepository,
    sqlalchemy_repositories,
)
from .unit_of_work import (
    SqlAlchemyStore,
    StartupError,
    configured_engine,
    is_started,
    session_unit_of_work,
    shutdown,
    sqlalchemy_store,
    staging_unit_of_work,
    startup,
)

__all__ = [
    "SqlAlchemyAggregateRepository",
    "SqlAlchemyOrderRepository",
    "SqlAlchemyShopRepository",
    "SqlAlchemyStore",
    "SqlAlchemyUserRepository",
    "StartupError",
    "configured_engine",
    "enforce_foreign_keys",
    "is_started",
    "mapper_registry",
    "session_unit_of_work",
    "shutdown",
    "sqlalchemy_repositories",
    "sqlalchemy_store",
    "staging_unit_of_work",
    "start_mappers",
    "startup",
]
