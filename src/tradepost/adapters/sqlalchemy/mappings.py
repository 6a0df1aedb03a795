"""SQLAlchemy mapping metadata for the tradepost domain model."""

from __future__ import annotations

import logging
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    event,
    orm,
)
from sqlalchemy.orm import configure_mappers

from tradepost.domain.model import Order, OrderStatus, Shop, User

if TYPE_CHECKING:
    from sqlalchemy.engine.interfaces import DBAPIConnection
    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.pool import ConnectionPoolEntry

log = logging.getLogger(__name__)

mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

user_table = Table(
    "user",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("display_name", String, nullable=False),
    Column("email", String, nullable=True, unique=True),
)

shop_table = Table(
    "shop",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("owner_id", Integer, ForeignKey("user.id"), nullable=True),
)

order_table = Table(
    "order",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("user.id"), nullable=False),
    Column("shop_id", Integer, ForeignKey("shop.id"), nullable=False),
    Column("total_cents", Integer, nullable=False, default=0),
    Column("status", Enum(OrderStatus, native_enum=False), nullable=False),
    CheckConstraint("total_cents >= 0", name="non_negative_total"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(User, user_table)
    mapper_registry.map_imperatively(Shop, shop_table)
    mapper_registry.map_imperatively(Order, order_table)

    configure_mappers()
    return mapper_registry


def _enable_sqlite_foreign_keys(
    dbapi_connection: DBAPIConnection,
    connection_record: ConnectionPoolEntry,
) -> None:
    _ = connection_record
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def enforce_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores foreign keys unless every connection opts in."""

    if engine.dialect.name != "sqlite":
        return
    if not event.contains(engine.sync_engine, "connect", _enable_sqlite_foreign_keys):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
