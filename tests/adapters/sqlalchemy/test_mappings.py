from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from sqlalchemy import event, inspect

from tradepost.adapters.sqlalchemy import (
    enforce_foreign_keys,
    start_mappers,
)
from tradepost.adapters.sqlalchemy.mappings import _enable_sqlite_foreign_keys

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.ext.asyncio import AsyncEngine


def _table_names(connection: Connection) -> set[str]:
    return set(inspect(connection).get_table_names())


def _foreign_key_names(connection: Connection) -> set[str | None]:
    inspector = inspect(connection)
    return {fk["name"] for table in ("shop", "order") for fk in inspector.get_foreign_keys(table)}


def test_start_mappers_is_idempotent() -> None:
    # First invocation happens in the sqlite_engine fixture; calling again should be harmless.
    start_mappers()
    start_mappers()


def test_migrations_create_core_tables(sqlite_engine: AsyncEngine) -> None:
    async def scenario() -> set[str]:
        async with sqlite_engine.connect() as connection:
            return await connection.run_sync(_table_names)

    table_names = asyncio.run(scenario())

    assert {"user", "shop", "order", "alembic_version"} <= table_names


def test_migrations_name_foreign_keys_by_convention(sqlite_engine: AsyncEngine) -> None:
    async def scenario() -> set[str | None]:
        async with sqlite_engine.connect() as connection:
            return await connection.run_sync(_foreign_key_names)

    assert asyncio.run(scenario()) == {
        "fk_shop_shop_owner_id_user",
        "fk_order_order_user_id_user",
        "fk_order_order_shop_id_shop",
    }


def test_enforce_foreign_keys_registers_once(sqlite_engine: AsyncEngine) -> None:
    enforce_foreign_keys(sqlite_engine)
    enforce_foreign_keys(sqlite_engine)

    assert event.contains(sqlite_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
