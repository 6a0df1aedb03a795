from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradepost.adapters.sqlalchemy.repositories import (
    SqlAlchemyOrderRepository,
    SqlAlchemyShopRepository,
    SqlAlchemyUserRepository,
)
from tradepost.domain.changes import OperationKind
from tradepost.domain.errors import AggregateNotFoundError, PersistenceError
from tradepost.domain.model import AggregateKind, Order, Shop, User

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine


def _in_session[T](
    engine: AsyncEngine,
    work: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    async def scenario() -> T:
        factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as session, session.begin():
            return await work(session)

    return asyncio.run(scenario())


def test_create_assigns_identifier(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyUserRepository()

    async def work(session: AsyncSession) -> User:
        return await repo.create(User(display_name="Ada"), session)

    user = _in_session(sqlite_engine, work)

    assert user.id == 1


def test_get_returns_none_for_missing_row(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyShopRepository()

    async def work(session: AsyncSession) -> Shop | None:
        return await repo.get(404, session)

    assert _in_session(sqlite_engine, work) is None


def test_update_writes_detached_aggregate(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyShopRepository()

    async def create(session: AsyncSession) -> Shop:
        return await repo.create(Shop(name="Corner"), session)

    shop = _in_session(sqlite_engine, create)
    shop.name = "Corner Deli"

    async def update(session: AsyncSession) -> Shop:
        return await repo.update(shop, session)

    updated = _in_session(sqlite_engine, update)

    async def reload(session: AsyncSession) -> Shop | None:
        return await repo.get(shop.id or 0, session)

    reloaded = _in_session(sqlite_engine, reload)
    assert updated.name == "Corner Deli"
    assert reloaded is not None
    assert reloaded.name == "Corner Deli"


def test_update_missing_row_raises_not_found(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyUserRepository()

    async def work(session: AsyncSession) -> User:
        return await repo.update(User(id=12, display_name="Ghost"), session)

    with pytest.raises(AggregateNotFoundError) as excinfo:
        _in_session(sqlite_engine, work)

    assert excinfo.value.kind is AggregateKind.USER
    assert excinfo.value.operation is OperationKind.UPDATE
    assert excinfo.value.aggregate_id == 12


def test_delete_unsaved_aggregate_raises_not_found(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyOrderRepository()

    async def work(session: AsyncSession) -> None:
        await repo.delete(Order(user_id=1, shop_id=1), session)

    with pytest.raises(AggregateNotFoundError, match="has not been persisted"):
        _in_session(sqlite_engine, work)


def test_delete_removes_row(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyUserRepository()

    async def create(session: AsyncSession) -> User:
        return await repo.create(User(display_name="Ada"), session)

    user = _in_session(sqlite_engine, create)

    async def delete(session: AsyncSession) -> None:
        await repo.delete(user, session)

    _in_session(sqlite_engine, delete)

    async def reload(session: AsyncSession) -> User | None:
        return await repo.get(user.id or 0, session)

    assert _in_session(sqlite_engine, reload) is None


def test_constraint_violation_becomes_persistence_error(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyOrderRepository()

    async def work(session: AsyncSession) -> Order:
        return await repo.create(Order(user_id=1, shop_id=1), session)

    with pytest.raises(PersistenceError, match="FOREIGN KEY") as excinfo:
        _in_session(sqlite_engine, work)

    assert excinfo.value.kind is AggregateKind.ORDER
    assert excinfo.value.operation is OperationKind.CREATE
    assert excinfo.value.position is None


def test_create_rejects_already_persisted_aggregate(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyUserRepository()

    async def create(session: AsyncSession) -> User:
        return await repo.create(User(display_name="Ada"), session)

    user = _in_session(sqlite_engine, create)
    user.display_name = "Changed"

    async def create_again(session: AsyncSession) -> User:
        return await repo.create(user, session)

    with pytest.raises(PersistenceError, match="already persisted") as excinfo:
        _in_session(sqlite_engine, create_again)

    async def reload(session: AsyncSession) -> User | None:
        return await repo.get(user.id or 0, session)

    reloaded = _in_session(sqlite_engine, reload)
    assert excinfo.value.operation is OperationKind.CREATE
    assert excinfo.value.aggregate_id == user.id
    assert reloaded is not None
    assert reloaded.display_name == "Ada"


def test_create_rejects_aggregate_whose_row_is_gone(sqlite_engine: AsyncEngine) -> None:
    repo = SqlAlchemyShopRepository()

    async def create(session: AsyncSession) -> Shop:
        return await repo.create(Shop(name="Corner"), session)

    shop = _in_session(sqlite_engine, create)

    async def delete(session: AsyncSession) -> None:
        await repo.delete(shop, session)

    _in_session(sqlite_engine, delete)

    async def create_again(session: AsyncSession) -> Shop:
        return await repo.create(shop, session)

    with pytest.raises(PersistenceError, match="already persisted"):
        _in_session(sqlite_engine, create_again)
