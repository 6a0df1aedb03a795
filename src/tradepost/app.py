"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import Any

from tradepost.adapters.sqlalchemy import (
    session_unit_of_work,
    sqlalchemy_repositories,
    staging_unit_of_work,
)
from tradepost.domain.changes import OperationKind
from tradepost.domain.errors import AggregateNotFoundError
from tradepost.domain.model import AggregateKind, Order, Shop, User
from tradepost.domain.ports.persistence import AggregateRepositories
from tradepost.domain.ports.unit_of_work import StagingUnitOfWorkPort
from tradepost.domain.unit_of_work import SessionUnitOfWork

StagingUnitOfWorkFactory = Callable[[], StagingUnitOfWorkPort]
SessionUnitOfWorkFactory = Callable[[], SessionUnitOfWork[Any]]


log = getLogger(__name__)


@dataclass(slots=True)
class RenameUserResult:
    """Outcome of a rename as written inside the transaction."""

    user_id: int
    display_name: str
    committed: bool


async def create_user(
    *,
    display_name: str,
    email: str | None = None,
    unit_of_work_factory: SessionUnitOfWorkFactory | None = None,
    repositories: AggregateRepositories[Any] | None = None,
) -> User:
    """Persist a new user and return it with its assigned id."""

    user = User(display_name=display_name, email=email)
    if not user.is_valid():
        raise ValueError(f"Invalid user: display_name={display_name!r}, email={email!r}")

    factory = unit_of_work_factory or session_unit_of_work
    repos = repositories or sqlalchemy_repositories()
    async with factory() as uow:
        created = await repos.users.create(user, uow.transaction)
        await uow.commit()
    log.info("Created user %s", created.id)
    return created


async def create_shop(
    *,
    name: str,
    owner_id: int | None = None,
    unit_of_work_factory: SessionUnitOfWorkFactory | None = None,
    repositories: AggregateRepositories[Any] | None = None,
) -> Shop:
    """Persist a new shop and return it with its assigned id."""

    if not name.strip():
        raise ValueError("Shop name must not be blank")

    factory = unit_of_work_factory or session_unit_of_work
    repos = repositories or sqlalchemy_repositories()
    async with factory() as uow:
        created = await repos.shops.create(Shop(name=name, owner_id=owner_id), uow.transaction)
        await uow.commit()
    log.info("Created shop %s", created.id)
    return created


async def find_user_and_shop(
    *,
    user_id: int,
    shop_id: int,
    unit_of_work_factory: SessionUnitOfWorkFactory | None = None,
    repositories: AggregateRepositories[Any] | None = None,
) -> tuple[User, Shop]:
    """Load a user and a shop inside one transaction that writes nothing."""

    factory = unit_of_work_factory or session_unit_of_work
    repos = repositories or sqlalchemy_repositories()
    async with factory() as uow:
        user = await repos.users.get(user_id, uow.transaction)
        shop = await repos.shops.get(shop_id, uow.transaction)
        # commit keeps the loaded state readable; rollback would expire it
        await uow.commit()

    if user is None:
        raise AggregateNotFoundError(AggregateKind.USER, None, user_id, reason="no such row")
    if shop is None:
        raise AggregateNotFoundError(AggregateKind.SHOP, None, shop_id, reason="no such row")
    return user, shop


async def place_order(
    *,
    user: User,
    shop: Shop,
    total_cents: int,
    unit_of_work_factory: StagingUnitOfWorkFactory | None = None,
) -> Order:
    """Write the customer, the shop and a new order for them in one transaction.

    The user and shop are written before the order so the order's foreign keys
    always point at committed rows.
    """

    if user.id is None or shop.id is None:
        raise ValueError("User and shop must be persisted before placing an order")

    order = Order(user_id=user.id, shop_id=shop.id, total_cents=total_cents)
    uow = (unit_of_work_factory or staging_unit_of_work)()
    uow.stage_update(user)
    uow.stage_update(shop)
    uow.stage_create(order)
    await uow.commit()
    log.info("Placed order %s for user %s at shop %s", order.id, user.id, shop.id)
    return order


async def rename_user(
    *,
    user_id: int,
    display_name: str,
    unit_of_work_factory: SessionUnitOfWorkFactory | None = None,
    repositories: AggregateRepositories[Any] | None = None,
) -> RenameUserResult:
    """Rename a user, keeping the change only if the written user is still valid."""

    factory = unit_of_work_factory or session_unit_of_work
    repos = repositories or sqlalchemy_repositories()
    async with factory() as uow:
        user = await repos.users.get(user_id, uow.transaction)
        if user is None:
            raise AggregateNotFoundError(
                AggregateKind.USER, OperationKind.UPDATE, user_id, reason="no such row"
            )
        user.display_name = display_name
        updated = await repos.users.update(user, uow.transaction)
        written_name = updated.display_name
        if updated.is_valid():
            await uow.commit()
            committed = True
        else:
            log.warning("Rejected rename of user %s to %r", user_id, display_name)
            await uow.rollback()
            committed = False
    return RenameUserResult(user_id=user_id, display_name=written_name, committed=committed)
