"""Repository implementations running inside a caller-owned ``AsyncSession``."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from tradepost.domain.changes import OperationKind
from tradepost.domain.errors import AggregateNotFoundError, PersistenceError
from tradepost.domain.model import AggregateRoot, Order, Shop, User
from tradepost.domain.ports.persistence import AggregateRepositories

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

log = getLogger(__name__)


class SqlAlchemyAggregateRepository[TAggregate: AggregateRoot]:
    """Shared create/update/delete for one mapped aggregate class.

    Every call flushes, so constraint violations surface here as
    :class:`PersistenceError` and store-assigned ids are visible on return.
    """

    def __init__(self, aggregate_cls: type[TAggregate]) -> None:
        self._aggregate_cls = aggregate_cls
        self._kind = aggregate_cls.AGGREGATE_KIND

    async def get(self, aggregate_id: int, transaction: AsyncSession) -> TAggregate | None:
        return await transaction.get(self._aggregate_cls, aggregate_id)

    async def create(self, aggregate: TAggregate, transaction: AsyncSession) -> TAggregate:
        # add() re-attaches an instance with an identity key, which would UPDATE instead
        if inspect(aggregate).key is not None:
            raise PersistenceError(
                self._kind,
                OperationKind.CREATE,
                aggregate.id,
                reason="aggregate is already persisted",
            )
        try:
            transaction.add(aggregate)
            await transaction.flush()
        except SQLAlchemyError as exc:
            raise self._failure(OperationKind.CREATE, aggregate, exc) from exc
        log.debug("Created %s#%s", self._kind, aggregate.id)
        return aggregate

    async def update(self, aggregate: TAggregate, transaction: AsyncSession) -> TAggregate:
        await self._require_existing(OperationKind.UPDATE, aggregate, transaction)
        try:
            merged = await transaction.merge(aggregate)
            await transaction.flush()
        except SQLAlchemyError as exc:
            raise self._failure(OperationKind.UPDATE, aggregate, exc) from exc
        log.debug("Updated %s#%s", self._kind, merged.id)
        return merged

    async def delete(self, aggregate: TAggregate, transaction: AsyncSession) -> None:
        existing = await self._require_existing(OperationKind.DELETE, aggregate, transaction)
        try:
            await transaction.delete(existing)
            await transaction.flush()
        except SQLAlchemyError as exc:
            raise self._failure(OperationKind.DELETE, aggregate, exc) from exc
        log.debug("Deleted %s#%s", self._kind, aggregate.id)

    async def _require_existing(
        self,
        operation: OperationKind,
        aggregate: TAggregate,
        transaction: AsyncSession,
    ) -> TAggregate:
        if not aggregate.is_persisted or aggregate.id is None:
            raise AggregateNotFoundError(
                self._kind, operation, None, reason="aggregate has not been persisted"
            )
        try:
            existing = await transaction.get(self._aggregate_cls, aggregate.id)
        except SQLAlchemyError as exc:
            raise self._failure(operation, aggregate, exc) from exc
        if existing is None:
            raise AggregateNotFoundError(self._kind, operation, aggregate.id, reason="no such row")
        return existing

    def _failure(
        self,
        operation: OperationKind,
        aggregate: TAggregate,
        exc: SQLAlchemyError,
    ) -> PersistenceError:
        reason = str(getattr(exc, "orig", None) or exc)
        return PersistenceError(self._kind, operation, aggregate.id, reason=reason)


class SqlAlchemyUserRepository(SqlAlchemyAggregateRepository[User]):
    def __init__(self) -> None:
        super().__init__(User)


class SqlAlchemyShopRepository(SqlAlchemyAggregateRepository[Shop]):
    def __init__(self) -> None:
        super().__init__(Shop)


class SqlAlchemyOrderRepository(SqlAlchemyAggregateRepository[Order]):
    def __init__(self) -> None:
        super().__init__(Order)


def sqlalchemy_repositories() -> AggregateRepositories[AsyncSession]:
    """Return the capability set for every aggregate kind."""

    return AggregateRepositories(
        users=SqlAlchemyUserRepository(),
        shops=SqlAlchemyShopRepository(),
        orders=SqlAlchemyOrderRepository(),
    )


if TYPE_CHECKING:
    from tradepost.domain.ports.persistence import (
        OrderRepository,
        ShopRepository,
        UserRepository,
    )

    _user_repo: UserRepository[AsyncSession] = SqlAlchemyUserRepository()
    _shop_repo: ShopRepository[AsyncSession] = SqlAlchemyShopRepository()
    _order_repo: OrderRepository[AsyncSession] = SqlAlchemyOrderRepository()
