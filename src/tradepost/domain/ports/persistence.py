"""Ports for persisting domain aggregates inside a caller-owned transaction.

Implementations run their statements within whatever transaction they are handed
and never begin, commit or roll back on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from tradepost.domain.model import Order, Shop, User


@runtime_checkable
class AggregateRepository[TAggregate, TTransaction](Protocol):
    """Create/update/delete capability for one aggregate kind."""

    async def create(self, aggregate: TAggregate, transaction: TTransaction) -> TAggregate: ...

    async def update(self, aggregate: TAggregate, transaction: TTransaction) -> TAggregate: ...

    async def delete(self, aggregate: TAggregate, transaction: TTransaction) -> None: ...


@runtime_checkable
class UserRepository[TTransaction](AggregateRepository[User, TTransaction], Protocol):
    """Repository contract for users."""

    async def get(self, user_id: int, transaction: TTransaction) -> User | None: ...


@runtime_checkable
class ShopRepository[TTransaction](AggregateRepository[Shop, TTransaction], Protocol):
    """Repository contract for shops."""

    async def get(self, shop_id: int, transaction: TTransaction) -> Shop | None: ...


@runtime_checkable
class OrderRepository[TTransaction](AggregateRepository[Order, TTransaction], Protocol):
    """Repository contract for orders."""

    async def get(self, order_id: int, transaction: TTransaction) -> Order | None: ...


@dataclass(frozen=True, slots=True)
class AggregateRepositories[TTransaction]:
    """One repository per aggregate kind, all bound to the same transaction type."""

    users: UserRepository[TTransaction]
    shops: ShopRepository[TTransaction]
    orders: OrderRepository[TTransaction]
