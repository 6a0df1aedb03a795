"""Ports implemented by adapters."""

from __future__ import annotations

from .persistence import (
    AggregateRepositories,
    AggregateRepository,
    OrderRepository,
    ShopRepository,
    UserRepository,
)
from .unit_of_work import (
    CoordinatorState,
    SessionUnitOfWorkPort,
    StagingUnitOfWorkPort,
    TransactionalStore,
)

__all__ = [
    "AggregateRepositories",
    "AggregateRepository",
    "CoordinatorState",
    "OrderRepository",
    "SessionUnitOfWorkPort",
    "ShopRepository",
    "StagingUnitOfWorkPort",
    "TransactionalStore",
    "UserRepository",
]
