"""Public domain model surface."""

from __future__ import annotations

from tradepost.domain.model.base import AggregateRoot
from tradepost.domain.model.commerce import Order, Shop, User
from tradepost.domain.model.enums import AggregateKind, OrderStatus

__all__ = [
    "AggregateKind",
    "AggregateRoot",
    "Order",
    "OrderStatus",
    "Shop",
    "User",
]
