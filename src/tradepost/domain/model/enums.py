"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class AggregateKind(StrEnum):
    """Discriminator of the closed aggregate union."""

    USER = "user"
    SHOP = "shop"
    ORDER = "order"


class OrderStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
