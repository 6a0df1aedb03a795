"""Users, shops and the orders placed between them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from tradepost.domain.model.base import AggregateRoot
from tradepost.domain.model.enums import AggregateKind, OrderStatus


@dataclass(eq=False, kw_only=True)
class User(AggregateRoot):
    AGGREGATE_KIND: ClassVar[AggregateKind] = AggregateKind.USER

    display_name: str
    email: str | None = None

    def is_valid(self) -> bool:
        """Return whether the user may be persisted as-is."""

        if not self.display_name.strip():
            return False
        if self.email is None:
            return True
        local, sep, domain = self.email.partition("@")
        return bool(sep) and bool(local) and bool(domain) and "@" not in domain


@dataclass(eq=False, kw_only=True)
class Shop(AggregateRoot):
    AGGREGATE_KIND: ClassVar[AggregateKind] = AggregateKind.SHOP

    name: str
    owner_id: int | None = None


@dataclass(eq=False, kw_only=True)
class Order(AggregateRoot):
    """An order of ``user_id`` at ``shop_id``; both must exist when it is written."""

    AGGREGATE_KIND: ClassVar[AggregateKind] = AggregateKind.ORDER

    user_id: int
    shop_id: int
    total_cents: int = 0
    status: OrderStatus = OrderStatus.PENDING

    def __post_init__(self) -> None:
        if self.total_cents < 0:
            raise ValueError("Order total must be non-negative")
