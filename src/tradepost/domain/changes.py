"""Change vocabulary shared by the units of work.

An :data:`Aggregate` is one of the closed set of aggregate roots. Staged writes are
recorded as :class:`Command` values in a :class:`ChangeLog`, whose insertion order is the
write order used at commit time (parents before children for foreign keys).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from tradepost.domain.model import AggregateKind, Order, Shop, User

if TYPE_CHECKING:
    from collections.abc import Iterator

type Aggregate = User | Shop | Order

AGGREGATE_CLASSES: Final[dict[AggregateKind, type[User | Shop | Order]]] = {
    AggregateKind.USER: User,
    AggregateKind.SHOP: Shop,
    AggregateKind.ORDER: Order,
}


class OperationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@runtime_checkable
class AggregateConvertible(Protocol):
    """Anything that knows which aggregate it stands for."""

    def to_aggregate(self) -> Aggregate: ...


def as_aggregate(value: Aggregate | AggregateConvertible) -> Aggregate:
    """Convert ``value`` into a member of the aggregate union."""

    aggregate_types = tuple(AGGREGATE_CLASSES.values())
    if isinstance(value, aggregate_types):
        return value
    if isinstance(value, AggregateConvertible):
        converted = value.to_aggregate()
        if isinstance(converted, aggregate_types):
            return converted
        raise TypeError(
            f"{type(value).__name__}.to_aggregate() returned {type(converted).__name__}, "
            "which is not an aggregate"
        )
    raise TypeError(f"{type(value).__name__} is not convertible into an aggregate")


@dataclass(frozen=True, slots=True)
class Command:
    aggregate: Aggregate
    operation: OperationKind

    @property
    def kind(self) -> AggregateKind:
        return self.aggregate.kind

    def describe(self) -> str:
        return f"{self.operation} {self.kind}#{self.aggregate.id}"


@dataclass(slots=True)
class ChangeLog:
    """Append-only, ordered buffer of staged commands."""

    _commands: list[Command] = field(default_factory=list[Command])

    def append(self, command: Command) -> None:
        self._commands.append(command)

    def drain(self) -> tuple[Command, ...]:
        """Hand over every staged command in order and leave the log empty."""

        drained = tuple(self._commands)
        self._commands.clear()
        return drained

    def snapshot(self) -> tuple[Command, ...]:
        return tuple(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(tuple(self._commands))

    def __bool__(self) -> bool:
        return bool(self._commands)
