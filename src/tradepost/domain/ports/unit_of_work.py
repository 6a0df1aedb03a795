"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from tradepost.domain.changes import Aggregate, AggregateConvertible, Command


class CoordinatorState(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"


@runtime_checkable
class TransactionalStore[TTransaction](Protocol):
    """The single transactional resource behind every unit of work."""

    async def open_transaction(self) -> TTransaction: ...

    async def commit(self, transaction: TTransaction) -> None: ...

    async def rollback(self, transaction: TTransaction) -> None: ...


@runtime_checkable
class StagingUnitOfWorkPort(Protocol):
    """Records writes in memory and executes them all at commit."""

    @property
    def pending(self) -> tuple[Command, ...]: ...

    def stage_create(self, aggregate: Aggregate | AggregateConvertible) -> None: ...

    def stage_update(self, aggregate: Aggregate | AggregateConvertible) -> None: ...

    def stage_delete(self, aggregate: Aggregate | AggregateConvertible) -> None: ...

    async def commit(self) -> None: ...


@runtime_checkable
class SessionUnitOfWorkPort[TTransaction](Protocol):
    """Holds one live transaction between ``begin`` and ``commit``/``rollback``."""

    @property
    def state(self) -> CoordinatorState: ...

    @property
    def transaction(self) -> TTransaction: ...  # only while active

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def __aenter__(self) -> SessionUnitOfWorkPort[TTransaction]: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...
