"""Units of work coordinating atomic, ordered writes across aggregate kinds.

Two coordinators share the same store and repository ports:

* :class:`StagingUnitOfWork` records commands in memory and replays them inside a
  single transaction when :meth:`StagingUnitOfWork.commit` is awaited. Nothing touches
  the store before that, so store-assigned state is unavailable until commit.
* :class:`SessionUnitOfWork` opens a transaction on :meth:`SessionUnitOfWork.begin`.
  Repositories run against :attr:`SessionUnitOfWork.transaction` immediately, so their
  results can decide between :meth:`~SessionUnitOfWork.commit` and
  :meth:`~SessionUnitOfWork.rollback`.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, Literal

from tradepost.domain.changes import (
    Aggregate,
    AggregateConvertible,
    ChangeLog,
    Command,
    OperationKind,
    as_aggregate,
)
from tradepost.domain.errors import (
    CommitError,
    PersistenceError,
    RollbackError,
    TransactionBeginError,
    TransactionStateError,
)
from tradepost.domain.model import AggregateKind, AggregateRoot, Order, Shop, User
from tradepost.domain.ports.unit_of_work import CoordinatorState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from tradepost.domain.ports.persistence import AggregateRepositories
    from tradepost.domain.ports.unit_of_work import TransactionalStore

log = getLogger(__name__)

type Handler[TTransaction] = Callable[[Any, TTransaction], Awaitable[object]]
type DispatchKey = tuple[AggregateKind, OperationKind]
type DispatchTable[TTransaction] = dict[DispatchKey, Handler[TTransaction]]


def build_dispatch_table[TTransaction](
    repositories: AggregateRepositories[TTransaction],
) -> DispatchTable[TTransaction]:
    """Map every (aggregate kind, operation) pair to the repository call that performs it."""

    users, shops, orders = repositories.users, repositories.shops, repositories.orders
    return {
        (AggregateKind.USER, OperationKind.CREATE): users.create,
        (AggregateKind.USER, OperationKind.UPDATE): users.update,
        (AggregateKind.USER, OperationKind.DELETE): users.delete,
        (AggregateKind.SHOP, OperationKind.CREATE): shops.create,
        (AggregateKind.SHOP, OperationKind.UPDATE): shops.update,
        (AggregateKind.SHOP, OperationKind.DELETE): shops.delete,
        (AggregateKind.ORDER, OperationKind.CREATE): orders.create,
        (AggregateKind.ORDER, OperationKind.UPDATE): orders.update,
        (AggregateKind.ORDER, OperationKind.DELETE): orders.delete,
    }


# Command staging ---------------------------------------------------------------


class StagedRepository[TAggregate: AggregateRoot]:
    """Repository-shaped view that stages commands for one aggregate kind."""

    def __init__(
        self,
        unit_of_work: StagingUnitOfWork[Any],
        aggregate_cls: type[TAggregate],
    ) -> None:
        self._unit_of_work = unit_of_work
        self._aggregate_cls = aggregate_cls

    def create(self, aggregate: TAggregate) -> None:
        self._unit_of_work.stage_create(self._check(aggregate))

    def update(self, aggregate: TAggregate) -> None:
        self._unit_of_work.stage_update(self._check(aggregate))

    def delete(self, aggregate: TAggregate) -> None:
        self._unit_of_work.stage_delete(self._check(aggregate))

    def _check(self, aggregate: TAggregate) -> Aggregate:
        if not isinstance(aggregate, self._aggregate_cls):
            raise TypeError(
                f"Expected {self._aggregate_cls.__name__}, got {type(aggregate).__name__}"
            )
        return as_aggregate(aggregate)  # pyright: ignore[reportArgumentType]


class StagingUnitOfWork[TTransaction]:
    """Collects commands and executes them, in order, in one transaction at commit."""

    def __init__(
        self,
        store: TransactionalStore[TTransaction],
        repositories: AggregateRepositories[TTransaction],
    ) -> None:
        self._store = store
        self._handlers = build_dispatch_table(repositories)
        self._changes = ChangeLog()
        self.users = StagedRepository(self, User)
        self.shops = StagedRepository(self, Shop)
        self.orders = StagedRepository(self, Order)

    @property
    def pending(self) -> tuple[Command, ...]:
        return self._changes.snapshot()

    def stage_create(self, aggregate: Aggregate | AggregateConvertible) -> None:
        self._stage(aggregate, OperationKind.CREATE)

    def stage_update(self, aggregate: Aggregate | AggregateConvertible) -> None:
        self._stage(aggregate, OperationKind.UPDATE)

    def stage_delete(self, aggregate: Aggregate | AggregateConvertible) -> None:
        self._stage(aggregate, OperationKind.DELETE)

    def _stage(self, aggregate: Aggregate | AggregateConvertible, operation: OperationKind) -> None:
        command = Command(as_aggregate(aggregate), operation)
        self._changes.append(command)
        log.debug("Staged %s", command.describe())

    async def commit(self) -> None:
        """Replay every staged command inside one transaction, or none of them."""

        commands = self._changes.drain()
        if not commands:
            log.debug("Nothing staged, skipping commit")
            return

        try:
            transaction = await self._store.open_transaction()
        except Exception as exc:
            raise TransactionBeginError("Failed to begin transaction") from exc

        try:
            for position, command in enumerate(commands, start=1):
                await self._replay(command, transaction, position)
        except BaseException as exc:
            await self._abort(transaction, exc)
            raise

        try:
            await self._store.commit(transaction)
        except Exception as exc:
            raise CommitError(f"Failed to commit {len(commands)} staged command(s)") from exc
        log.info("Committed %d staged command(s)", len(commands))

    async def _replay(self, command: Command, transaction: TTransaction, position: int) -> None:
        handler = self._handlers[(command.kind, command.operation)]
        try:
            await handler(command.aggregate, transaction)
        except PersistenceError as exc:
            raise type(exc)(
                exc.kind,
                exc.operation,
                exc.aggregate_id,
                reason=exc.reason,
                position=position,
            ) from exc
        except Exception as exc:
            raise PersistenceError(
                command.kind,
                command.operation,
                command.aggregate.id,
                reason=str(exc) or type(exc).__name__,
                position=position,
            ) from exc

    async def _abort(self, transaction: TTransaction, error: BaseException) -> None:
        try:
            await self._store.rollback(transaction)
        except Exception:
            log.exception("Rollback after a failed replay also failed")
            error.add_note("The enclosing transaction could not be rolled back cleanly.")
        else:
            log.warning("Rolled back staged commands: %s", error)


# Live session ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Active[TTransaction]:
    transaction: TTransaction


IDLE: Final = Idle()


class SessionUnitOfWork[TTransaction]:
    """Owns at most one open transaction between ``begin`` and ``commit``/``rollback``."""

    def __init__(self, store: TransactionalStore[TTransaction]) -> None:
        self._store = store
        self._state: Idle | Active[TTransaction] = IDLE

    @property
    def state(self) -> CoordinatorState:
        match self._state:
            case Active():
                return CoordinatorState.ACTIVE
            case Idle():
                return CoordinatorState.IDLE

    @property
    def is_active(self) -> bool:
        return isinstance(self._state, Active)

    @property
    def transaction(self) -> TTransaction:
        match self._state:
            case Active(transaction=transaction):
                return transaction
            case Idle():
                raise TransactionStateError("Transaction is not started")

    async def begin(self) -> None:
        if self.is_active:
            raise TransactionStateError("Transaction is already started")
        try:
            transaction = await self._store.open_transaction()
        except Exception as exc:
            raise TransactionBeginError("Failed to begin transaction") from exc
        self._state = Active(transaction)
        log.debug("Began transaction")

    async def commit(self) -> None:
        transaction = self._release()
        try:
            await self._store.commit(transaction)
        except Exception as exc:
            raise CommitError("Failed to commit transaction") from exc
        log.info("Committed transaction")

    async def rollback(self) -> None:
        transaction = self._release()
        try:
            await self._store.rollback(transaction)
        except Exception as exc:
            raise RollbackError("Failed to rollback transaction") from exc
        log.info("Rolled back transaction")

    def _release(self) -> TTransaction:
        # Idle before the store call so a failed or cancelled call never leaves a handle behind.
        transaction = self.transaction
        self._state = IDLE
        return transaction

    async def __aenter__(self) -> SessionUnitOfWork[TTransaction]:
        await self.begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if not self.is_active:
            return False
        if exc_value is None:
            log.warning("Unit of work left without commit, rolling back")
        try:
            await self.rollback()
        except RollbackError:
            if exc_value is None:
                raise
            log.exception("Rollback on exit failed")
            exc_value.add_note("The open transaction could not be rolled back cleanly.")
        return False  # don't swallow exceptions
