"""In-memory store and repositories that journal every call."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from tradepost.domain.changes import OperationKind
from tradepost.domain.errors import AggregateNotFoundError, PersistenceError
from tradepost.domain.model import AggregateKind, AggregateRoot, Order, Shop, User
from tradepost.domain.ports.persistence import AggregateRepositories

if TYPE_CHECKING:
    from tradepost.domain.changes import Aggregate

type RowKey = tuple[AggregateKind, int]


@dataclass(eq=False)
class MemoryTransaction:
    number: int
    changes: dict[RowKey, AggregateRoot | None] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)


@dataclass(eq=False)
class MemoryStore:
    """A store whose durable state only changes on a successful commit."""

    rows: dict[AggregateKind, dict[int, AggregateRoot]] = field(
        default_factory=lambda: {kind: {} for kind in AggregateKind}
    )
    journal: list[str] = field(default_factory=list)
    durable_writes: list[str] = field(default_factory=list)
    open_transactions: list[MemoryTransaction] = field(default_factory=list)
    failures: dict[tuple[AggregateKind, OperationKind], Exception] = field(default_factory=dict)
    gates: dict[tuple[AggregateKind, OperationKind], asyncio.Event] = field(default_factory=dict)
    gate_reached: asyncio.Event = field(default_factory=asyncio.Event)
    fail_open: int = 0
    fail_commit: bool = False
    fail_rollback: bool = False
    _numbers: itertools.count[int] = field(default_factory=lambda: itertools.count(1))

    async def open_transaction(self) -> MemoryTransaction:
        self.journal.append("open")
        if self.fail_open > 0:
            self.fail_open -= 1
            raise ConnectionError("store unavailable")
        transaction = MemoryTransaction(number=next(self._numbers))
        self.open_transactions.append(transaction)
        return transaction

    async def commit(self, transaction: MemoryTransaction) -> None:
        self.journal.append("commit")
        self._close(transaction)
        if self.fail_commit:
            raise OSError("commit lost")
        for (kind, row_id), aggregate in transaction.changes.items():
            if aggregate is None:
                self.rows[kind].pop(row_id, None)
            else:
                self.rows[kind][row_id] = aggregate
        self.durable_writes.extend(transaction.writes)

    async def rollback(self, transaction: MemoryTransaction) -> None:
        self.journal.append("rollback")
        self._close(transaction)
        if self.fail_rollback:
            raise OSError("rollback lost")

    def seed(self, *aggregates: Aggregate) -> None:
        for aggregate in aggregates:
            assert aggregate.id is not None
            self.rows[aggregate.kind][aggregate.id] = aggregate

    def lookup(
        self,
        kind: AggregateKind,
        row_id: int,
        transaction: MemoryTransaction,
    ) -> AggregateRoot | None:
        if (kind, row_id) in transaction.changes:
            return transaction.changes[(kind, row_id)]
        return self.rows[kind].get(row_id)

    def next_id(self, kind: AggregateKind, transaction: MemoryTransaction) -> int:
        pending = [row_id for (k, row_id) in transaction.changes if k is kind]
        return max([0, *self.rows[kind], *pending]) + 1

    def _close(self, transaction: MemoryTransaction) -> None:
        if transaction not in self.open_transactions:
            raise AssertionError(f"transaction {transaction.number} is not open")
        self.open_transactions.remove(transaction)


class MemoryRepository[TAggregate: AggregateRoot]:
    def __init__(self, store: MemoryStore, aggregate_cls: type[TAggregate]) -> None:
        self._store = store
        self._aggregate_cls = aggregate_cls
        self._kind = aggregate_cls.AGGREGATE_KIND

    async def get(self, aggregate_id: int, transaction: MemoryTransaction) -> TAggregate | None:
        found = self._store.lookup(self._kind, aggregate_id, transaction)
        return replace(found) if isinstance(found, self._aggregate_cls) else None

    async def create(self, aggregate: TAggregate, transaction: MemoryTransaction) -> TAggregate:
        await self._enter(OperationKind.CREATE, aggregate, transaction)
        if aggregate.id is None:
            aggregate.id = self._store.next_id(self._kind, transaction)
        elif self._store.lookup(self._kind, aggregate.id, transaction) is not None:
            raise PersistenceError(
                self._kind, OperationKind.CREATE, aggregate.id, reason="duplicate key"
            )
        self._write(OperationKind.CREATE, aggregate, transaction, aggregate)
        return aggregate

    async def update(self, aggregate: TAggregate, transaction: MemoryTransaction) -> TAggregate:
        await self._enter(OperationKind.UPDATE, aggregate, transaction)
        self._require_existing(OperationKind.UPDATE, aggregate, transaction)
        self._write(OperationKind.UPDATE, aggregate, transaction, aggregate)
        return aggregate

    async def delete(self, aggregate: TAggregate, transaction: MemoryTransaction) -> None:
        await self._enter(OperationKind.DELETE, aggregate, transaction)
        self._require_existing(OperationKind.DELETE, aggregate, transaction)
        self._write(OperationKind.DELETE, aggregate, transaction, None)

    async def _enter(
        self,
        operation: OperationKind,
        aggregate: TAggregate,
        transaction: MemoryTransaction,
    ) -> None:
        if transaction not in self._store.open_transactions:
            raise AssertionError("repository used outside an open transaction")
        self._store.journal.append(f"{operation} {self._kind}#{aggregate.id}")
        gate = self._store.gates.get((self._kind, operation))
        if gate is not None:
            self._store.gate_reached.set()
            await gate.wait()
        failure = self._store.failures.get((self._kind, operation))
        if failure is not None:
            raise failure

    def _require_existing(
        self,
        operation: OperationKind,
        aggregate: TAggregate,
        transaction: MemoryTransaction,
    ) -> None:
        if aggregate.id is None:
            raise AggregateNotFoundError(self._kind, operation, None, reason="not persisted")
        if self._store.lookup(self._kind, aggregate.id, transaction) is None:
            raise AggregateNotFoundError(self._kind, operation, aggregate.id, reason="no such row")

    def _write(
        self,
        operation: OperationKind,
        aggregate: TAggregate,
        transaction: MemoryTransaction,
        state: TAggregate | None,
    ) -> None:
        assert aggregate.id is not None
        transaction.changes[(self._kind, aggregate.id)] = None if state is None else replace(state)
        transaction.writes.append(f"{operation} {self._kind}#{aggregate.id}")


def memory_repositories(store: MemoryStore) -> AggregateRepositories[MemoryTransaction]:
    return AggregateRepositories(
        users=MemoryRepository(store, User),
        shops=MemoryRepository(store, Shop),
        orders=MemoryRepository(store, Order),
    )
