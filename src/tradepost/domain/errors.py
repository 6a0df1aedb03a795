"""Errors raised while coordinating units of work.

Hierarchy::

    UnitOfWorkError
    ├── TransactionStateError   begin/commit/rollback called in the wrong state
    ├── TransactionBeginError   the store could not open a transaction
    ├── PersistenceError        a single load/create/update/delete failed
    │   └── AggregateNotFoundError
    ├── CommitError             the store failed to finalize the transaction
    └── RollbackError           the store failed to discard the transaction
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tradepost.domain.changes import OperationKind
    from tradepost.domain.model import AggregateKind


class UnitOfWorkError(RuntimeError):
    """Base class for unit-of-work failures."""


class TransactionStateError(UnitOfWorkError):
    """Raised when a transaction boundary is crossed from the wrong state."""


class TransactionBeginError(UnitOfWorkError):
    """Raised when the store cannot open a transaction."""


class CommitError(UnitOfWorkError):
    """Raised when the store fails to commit; the transaction is released regardless."""


class RollbackError(UnitOfWorkError):
    """Raised when the store fails to roll back; the transaction is released regardless."""


class PersistenceError(UnitOfWorkError):
    """A statement failed for one aggregate.

    ``operation`` is ``None`` for a read, which is reported as a load.
    """

    def __init__(
        self,
        kind: AggregateKind,
        operation: OperationKind | None,
        aggregate_id: int | None,
        *,
        reason: str | None = None,
        position: int | None = None,
    ) -> None:
        self.kind = kind
        self.operation = operation
        self.aggregate_id = aggregate_id
        self.reason = reason
        self.position = position
        super().__init__(self._format())

    def _format(self) -> str:
        target = f"{self.kind}#{self.aggregate_id}" if self.aggregate_id is not None else self.kind
        verb = "load" if self.operation is None else self.operation
        message = f"Failed to {verb} {target}"
        if self.position is not None:
            message += f" (staged command {self.position})"
        if self.reason:
            message += f": {self.reason}"
        return message


class AggregateNotFoundError(PersistenceError):
    """The aggregate to load, update or delete does not exist in the store."""
