"""Store-assigned identity shared by every aggregate root."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from tradepost.domain.model.enums import AggregateKind


@dataclass(eq=False, kw_only=True)
class AggregateRoot:
    """Identity is assigned by the store on first insert unless given explicitly."""

    id: int | None = None

    # class-level discriminator; subclasses must override
    AGGREGATE_KIND: ClassVar[AggregateKind]

    @property
    def kind(self) -> AggregateKind:
        return self.AGGREGATE_KIND

    @property
    def is_persisted(self) -> bool:
        return self.id is not None
