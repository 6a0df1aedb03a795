from __future__ import annotations

import asyncio
import os
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from tradepost.adapters.sqlalchemy.unit_of_work import shutdown, startup
from tests.helpers.memory import MemoryStore, memory_repositories

os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tradepost.domain.ports.persistence import AggregateRepositories
    from tests.helpers.memory import MemoryTransaction


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def memory_repos(memory_store: MemoryStore) -> AggregateRepositories[MemoryTransaction]:
    return memory_repositories(memory_store)


@pytest.fixture
def database_uri(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'tradepost.db'}"


@pytest.fixture
def sqlite_engine(database_uri: str) -> Iterator[AsyncEngine]:
    # every asyncio.run gets its own loop, so connections must not outlive one
    engine = create_async_engine(database_uri, poolclass=NullPool)
    asyncio.run(startup(engine=engine, force=True))
    try:
        yield engine
    finally:
        asyncio.run(shutdown())
