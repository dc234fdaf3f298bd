"""
Shared fixtures: a controllable clock, an engine on a temporary
database file and a session store wired to both.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from kvsession.core.config import EngineConfig, StoreConfig
from kvsession.session.context import RequestContext
from kvsession.session.session import SessionOptions
from kvsession.session.store import SessionStore
from kvsession.storage.engine import KVEngine

HASH_KEY = b"h" * 32
BLOCK_KEY = b"b" * 32
T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced Unix-seconds clock."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "sessions.db"


@pytest_asyncio.fixture
async def engine(db_path: Path):
    kv = KVEngine(EngineConfig(db_path=db_path))
    result = await kv.open()
    assert result.is_ok(), result
    yield kv
    await kv.close()


@pytest_asyncio.fixture
async def store(engine: KVEngine, clock: FakeClock) -> SessionStore:
    result = await SessionStore.open(
        engine, StoreConfig(), HASH_KEY, BLOCK_KEY, clock=clock,
    )
    assert result.is_ok(), result
    return result.unwrap()


def make_context(token: str | None = None, name: str = "test", max_age: int = 0) -> RequestContext:
    cookies = {name: token} if token is not None else None
    return RequestContext(cookies=cookies, options=SessionOptions(max_age=max_age))
