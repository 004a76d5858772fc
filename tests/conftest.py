"""Shared fixtures: a fresh SQLite panel database per test."""

import pytest
import pytest_asyncio

from acdpanel.db.init_db import init_db
from acdpanel.models.base import create_engine
from acdpanel.store import PanelStore
from factories import TickingClock, make_pool


@pytest.fixture
def clock():
    return TickingClock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'panel.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine, clock):
    return PanelStore.from_engine(engine, clock=clock)


@pytest.fixture
def registry(store):
    return store.registry


@pytest.fixture
def ledger(store):
    return store.ledger


@pytest.fixture
def panel(store):
    return store.panel


@pytest_asyncio.fixture
async def pool_id(registry):
    """Id of a registered ethereum WETH-USDC 5 bps pool."""
    return await registry.register(make_pool())


@pytest_asyncio.fixture
async def other_pool_id(registry, pool_id):
    """Id of a second pool (arbitrum WETH-USDC 5 bps)."""
    return await registry.register(
        make_pool(chain_name="arbitrum", pool_address="0xC6962004f452bE9203591991D15f6b388e09E8D0")
    )
