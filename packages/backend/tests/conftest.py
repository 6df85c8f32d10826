"""Test fixtures — in-memory store and broker, wired through the real context.

Learn: Nothing here talks to MongoDB or Redis. The pipeline components get
fakes through their constructors (the same way the lifespan hands them real
clients), and the HTTP tests set app.state.context directly because
ASGITransport does not run the lifespan.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from evcharge.config import Settings
from evcharge.context import assemble_context
from evcharge.main import create_app
from evcharge.metrics import PipelineStats
from evcharge.realtime.publisher import FanoutPublisher
from fakes import FakeBroker, FakeDatabase

CHANNEL = "client_activity_channel"


@pytest.fixture()
def settings():
    return Settings(
        redis_url="",
        environment="development",
        stats_interval_seconds=30,
        stats_cache_ttl_seconds=300,
        stats_read_timeout_seconds=0.5,
    )


@pytest.fixture()
def db():
    return FakeDatabase()


@pytest.fixture()
def broker():
    return FakeBroker()


@pytest.fixture()
def publisher(broker):
    return FanoutPublisher(broker, CHANNEL, PipelineStats())


@pytest_asyncio.fixture()
async def ctx(settings, db, broker):
    """Assembled pipeline context; closed after the test."""
    context = assemble_context(settings, db, broker)
    try:
        yield context
    finally:
        await context.close()


@pytest_asyncio.fixture()
async def client(settings, ctx):
    """HTTP client for an app whose context is the fake-backed one."""
    app = create_app(settings)
    app.state.context = ctx
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
