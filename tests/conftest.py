"""Pytest bootstrap configuration.

Environment is set before any module that reads application settings is
imported, so the database layer never points at a real server during tests.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")

from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from infrastructure.external.payments.culqi_client import CulqiClient
from infrastructure.models import Base
from tests.fakes import Recorder, RecordingSink, make_settings


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client_factory(sink: RecordingSink) -> Callable[..., CulqiClient]:
    """Build a CulqiClient wired to a MockTransport around ``recorder``."""

    def _factory(recorder: Recorder, **settings_overrides: Any) -> CulqiClient:
        return CulqiClient(
            make_settings(**settings_overrides),
            sink,
            transport=httpx.MockTransport(recorder),
        )

    return _factory


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        await engine.dispose()
