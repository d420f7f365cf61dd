from __future__ import annotations

import pytest

from ruleindex.core.config import Settings
from ruleindex.index import build_active_rule_index
from ruleindex.persistence.db import create_engine, create_schema, create_session_factory
from ruleindex.services.sync import ActiveRuleSynchronizer
from ruleindex.services.telemetry import reset_telemetry


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    # Background refresh stays off so visibility is driven only by explicit refresh calls.
    return Settings(
        database_url=TEST_DATABASE_URL,
        index_refresh_interval_s=0,
        index_refresh_timeout_s=5.0,
    )


@pytest.fixture(autouse=True)
def reset_telemetry_between_tests() -> None:
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
async def engine(settings: Settings):
    # Fresh in-memory database per test replaces shared data-store cleanup.
    engine = create_engine(settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def index(settings: Settings):
    index = build_active_rule_index(settings)
    yield index
    await index.close()


@pytest.fixture
def synchronizer(index) -> ActiveRuleSynchronizer:
    return ActiveRuleSynchronizer(index)


@pytest.fixture
async def db_session(session_factory, synchronizer: ActiveRuleSynchronizer):
    async with session_factory() as session:
        synchronizer.track(session)
        yield session
