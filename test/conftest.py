"""
Pytest configuration and fixtures for viewstats tests
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from viewstats.config import Settings
from viewstats.database import Base
from viewstats.models.social import User
from viewstats.services.analytics_service import AnalyticsService
from viewstats.services.background import BackgroundTaskRunner
from viewstats.services.geo_service import GeoResolver
from viewstats.services.tracking_service import ViewTracker
from viewstats.stores.sql import SqlAggregateStore, SqlInteractionSource, SqlResourceDirectory, SqlViewStore

from utils.mock_utils import create_test_user
from utils.mocks import FakeClock, FakeGeoReader

START_TIME = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """
    Fresh SQLite database file per test. A file (rather than :memory:) lets
    background tasks open their own connections to the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'viewstats_test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting test data"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START_TIME)


@pytest.fixture
def geo_reader() -> FakeGeoReader:
    return FakeGeoReader(
        {
            "8.8.8.8": ("US", "Mountain View", "CA"),
            "81.2.69.160": ("GB", "London", "ENG"),
            "2.125.160.216": ("GB", "Boxford", "WBK"),
            "5.5.5.5": ("ZZ", None, None),
        }
    )


@pytest.fixture
def geo_resolver(geo_reader) -> GeoResolver:
    return GeoResolver(reader=geo_reader)


@pytest.fixture
def view_store(session_factory) -> SqlViewStore:
    return SqlViewStore(session_factory)


@pytest.fixture
def aggregate_store(session_factory) -> SqlAggregateStore:
    return SqlAggregateStore(session_factory)


@pytest.fixture
def runner() -> BackgroundTaskRunner:
    return BackgroundTaskRunner()


@pytest.fixture
def tracker(view_store, geo_resolver, clock) -> ViewTracker:
    return ViewTracker(view_store, geo_resolver, window_minutes=60, clock=clock)


@pytest.fixture
async def analytics_service(session_factory, view_store, aggregate_store, runner, clock):
    service = AnalyticsService(
        view_store,
        aggregate_store,
        SqlInteractionSource(session_factory),
        SqlResourceDirectory(session_factory),
        runner,
        stale_ttl_seconds=3600,
        clock=clock,
    )
    yield service
    await runner.drain()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        debug=False,
        environment="testing",
        geoip_database_path=None,
        dedup_window_minutes=60,
        analytics_stale_ttl_seconds=3600,
        log_level="WARNING",
        log_json=False,
    )


@pytest.fixture
def app(test_settings, session_factory, geo_resolver, clock):
    """FastAPI application backed by the per-test database"""
    from viewstats.main import create_app

    return create_app(
        settings=test_settings,
        session_factory=session_factory,
        geo_resolver=geo_resolver,
        clock=clock,
        configure_logging=False,
    )


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.background_runner.drain()


@pytest.fixture
async def test_user(test_db: AsyncSession) -> User:
    """Owner of the content under test"""
    return await create_test_user(test_db, "owner")


@pytest.fixture
async def test_viewer(test_db: AsyncSession) -> User:
    return await create_test_user(test_db, "viewer")
