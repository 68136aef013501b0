"""Shared test fixtures for readlater."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from readlater.config import Settings
from readlater.main import create_app
from readlater.models.base import Base
from readlater.models.provider_config import ProviderConfig, new_config_id
from readlater.services.credential_store import InMemoryCredentialStore
from readlater.services.datetime_service import timestamp_now
from readlater.services.event_bus import EventBus
from readlater.services.save_orchestrator import SaveOrchestrator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from readlater.providers.base import ServiceType

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"


def make_config(
    service: ServiceType,
    settings: dict[str, Any] | None = None,
    *,
    is_primary: bool = False,
    is_enabled: bool = True,
) -> ProviderConfig:
    """Build an unsaved configuration record."""
    config = ProviderConfig(
        id=new_config_id(),
        service_type=service.value,
        is_enabled=is_enabled,
        is_primary=is_primary,
        created_at=timestamp_now(),
    )
    config.settings = settings
    return config


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (DB, credential
    store, orchestrator, OAuth state) because ASGITransport does not trigger it.
    """
    from readlater.database import create_engine as create_db_engine
    from readlater.providers.oauth_state import OAuthStateStore
    from readlater.services.credential_store import EncryptedCredentialStore

    app = create_app(settings)
    settings.validate_runtime_security()

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.settings = settings

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    credential_store = EncryptedCredentialStore(session_factory, settings.secret_key)
    event_bus = EventBus()
    orchestrator = SaveOrchestrator(session_factory, credential_store, event_bus, settings)
    await orchestrator.load_configurations()
    app.state.credential_store = credential_store
    app.state.event_bus = event_bus
    app.state.orchestrator = orchestrator
    app.state.pocket_oauth_state = OAuthStateStore(ttl_seconds=600)
    app.state.raindrop_oauth_state = OAuthStateStore(ttl_seconds=600)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database."""
    db_path = tmp_path / "test.db"
    return Settings(
        secret_key=TEST_SECRET_KEY,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        pocket_consumer_key="pocket-consumer-key",
        raindrop_client_id="raindrop-client",
        raindrop_client_secret="raindrop-secret",
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    credential_store: InMemoryCredentialStore,
    event_bus: EventBus,
    test_settings: Settings,
) -> SaveOrchestrator:
    return SaveOrchestrator(session_factory, credential_store, event_bus, test_settings)
