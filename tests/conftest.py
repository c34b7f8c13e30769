# tests/conftest.py
import os
import tempfile

# Settings and the module-level engine are built on first import, so the
# environment has to be in place before anything from app is imported
_TEST_DIR = tempfile.mkdtemp(prefix="villa-sync-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["BASIC_AUTH_USERNAME"] = "admin"
os.environ["BASIC_AUTH_PASSWORD"] = "admin-pass"
os.environ["OWNER_ACCOUNTS"] = '{"owner-1": "owner-1-pass", "owner-2": "owner-2-pass"}'
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import date

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import models  # noqa: F401
from app.core.config import Settings
from app.core.enums import PlatformName
from app.database import Base
from app.dependencies import get_sync_service
from app.main import app
from app.schemas.credentials import CredentialSetData
from app.schemas.sync import SyncWindow
from app.services.booking_sync_service import BookingSyncService
from app.services.sync_lock import SyncLockRegistry
from app.services.sync_log_service import SyncLogService
from tests.fixtures.factories import DEFAULT_SECRETS, connect_platform, create_villa
from tests.mocks import FakePlatform, PlatformAPI


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        SECRET_KEY="test-secret-key",
        ADAPTER_TIMEOUT_SECONDS=5.0,
        SYNC_MAX_RETRIES=3,
        SYNC_BACKOFF_BASE_SECONDS=1.0,
        SYNC_BACKOFF_MAX_SECONDS=30.0,
        SYNC_ALL_MAX_CONCURRENT=2,
    )


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test function."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def platforms():
    return {platform: FakePlatform(platform) for platform in PlatformName}


@pytest.fixture
def airbnb(platforms):
    return platforms[PlatformName.AIRBNB]


@pytest.fixture
def booking_com(platforms):
    return platforms[PlatformName.BOOKING_COM]


@pytest.fixture
def sleeps():
    """Backoff delays the orchestrator asked for, in order."""
    return []


@pytest.fixture
def sync_service(session_factory, settings, platforms, sleeps):
    async def record_sleep(delay):
        sleeps.append(delay)

    return BookingSyncService(
        session_factory=session_factory,
        settings=settings,
        adapters={platform: fake.adapter for platform, fake in platforms.items()},
        locks=SyncLockRegistry(ttl_seconds=settings.SYNC_LOCK_TTL_SECONDS),
        sync_log=SyncLogService(session_factory),
        sleep=record_sleep,
    )


@pytest.fixture
def platform_api(mocker):
    """Route every adapter HTTP call to a scripted PlatformAPI."""
    api = PlatformAPI()
    mocker.patch("app.integrations.http.build_client", side_effect=lambda timeout: api.client(timeout))
    return api


@pytest.fixture
def window():
    return SyncWindow(start_date=date(2026, 1, 1), end_date=date(2026, 12, 31))


@pytest.fixture
def credentials_for():
    def build(platform: PlatformName, secrets=None) -> CredentialSetData:
        return CredentialSetData(
            ref=1,
            platform=platform.value,
            secrets=dict(DEFAULT_SECRETS[platform] if secrets is None else secrets),
        )
    return build


@pytest.fixture
async def client(sync_service):
    """API client wired to the test orchestrator; the lifespan does not run under ASGITransport."""
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as api:
            yield api
    finally:
        app.dependency_overrides.pop(get_sync_service, None)


@pytest.fixture
async def villa(session_factory):
    return await create_villa(session_factory, owner_id="owner-1", name="Villa Azul")


@pytest.fixture
async def airbnb_integration(session_factory, villa):
    return await connect_platform(session_factory, villa, PlatformName.AIRBNB)


@pytest.fixture
async def booking_com_integration(session_factory, villa):
    return await connect_platform(session_factory, villa, PlatformName.BOOKING_COM)
