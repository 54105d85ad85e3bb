import asyncio
import sys
import uuid
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def ensure_event_loop() -> asyncio.AbstractEventLoop:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    if loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    return loop


ensure_event_loop()

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tumi.domain.users.db_models import User
from tumi.domain.users.statuses import MemberStatus, UserRole
from tumi.infra import models  # noqa: F401
from tumi.infra.auth import create_access_token
from tumi.infra.db import Base, get_db_session
from tumi.infra.stripe_resilience import stripe_circuit
from tumi.main import app
from tumi.settings import settings


@pytest.fixture(scope="session")
def test_engine():
    db_path = Path("test.db")
    if db_path.exists():
        db_path.unlink()
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=StaticPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(autouse=True)
def restore_settings():
    original_testing = settings.testing
    original_app_env = settings.app_env
    original_webhook_secret = settings.stripe_webhook_secret
    original_auth_secret_key = settings.auth_secret_key
    original_metrics_enabled = settings.metrics_enabled
    original_metrics_token = settings.metrics_token
    original_page_limit = settings.activity_log_page_limit
    settings.testing = True
    settings.app_env = "dev"
    yield
    settings.testing = original_testing
    settings.app_env = original_app_env
    settings.stripe_webhook_secret = original_webhook_secret
    settings.auth_secret_key = original_auth_secret_key
    settings.metrics_enabled = original_metrics_enabled
    settings.metrics_token = original_metrics_token
    settings.activity_log_page_limit = original_page_limit


@pytest.fixture(autouse=True)
def restore_app_state():
    """Restore app.state after each test to prevent state pollution."""
    original_stripe_client = getattr(app.state, "stripe_client", None)
    yield
    if original_stripe_client is not None:
        app.state.stripe_client = original_stripe_client
    elif hasattr(app.state, "stripe_client"):
        delattr(app.state, "stripe_client")
    stripe_circuit.reset()


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())
    yield


@pytest.fixture()
def client(async_session_maker):
    ensure_event_loop()

    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    app.state.db_session_factory = async_session_maker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory


@pytest.fixture()
def client_no_raise(async_session_maker):
    """Test client that returns HTTP responses instead of raising server exceptions."""

    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    app.state.db_session_factory = async_session_maker
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory


async def _create_user(async_session_maker, **overrides) -> User:
    suffix = overrides.pop("suffix", None) or uuid.uuid4().hex[:12]
    values = {
        "auth_id": f"auth0|{suffix}",
        "first_name": "Test",
        "last_name": "User",
        "email": f"user-{suffix}@example.com",
        "status": MemberStatus.FULL,
        "role": UserRole.USER,
    }
    values.update(overrides)
    async with async_session_maker() as session:
        user = User(**values)
        session.add(user)
        await session.commit()
        return user


@pytest.fixture()
def make_user(async_session_maker):
    def _make(**overrides) -> User:
        return asyncio.run(_create_user(async_session_maker, **overrides))

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, settings.auth_token_ttl_minutes, settings.auth_secret_key)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def anyio_backend():
    return "asyncio"
