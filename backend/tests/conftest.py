import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ossgate.core.config import get_settings
from ossgate.core.security import hash_operator_password
from ossgate.db import session as db_session
from ossgate.services.links import LinkService
from ossgate.services.tickets import TicketStore

ADMIN_PASSWORD = "Password123"
ADMIN_PASSWORD_HASH = hash_operator_password(ADMIN_PASSWORD)
OSS_SECRET = "test-oss-secret"
OSS_KEY_ID = "test-key-id"


@pytest.fixture(autouse=True)
def configure_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver/")
    monkeypatch.setenv("DOWNLOAD_PATH_PREFIX", "download")
    monkeypatch.setenv("ALIYUN_ACCESS_KEY_ID", OSS_KEY_ID)
    monkeypatch.setenv("ALIYUN_ACCESS_KEY_SECRET", OSS_SECRET)
    monkeypatch.setenv("ALIYUN_DEFAULT_BUCKET", "test-bucket")
    monkeypatch.setenv("ALIYUN_DEFAULT_ENDPOINT", "oss-cn-hangzhou.aliyuncs.com")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD_HASH", ADMIN_PASSWORD_HASH)
    monkeypatch.setenv("CLEANUP_INTERVAL_SECS", "0")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client-id")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("OAUTH_REDIRECT_URI", "http://testserver/callback")
    get_settings.cache_clear()
    db_session.reset_session_factory()
    yield
    get_settings.cache_clear()
    db_session.reset_session_factory()


@pytest_asyncio.fixture
async def database():
    await db_session.init_models()
    yield
    await db_session.get_engine().dispose()


@pytest_asyncio.fixture
async def session(database):
    session_factory = db_session.get_session_factory()
    async with session_factory() as session:
        yield session


@pytest.fixture
def ticket_store() -> TicketStore:
    return TicketStore()


@pytest.fixture
def link_service(database, ticket_store) -> LinkService:
    return LinkService(
        ticket_store,
        settings=get_settings(),
        session_factory=db_session.get_session_factory(),
    )


@pytest.fixture
def app_instance(link_service, ticket_store):
    from ossgate.main import app

    # Setup state for tests, mimicking lifespan events
    app.state.ticket_store = ticket_store
    app.state.link_service = link_service
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app_instance):
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def auth_headers(client) -> dict[str, str]:
    resp = await client.post(
        "/auth/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}
