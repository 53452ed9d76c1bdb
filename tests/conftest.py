"""Shared test fixtures for the ERP back-office."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


ACCESS_SECRET = "test-access-secret-for-unit-tests-0123456789"
REFRESH_SECRET = "test-refresh-secret-for-unit-tests-9876543210"
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-pass-1"


@pytest.fixture
def app(tmp_path):
    """Create a test app with in-memory DB."""
    os.environ["ERP_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["ERP_ACCESS_TOKEN_SECRET"] = ACCESS_SECRET
    os.environ["ERP_REFRESH_TOKEN_SECRET"] = REFRESH_SECRET
    os.environ["ERP_QR_DIR"] = str(tmp_path / "qr")
    os.environ["ERP_SMTP_HOST"] = ""

    # Clear caches and singletons so new env vars take effect
    from erp_backoffice.common.config import get_settings
    get_settings.cache_clear()

    from erp_backoffice.deps import reset_singletons
    reset_singletons()

    from erp_backoffice.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from erp_backoffice.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
async def seeded(client):
    """Built-in menus, the Administrator role and the admin user."""
    from erp_backoffice.deps import get_db
    from erp_backoffice.rbac.bootstrap import seed

    async with get_db().get_session() as session:
        result = await seed(
            session,
            admin_username=ADMIN_USERNAME,
            admin_password=ADMIN_PASSWORD,
            admin_email="admin@example.com",
        )
    return result


@pytest.fixture
def login(client):
    """Log in through the API and return bearer headers."""

    async def _login(username: str, password: str) -> dict:
        resp = await client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["data"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture
async def admin_headers(seeded, login):
    return await login(ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def create_user(client, admin_headers):
    """Create an active user through the admin API; returns its id."""

    async def _create(username: str, password: str = "secret-pass", **extra) -> int:
        resp = await client.post(
            "/api/admin/master/user",
            json={"username": username, "name": username.title(), "password": password, **extra},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]

    return _create
