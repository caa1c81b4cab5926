"""API test fixtures — the ASGI app wired to an in-memory store, plus role tokens."""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Force test config BEFORE any app imports
os.environ["DEBUG"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-api-tests"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="examdesk-logs-")

import examdesk.database as db_mod
import examdesk.dependencies as dep_mod
from examdesk.utils.security import create_access_token

SECRET = os.environ["SECRET_KEY"]


def _reset_singletons():
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._incident_manager = None


@pytest_asyncio.fixture
async def test_app(session_factory):
    """The FastAPI app, bound to the per-test in-memory session factory."""
    _reset_singletons()
    db_mod._session_factory = session_factory
    dep_mod.get_app_config()

    from examdesk.main import app

    yield app

    _reset_singletons()


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user id and role."""

    def _headers(user_id: int, role: str) -> dict:
        token = create_access_token({"sub": str(user_id), "role": role}, SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def officer(seed, auth_headers):
    return auth_headers(seed["officer_id"], "EXAMS_OFFICER")


@pytest.fixture
def invigilator(seed, auth_headers):
    return auth_headers(seed["reporter_id"], "INVIGILATOR")


@pytest.fixture
def admin(seed, auth_headers):
    return auth_headers(seed["technician_id"], "ADMIN")
