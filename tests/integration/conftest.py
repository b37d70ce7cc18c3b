"""Integration test fixtures — in-memory app, async client, token auth."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-integration-tests"
os.environ["AUTOSAVE_INTERVAL_MS"] = "60000"

import maintainboard.database as db_mod
import maintainboard.dependencies as dep_mod
from maintainboard.auth.capabilities import DEFAULT_ROLES
from maintainboard.utils.security import create_user_token


def _reset_singletons():
    """Reset all module-level singletons so each test session starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._template_store = None
    dep_mod._override_store = None
    dep_mod._autosave_scheduler = None
    dep_mod._widget_data_provider = None
    dep_mod._dashboard_service = None


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_app():
    """Create test app with in-memory database (shared via StaticPool)."""
    _reset_singletons()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    db_mod._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    dep_mod.get_app_config()

    from maintainboard.main import app, seed_default_template
    from maintainboard.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await seed_default_template(dep_mod.get_template_store())

    yield app

    await dep_mod.get_autosave_scheduler().shutdown()
    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture(loop_scope="session")
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _headers(user_id: str, role: str) -> dict:
    config = dep_mod.get_app_config()
    token = create_user_token(
        user_id, DEFAULT_ROLES[role]["permissions"], config.secret_key, config.jwt_algorithm, role=role
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Factory for bearer headers carrying a default role's capabilities."""
    return _headers


@pytest.fixture
def admin_headers():
    return _headers("admin-1", "admin")
