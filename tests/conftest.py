"""Shared test fixtures."""

import copy

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from maintainboard.contracts import DashboardTemplate
from maintainboard.engine.default_template import DEFAULT_TEMPLATE
from maintainboard.engine.override_store import OverrideStore
from maintainboard.engine.template_store import TemplateStore
from maintainboard.models.base import Base


@pytest.fixture
def template_document():
    """A deep copy of the built-in maintenance template, safe to mutate."""
    return copy.deepcopy(DEFAULT_TEMPLATE)


@pytest.fixture
def template(template_document):
    """The built-in template as a published version 1."""
    return DashboardTemplate.model_validate({**template_document, "version": 1})


@pytest_asyncio.fixture
async def session_factory():
    """In-memory database shared across sessions via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def template_store(session_factory):
    return TemplateStore(db_session_factory=session_factory, backoff_base=0)


@pytest_asyncio.fixture
async def override_store(session_factory):
    return OverrideStore(db_session_factory=session_factory, backoff_base=0)


@pytest_asyncio.fixture
async def seeded_template_store(template_store, template_document):
    """Template store with the built-in template published as version 1."""
    await template_store.put(template_document)
    return template_store
