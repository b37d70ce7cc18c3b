"""Tests for database engine setup and table creation."""

import pytest
from sqlalchemy import inspect, text

import maintainboard.database as db_mod
from maintainboard.config import MaintainboardConfig


@pytest.fixture
def file_config(tmp_path, monkeypatch):
    monkeypatch.setattr(db_mod, "_engine", None)
    monkeypatch.setattr(db_mod, "_session_factory", None)
    return MaintainboardConfig(_env_file=None, database_url=f"sqlite+aiosqlite:///{tmp_path / 'board.db'}")


class TestDatabase:
    @pytest.mark.asyncio
    async def test_create_tables(self, file_config):
        await db_mod.create_tables(file_config)
        engine = db_mod.get_engine(file_config)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            journal_mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar_one()
        assert {"dashboard_templates", "user_layout_overrides"} <= set(tables)
        assert journal_mode.lower() == "wal"
        await db_mod.close_engine()

    @pytest.mark.asyncio
    async def test_singletons_reset_on_close(self, file_config):
        factory = db_mod.get_session_factory(file_config)
        assert db_mod.get_session_factory(file_config) is factory
        await db_mod.close_engine()
        assert db_mod._engine is None
        assert db_mod._session_factory is None
