"""Tests for the OverrideStore — compare-and-swap writes of user overrides."""

import pytest

from maintainboard.contracts import Position, UserLayoutOverride
from maintainboard.errors import OptimisticConcurrencyConflict


def _override(**kwargs):
    data = {
        "user_id": "tech-1",
        "template_id": "maintenance_default",
        "template_version": 1,
        "widget_positions": {"asset_summary": Position(x=0, y=2, w=6, h=4)},
        "widget_visibility": {"metrics_chart": False},
    }
    data.update(kwargs)
    return UserLayoutOverride(**data)


class TestOverrideStore:
    @pytest.mark.asyncio
    async def test_first_save_creates_version_one(self, override_store):
        saved = await override_store.save(_override(), expected_version=0)
        assert saved.override_version == 1
        assert saved.updated_at is not None

        loaded = await override_store.get("tech-1", "maintenance_default")
        assert loaded.override_version == 1
        assert loaded.widget_positions["asset_summary"] == Position(x=0, y=2, w=6, h=4)
        assert loaded.widget_visibility == {"metrics_chart": False}
        assert loaded.updated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_override(self, override_store):
        assert await override_store.get("nobody", "maintenance_default") is None
        assert await override_store.current_version("nobody", "maintenance_default") == 0

    @pytest.mark.asyncio
    async def test_update_increments_version(self, override_store):
        await override_store.save(_override(), expected_version=0)
        saved = await override_store.save(_override(widget_visibility={}), expected_version=1)
        assert saved.override_version == 2
        loaded = await override_store.get("tech-1", "maintenance_default")
        assert loaded.widget_visibility == {}

    @pytest.mark.asyncio
    async def test_stale_expected_version_conflicts(self, override_store):
        await override_store.save(_override(), expected_version=0)
        await override_store.save(_override(), expected_version=1)
        with pytest.raises(OptimisticConcurrencyConflict) as exc_info:
            await override_store.save(_override(widget_positions={}), expected_version=1)
        assert exc_info.value.retryable
        assert exc_info.value.expected_version == 1
        # losing write left no trace
        loaded = await override_store.get("tech-1", "maintenance_default")
        assert loaded.override_version == 2
        assert "asset_summary" in loaded.widget_positions

    @pytest.mark.asyncio
    async def test_concurrent_first_saves_conflict(self, override_store):
        await override_store.save(_override(), expected_version=0)
        with pytest.raises(OptimisticConcurrencyConflict):
            await override_store.save(_override(), expected_version=0)

    @pytest.mark.asyncio
    async def test_overrides_are_per_user(self, override_store):
        await override_store.save(_override(), expected_version=0)
        saved = await override_store.save(_override(user_id="tech-2"), expected_version=0)
        assert saved.override_version == 1

    @pytest.mark.asyncio
    async def test_delete(self, override_store):
        await override_store.save(_override(), expected_version=0)
        assert await override_store.delete("tech-1", "maintenance_default") is True
        assert await override_store.get("tech-1", "maintenance_default") is None
        assert await override_store.delete("tech-1", "maintenance_default") is False
