"""Dashboard Service — request-scoped resolution pipeline and edit entry point."""

import time
from typing import Iterable

from ..contracts import AutosaveStatus, LayoutMutation, ResolvedLayout, UserLayoutOverride
from ..utils.logging import get_logger
from .autosave import AutosaveScheduler
from .breakpoints import resolve
from .layout_merger import apply_changes, merge, prepare_override
from .override_store import OverrideStore
from .permission_filter import filter_widgets
from .template_store import TemplateStore
from .widget_data import StaticWidgetDataProvider, WidgetDataProvider

logger = get_logger("engine.dashboard_service")


class DashboardService:
    """Template Store → Permission Filter → Breakpoint Resolver → Layout Merger.

    Holds no per-user state of its own; the only shared mutable state lives
    in the template cache and the autosave scheduler.
    """

    def __init__(
        self,
        template_store: TemplateStore,
        override_store: OverrideStore,
        scheduler: AutosaveScheduler,
        widget_data_provider: WidgetDataProvider | None = None,
    ):
        self._templates = template_store
        self._overrides = override_store
        self._scheduler = scheduler
        self._widget_data = widget_data_provider or StaticWidgetDataProvider()

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    async def resolve_layout(
        self,
        user_id: str,
        template_id: str,
        permission_set: Iterable[str],
        viewport_width: int,
        theme: str | None = None,
        include_data: bool = True,
    ) -> ResolvedLayout:
        """Resolve the dashboard a user sees at ``viewport_width``.

        Edits still waiting in the autosave buffer are layered on top of the
        stored override so a reload never shows an older layout.
        """
        started = time.monotonic()
        granted = frozenset(permission_set)
        template = await self._templates.get(template_id)
        override = await self._effective_override(user_id, template_id, template)

        widgets = filter_widgets(template, granted)
        resolution = resolve(template, viewport_width)
        layout = merge(template, widgets, resolution, override, theme)

        if include_data and layout.widgets:
            payloads = await self._widget_data.fetch(user_id, [w.id for w in layout.widgets])
            for widget in layout.widgets:
                widget.data = payloads.get(widget.id)

        logger.info(
            "dashboard_resolved",
            user_id=user_id,
            template_id=template_id,
            version=template.version,
            breakpoint=layout.breakpoint,
            widgets=len(layout.widgets),
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return layout

    async def submit_mutation(
        self,
        user_id: str,
        template_id: str,
        mutation: LayoutMutation,
        permission_set: Iterable[str],
    ) -> AutosaveStatus:
        return await self._scheduler.submit(user_id, template_id, mutation, frozenset(permission_set))

    async def flush(self, user_id: str, template_id: str) -> UserLayoutOverride | None:
        return await self._scheduler.flush(user_id, template_id)

    async def reset(self, user_id: str, template_id: str) -> bool:
        """Drop the user's customization; the next resolve shows the template default."""
        return await self._scheduler.reset(user_id, template_id)

    async def get_override(self, user_id: str, template_id: str) -> UserLayoutOverride | None:
        return await self._overrides.get(user_id, template_id)

    async def _effective_override(self, user_id, template_id, template) -> UserLayoutOverride | None:
        stored = await self._overrides.get(user_id, template_id)
        override = prepare_override(template, stored)
        pending = self._scheduler.pending(user_id, template_id)
        if not pending:
            return override
        if override is None:
            override = UserLayoutOverride(
                user_id=user_id, template_id=template_id, template_version=template.version
            )
        return apply_changes(override, pending, template.version)
