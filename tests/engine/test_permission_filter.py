"""Tests for the Permission Filter — per-widget capability gating."""

import pytest

from maintainboard.auth.capabilities import (
    ALL_CAPABILITIES,
    CREATE_MAINTENANCE_REQUESTS,
    DEFAULT_ROLES,
    VIEW_ASSETS,
    VIEW_MAINTENANCE,
)
from maintainboard.contracts import DashboardTemplate
from maintainboard.engine.permission_filter import can_view, filter_widgets


class TestFilterWidgets:
    def test_view_assets_only_sees_asset_summary(self, template):
        widgets = filter_widgets(template, {VIEW_ASSETS})
        assert [w.id for w in widgets] == ["asset_summary"]

    def test_empty_permission_set_sees_nothing(self, template):
        assert filter_widgets(template, set()) == []

    def test_any_of_semantics(self, template):
        """One of the widget's capabilities is enough."""
        ids = {w.id for w in filter_widgets(template, {CREATE_MAINTENANCE_REQUESTS})}
        assert ids == {"quick_actions"}

    def test_all_capabilities_see_every_widget(self, template):
        widgets = filter_widgets(template, ALL_CAPABILITIES)
        assert [w.id for w in widgets] == [w.id for w in template.widgets]

    def test_preserves_template_order(self, template):
        widgets = filter_widgets(template, DEFAULT_ROLES["maintenance_manager"]["permissions"])
        order = [w.id for w in template.widgets]
        assert [w.id for w in widgets] == [i for i in order if i in {w.id for w in widgets}]

    def test_config_is_never_trimmed(self, template):
        widget = filter_widgets(template, {VIEW_MAINTENANCE})[0]
        assert widget.config == template.widget("maintenance_schedule").config

    @pytest.mark.parametrize("smaller, larger", [
        ("viewer", "admin"),
        ("technician", "admin"),
        ("viewer", "maintenance_manager"),
    ])
    def test_monotonic_in_permission_set(self, template, smaller, larger):
        p1 = set(DEFAULT_ROLES[smaller]["permissions"])
        p2 = set(DEFAULT_ROLES[larger]["permissions"]) | p1
        small = {w.id for w in filter_widgets(template, p1)}
        large = {w.id for w in filter_widgets(template, p2)}
        assert small <= large


class TestCanView:
    def test_widget_without_permissions_is_never_shown(self, template_document):
        template_document["widgets"][0]["permissions"] = []
        t = DashboardTemplate.model_validate(template_document)
        assert not can_view(t.widgets[0], frozenset(ALL_CAPABILITIES))
