"""Dashboard contracts — Pydantic models for template, override and layout documents.

Documents use camelCase on the wire (``rowHeight``, ``pixelThreshold``) and
snake_case attributes in Python; both spellings are accepted on input.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, model_validator
from pydantic.alias_generators import to_camel


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Grid geometry ──

class Position(_Document):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=1)
    h: int = Field(ge=1)

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    def overlaps(self, other: Position) -> bool:
        return (
            self.x < other.right and other.x < self.right
            and self.y < other.bottom and other.y < self.bottom
        )


class Breakpoint(_Document):
    name: str = Field(min_length=1)
    pixel_threshold: int = Field(ge=0)
    columns: int = Field(ge=1)


# ── Widget configs, one schema per known widget type ──

class _WidgetConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class AssetSummaryConfig(_WidgetConfig):
    group_by: Literal["status", "type", "location"] = "status"
    show_total: bool = True
    statuses: list[str] = ["operational", "down", "maintenance", "retired", "needs_attention"]


class MaintenanceScheduleConfig(_WidgetConfig):
    days_ahead: int = Field(default=30, ge=1, le=365)
    include_overdue: bool = True
    max_items: int = Field(default=10, ge=1)


class RecentNotificationsConfig(_WidgetConfig):
    limit: int = Field(default=10, ge=1, le=100)
    unread_only: bool = False


class QuickAction(_WidgetConfig):
    id: str
    label: str
    route: str


class QuickActionsConfig(_WidgetConfig):
    actions: list[QuickAction] = []


class LocationStatusConfig(_WidgetConfig):
    location_ids: list[str] = []
    show_map: bool = False


class MetricsChartConfig(_WidgetConfig):
    chart_type: Literal["line", "bar", "area", "pie"] = "line"
    metric: str = "work_order_completion_rate"
    period_days: int = Field(default=7, ge=1)


WIDGET_CONFIG_MODELS: dict[str, type[_WidgetConfig]] = {
    "asset_summary": AssetSummaryConfig,
    "maintenance_schedule": MaintenanceScheduleConfig,
    "recent_notifications": RecentNotificationsConfig,
    "quick_actions": QuickActionsConfig,
    "location_status": LocationStatusConfig,
    "metrics_chart": MetricsChartConfig,
}


def parse_widget_config(widget_type: str, config: dict[str, Any]) -> _WidgetConfig | dict[str, Any]:
    """Validate ``config`` against the schema registered for ``widget_type``.

    Unknown widget types come back as the untouched dict. Raises
    ``pydantic.ValidationError`` when a known type's config is malformed.
    """
    model = WIDGET_CONFIG_MODELS.get(widget_type)
    if model is None:
        return config
    return model.model_validate(config)


class Widget(_Document):
    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    title: str = ""
    position: Position
    config: dict[str, Any] = {}
    permissions: frozenset[str] = frozenset()
    visible: bool = True
    resizable: bool = True
    draggable: bool = True

    @field_serializer("permissions")
    def _serialize_permissions(self, permissions: frozenset[str]) -> list[str]:
        return sorted(permissions)


# ── Template ──

class Theme(_Document):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    primary_color: Optional[str] = None
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    density: Literal["comfortable", "compact"] = "comfortable"


class TemplateSettings(_Document):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    auto_save: bool = True
    save_interval: int = Field(default=2000, ge=0)  # milliseconds
    allow_widget_removal: bool = True
    allow_widget_addition: bool = True
    snap_to_grid: bool = True
    default_theme: str = "light"


class DashboardTemplate(_Document):
    id: str = Field(min_length=1)
    version: int = Field(default=0, ge=0)
    layout: str = "grid"
    columns: int = Field(ge=1)
    row_height: int = Field(default=60, ge=1)
    margin: tuple[int, int] = (10, 10)
    container_padding: tuple[int, int] = (10, 10)
    breakpoints: tuple[Breakpoint, ...] = Field(min_length=1)
    widgets: tuple[Widget, ...] = ()
    themes: dict[str, Theme] = {}
    responsive: bool = True
    settings: TemplateSettings = TemplateSettings()

    def widget(self, widget_id: str) -> Widget | None:
        for widget in self.widgets:
            if widget.id == widget_id:
                return widget
        return None

    @property
    def widget_ids(self) -> frozenset[str]:
        return frozenset(w.id for w in self.widgets)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── Per-user override ──

class UserLayoutOverride(_Document):
    user_id: str
    template_id: str
    template_version: int = Field(ge=0)
    widget_positions: dict[str, Position] = {}
    widget_visibility: dict[str, bool] = {}
    updated_at: Optional[datetime] = None
    override_version: int = Field(default=0, ge=0)

    @property
    def referenced_widget_ids(self) -> set[str]:
        return set(self.widget_positions) | set(self.widget_visibility)


# ── Client mutations ──

class PositionInput(_Document):
    """Position as sent by a dragging client; may be fractional before snapping."""

    x: float
    y: float
    w: float
    h: float


class WidgetChange(_Document):
    widget_id: str = Field(min_length=1)
    position: Optional[PositionInput] = None
    visible: Optional[bool] = None
    remove: bool = False

    @model_validator(mode="after")
    def _require_change(self) -> WidgetChange:
        if self.position is None and self.visible is None and not self.remove:
            raise ValueError("change must set position, visible or remove")
        if self.remove and (self.position is not None or self.visible):
            raise ValueError("remove cannot be combined with position or visible=true")
        return self


class LayoutMutation(_Document):
    changes: list[WidgetChange] = Field(min_length=1)


# ── Resolved output ──

class ResolvedWidget(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: str
    title: str
    position: Position
    config: dict[str, Any]
    resizable: bool
    draggable: bool
    data: Any = None


class ResolvedLayout(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    template_id: str
    template_version: int
    breakpoint: str
    columns: int
    row_height: int
    margin: tuple[int, int]
    container_padding: tuple[int, int]
    theme_name: Optional[str] = None
    theme: Optional[Theme] = None
    widgets: list[ResolvedWidget] = []
    ignored_mutations: list[str] = []
    override_version: int = 0


class AutosaveStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    template_id: str
    state: str
    pending_widgets: list[str] = []
    save_in_ms: Optional[int] = None
    override: Optional[UserLayoutOverride] = None


def validation_messages(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``loc: msg`` strings."""
    messages = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{loc}: {error.get('msg', 'invalid')}" if loc else error.get("msg", "invalid"))
    return messages
