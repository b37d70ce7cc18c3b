"""Layout Merger — combines the filtered, resolved base layout with a user override.

Also owns the inbound direction: client mutations are validated here against
the template before the autosave scheduler buffers them.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..contracts import (
    DashboardTemplate,
    LayoutMutation,
    Position,
    PositionInput,
    ResolvedLayout,
    ResolvedWidget,
    UserLayoutOverride,
    Widget,
)
from ..errors import InvalidOverrideReference, OutOfBoundsPosition, WidgetMutationNotAllowed
from ..utils.logging import get_logger
from .breakpoints import BreakpointResolution
from .permission_filter import can_view

logger = get_logger("engine.layout_merger")


@dataclass(frozen=True)
class PendingChange:
    """Validated per-widget change waiting to be written into an override."""

    position: Position | None = None
    visible: bool | None = None
    clear_position: bool = False

    def combine(self, newer: "PendingChange") -> "PendingChange":
        """Fold ``newer`` on top of this change; the latest value per field wins."""
        if newer.position is not None:
            position, clear = newer.position, False
        elif newer.clear_position:
            position, clear = None, True
        else:
            position, clear = self.position, self.clear_position
        visible = newer.visible if newer.visible is not None else self.visible
        return PendingChange(position=position, visible=visible, clear_position=clear)


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def snap_position(widget_id: str, raw: PositionInput, snap_to_grid: bool) -> Position:
    """Turn a client position into grid units.

    With ``snapToGrid`` fractional coordinates are rounded; without it they
    are rejected.
    """
    values = {"x": raw.x, "y": raw.y, "w": raw.w, "h": raw.h}
    snapped = {}
    for name, value in values.items():
        if snap_to_grid:
            snapped[name] = _round_half_up(value)
        elif float(value).is_integer():
            snapped[name] = int(value)
        else:
            raise OutOfBoundsPosition(widget_id, f"{name}={value} is not on the grid")
    if snapped["x"] < 0 or snapped["y"] < 0:
        raise OutOfBoundsPosition(widget_id, "x and y must be >= 0")
    if snapped["w"] < 1 or snapped["h"] < 1:
        raise OutOfBoundsPosition(widget_id, "w and h must be >= 1")
    return Position(**snapped)


def check_bounds(widget_id: str, position: Position, columns: int) -> None:
    if position.right > columns:
        raise OutOfBoundsPosition(widget_id, f"x + w = {position.right} exceeds {columns} columns")


def validate_mutation(
    template: DashboardTemplate,
    mutation: LayoutMutation,
    permission_set: Iterable[str] | None = None,
) -> dict[str, PendingChange]:
    """Validate ``mutation`` against ``template`` and its settings.

    Returns one coalesced ``PendingChange`` per widget. Raises
    ``InvalidOverrideReference`` for unknown widget ids,
    ``OutOfBoundsPosition`` for off-grid positions and
    ``WidgetMutationNotAllowed`` when settings or permissions forbid the change.
    """
    unknown = {c.widget_id for c in mutation.changes} - template.widget_ids
    if unknown:
        raise InvalidOverrideReference(template.id, unknown)

    settings = template.settings
    granted = frozenset(permission_set) if permission_set is not None else None
    changes: dict[str, PendingChange] = {}

    for change in mutation.changes:
        widget = template.widget(change.widget_id)
        if granted is not None and not can_view(widget, granted):
            raise WidgetMutationNotAllowed(widget.id, "caller cannot view this widget")

        if change.remove:
            if not settings.allow_widget_removal:
                raise WidgetMutationNotAllowed(widget.id, "widget removal is disabled for this dashboard")
            pending = PendingChange(visible=False, clear_position=True)
        else:
            position = None
            if change.position is not None:
                position = snap_position(widget.id, change.position, settings.snap_to_grid)
                check_bounds(widget.id, position, template.columns)
            if change.visible and not widget.visible and not settings.allow_widget_addition:
                raise WidgetMutationNotAllowed(widget.id, "widget addition is disabled for this dashboard")
            pending = PendingChange(position=position, visible=change.visible)

        previous = changes.get(widget.id)
        changes[widget.id] = previous.combine(pending) if previous else pending

    return changes


def apply_changes(
    override: UserLayoutOverride,
    changes: Mapping[str, PendingChange],
    template_version: int,
) -> UserLayoutOverride:
    """Write ``changes`` into a copy of ``override`` rebased on ``template_version``."""
    positions = dict(override.widget_positions)
    visibility = dict(override.widget_visibility)
    for widget_id, change in changes.items():
        if change.position is not None:
            positions[widget_id] = change.position
        elif change.clear_position:
            positions.pop(widget_id, None)
        if change.visible is not None:
            visibility[widget_id] = change.visible
    return override.model_copy(update={
        "template_version": template_version,
        "widget_positions": positions,
        "widget_visibility": visibility,
    })


def migrate_override(override: UserLayoutOverride, template: DashboardTemplate) -> UserLayoutOverride:
    """Rebase an override made against another template version.

    Entries for widgets that still exist and still fit the grid are kept;
    everything else is dropped.
    """
    kept_positions = {}
    for widget_id, position in override.widget_positions.items():
        if widget_id in template.widget_ids and position.right <= template.columns:
            kept_positions[widget_id] = position
    kept_visibility = {
        widget_id: visible
        for widget_id, visible in override.widget_visibility.items()
        if widget_id in template.widget_ids
    }
    dropped = (len(override.widget_positions) - len(kept_positions)
               + len(override.widget_visibility) - len(kept_visibility))
    logger.info(
        "override_migrated",
        user_id=override.user_id,
        template_id=template.id,
        from_version=override.template_version,
        to_version=template.version,
        dropped=dropped,
    )
    return override.model_copy(update={
        "template_version": template.version,
        "widget_positions": kept_positions,
        "widget_visibility": kept_visibility,
    })


def prepare_override(
    template: DashboardTemplate,
    override: UserLayoutOverride | None,
) -> UserLayoutOverride | None:
    """Check an override's references, migrating it when its version is stale."""
    if override is None:
        return None
    if override.template_id != template.id:
        raise InvalidOverrideReference(template.id, [f"<template {override.template_id}>"])
    if override.template_version != template.version:
        return migrate_override(override, template)
    unknown = override.referenced_widget_ids - template.widget_ids
    if unknown:
        raise InvalidOverrideReference(template.id, unknown)
    return override


def _apply_position(widget: Widget, requested: Position) -> tuple[Position, list[str]]:
    """Apply only what the widget's drag/resize affordances allow."""
    ignored = []
    x, y, w, h = widget.position.x, widget.position.y, widget.position.w, widget.position.h
    if (requested.x, requested.y) != (x, y):
        if widget.draggable:
            x, y = requested.x, requested.y
        else:
            ignored.append(f"{widget.id}:move")
    if (requested.w, requested.h) != (w, h):
        if widget.resizable:
            w, h = requested.w, requested.h
        else:
            ignored.append(f"{widget.id}:resize")
    return Position(x=x, y=y, w=w, h=h), ignored


def merge(
    template: DashboardTemplate,
    filtered_widgets: Sequence[Widget],
    resolution: BreakpointResolution,
    override: UserLayoutOverride | None = None,
    theme_name: str | None = None,
) -> ResolvedLayout:
    """Build the layout served to the client.

    Only ``filtered_widgets`` can appear, whatever the override says. The
    result is a pure function of its inputs and is ordered by ``(y, x)``.
    """
    override = prepare_override(template, override)
    positions = override.widget_positions if override else {}
    visibility = override.widget_visibility if override else {}

    ignored: list[str] = []
    included: list[Widget] = []
    moved: list[tuple[str, Position]] = []
    for widget in filtered_widgets:
        if not visibility.get(widget.id, widget.visible):
            continue
        base = widget.position
        if widget.id in positions:
            base, dropped = _apply_position(widget, positions[widget.id])
            ignored.extend(dropped)
        included.append(widget)
        if base != widget.position or widget.id not in resolution.positions:
            moved.append((widget.id, base))

    # Widgets at their template spot keep the resolved position whoever the
    # caller is; user-moved widgets settle around them.
    moved_ids = {widget_id for widget_id, _ in moved}
    final = {w.id: resolution.positions[w.id] for w in included if w.id not in moved_ids}
    final.update(resolution.reflow(moved, placed=final.values()))

    order = {w.id: index for index, w in enumerate(included)}
    widgets = [
        ResolvedWidget(
            id=w.id,
            type=w.type,
            title=w.title,
            position=final[w.id],
            config=dict(w.config),
            resizable=w.resizable,
            draggable=w.draggable,
        )
        for w in included
    ]
    widgets.sort(key=lambda rw: (rw.position.y, rw.position.x, order[rw.id]))

    if ignored:
        logger.info("override_mutations_ignored", template_id=template.id, ignored=ignored)

    chosen_theme = theme_name if theme_name in template.themes else template.settings.default_theme
    return ResolvedLayout(
        template_id=template.id,
        template_version=template.version,
        breakpoint=resolution.breakpoint.name,
        columns=resolution.columns,
        row_height=template.row_height,
        margin=template.margin,
        container_padding=template.container_padding,
        theme_name=chosen_theme if chosen_theme in template.themes else None,
        theme=template.themes.get(chosen_theme),
        widgets=widgets,
        ignored_mutations=ignored,
        override_version=override.override_version if override else 0,
    )
