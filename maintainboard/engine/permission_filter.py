"""Permission Filter — reduces a template to the widgets a caller may see."""

from typing import Iterable

from ..contracts import DashboardTemplate, Widget
from ..utils.logging import get_logger

logger = get_logger("engine.permission_filter")


def can_view(widget: Widget, permission_set: frozenset[str]) -> bool:
    """ANY-of check: the caller needs at least one of the widget's capabilities.

    A widget with no capabilities listed is never exposed.
    """
    return not widget.permissions.isdisjoint(permission_set)


def filter_widgets(template: DashboardTemplate, permission_set: Iterable[str]) -> list[Widget]:
    """Widgets of ``template`` visible to ``permission_set``, in template order.

    Permission is all-or-nothing per widget; the widget's config is never
    trimmed field by field.
    """
    granted = frozenset(permission_set)
    allowed = [w for w in template.widgets if can_view(w, granted)]
    logger.debug(
        "widgets_filtered",
        template_id=template.id,
        version=template.version,
        allowed=len(allowed),
        total=len(template.widgets),
    )
    return allowed
