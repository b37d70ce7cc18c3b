"""Widget data providers — raw per-widget payloads from the query layer."""

from typing import Any, Mapping, Sequence


class WidgetDataProvider:
    """Source of data payloads keyed by widget id.

    The query API serving asset, maintenance and notification data lives
    outside this service; subclasses adapt it. Only ids of widgets that
    survived permission filtering are ever requested.
    """

    async def fetch(self, user_id: str, widget_ids: Sequence[str]) -> Mapping[str, Any]:
        raise NotImplementedError


class StaticWidgetDataProvider(WidgetDataProvider):
    """Serves fixed payloads; the default when no query layer is wired in."""

    def __init__(self, payloads: Mapping[str, Any] | None = None):
        self._payloads = dict(payloads or {})

    async def fetch(self, user_id: str, widget_ids: Sequence[str]) -> Mapping[str, Any]:
        return {wid: self._payloads[wid] for wid in widget_ids if wid in self._payloads}
