"""Breakpoint Resolver — picks the active breakpoint and reflows widget geometry.

Reflow rules, applied to widgets in template order:

* ``x`` and ``w`` are scaled by ``target / base`` columns, rounding half up;
  ``w`` is kept between 1 and the target column count.
* A widget whose scaled ``x + w`` overflows the target wraps to ``x = 0`` and
  drops below the lowest occupied row in the band ``[0, w)``.
* A widget that collides with one already placed is pushed down below the
  widgets it collides with (top-left gravity).

``y`` and ``h`` are row units and are never scaled.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from ..contracts import Breakpoint, DashboardTemplate, Position


def select_breakpoint(template: DashboardTemplate, viewport_width: int) -> Breakpoint:
    """Breakpoint with the largest pixelThreshold <= ``viewport_width``.

    Breakpoints are stored in descending threshold order and end with the
    threshold-0 catch-all, so a published template always resolves. Negative
    widths land on the catch-all. Non-responsive templates always use the
    widest breakpoint.
    """
    if not template.responsive:
        return template.breakpoints[0]
    for breakpoint in template.breakpoints:
        if breakpoint.pixel_threshold <= viewport_width:
            return breakpoint
    return template.breakpoints[-1]


def scale(value: int, target_columns: int, base_columns: int) -> int:
    """``round(value * target / base)`` with halves rounded up, in integer math."""
    return (2 * value * target_columns + base_columns) // (2 * base_columns)


def _band_floor(placed: Iterable[Position], x: int, w: int) -> int:
    """Lowest occupied row among placed widgets intersecting columns [x, x + w)."""
    floor = 0
    for pos in placed:
        if pos.x < x + w and x < pos.right:
            floor = max(floor, pos.bottom)
    return floor


def _settle(candidate: Position, placed: Sequence[Position]) -> Position:
    """Push ``candidate`` down until it overlaps nothing already placed."""
    while True:
        colliding = [p for p in placed if candidate.overlaps(p)]
        if not colliding:
            return candidate
        candidate = candidate.model_copy(update={"y": max(p.bottom for p in colliding)})


def reflow(
    items: Iterable[tuple[str, Position]],
    base_columns: int,
    target_columns: int,
    placed: Iterable[Position] = (),
) -> dict[str, Position]:
    """Reflow ``(widget_id, base_position)`` pairs onto ``target_columns``.

    ``placed`` holds positions already fixed on the target grid; items wrap
    and settle around them. Deterministic: the same inputs always give the
    same positions, and every result satisfies ``x + w <= target_columns``.
    """
    placed = list(placed)
    result: dict[str, Position] = {}
    for widget_id, pos in items:
        w = min(max(1, scale(pos.w, target_columns, base_columns)), target_columns)
        x = scale(pos.x, target_columns, base_columns)
        y = pos.y
        if x + w > target_columns:
            x = 0
            y = _band_floor(placed, 0, w)
        candidate = _settle(Position(x=x, y=y, w=w, h=pos.h), placed)
        placed.append(candidate)
        result[widget_id] = candidate
    return result


@dataclass(frozen=True)
class BreakpointResolution:
    """Active breakpoint for a viewport plus the reflow onto its column count."""

    breakpoint: Breakpoint
    base_columns: int
    positions: Mapping[str, Position] = field(default_factory=dict)

    @property
    def columns(self) -> int:
        return self.breakpoint.columns

    def reflow(
        self,
        items: Iterable[tuple[str, Position]],
        placed: Iterable[Position] = (),
    ) -> dict[str, Position]:
        return reflow(items, self.base_columns, self.columns, placed)


def resolve(template: DashboardTemplate, viewport_width: int) -> BreakpointResolution:
    """Resolve ``template`` for a viewport width.

    ``positions`` covers every template widget and depends only on the
    template and the target column count.
    """
    breakpoint = select_breakpoint(template, viewport_width)
    positions = reflow(
        ((w.id, w.position) for w in template.widgets),
        template.columns,
        breakpoint.columns,
    )
    return BreakpointResolution(breakpoint=breakpoint, base_columns=template.columns, positions=positions)
