"""
Pan/zoom transform between world coordinates (where item positions live)
and screen coordinates (pointer events, relative to the canvas container).

    screen = world * zoom + offset
    world  = (screen - offset) / zoom
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from canvas_core.models import SchemaItem, ViewState
from shared.config import config


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def midpoint(self, other: "Point") -> "Point":
        return Point((self.x + other.x) / 2, (self.y + other.y) / 2)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ViewportController:
    """Holds the canvas offset and zoom, and maps points between spaces."""

    def __init__(
        self,
        view: Optional[ViewState] = None,
        zoom_range: Optional[Tuple[float, float]] = None,
        default_view: Optional[ViewState] = None,
    ) -> None:
        self.zoom_min, self.zoom_max = zoom_range or config.zoom_range
        self.default_view = default_view or ViewState(
            x=config.default_view_x, y=config.default_view_y, zoom=config.default_zoom
        )
        start = view or self.default_view
        self.x = start.x
        self.y = start.y
        self.zoom = clamp(start.zoom, self.zoom_min, self.zoom_max)

    @property
    def state(self) -> ViewState:
        return ViewState(x=self.x, y=self.y, zoom=self.zoom)

    @property
    def offset(self) -> Point:
        return Point(self.x, self.y)

    def zoom_at(self, screen_point: Point, scale_factor: float) -> ViewState:
        """
        Scale around ``screen_point`` so the world point under it stays put.

        The zoom is clamped to the configured range; the offset uses the
        ratio actually applied, so the focal point holds at the limits too.
        """
        new_zoom = clamp(self.zoom * scale_factor, self.zoom_min, self.zoom_max)
        ratio = new_zoom / self.zoom
        self.x = screen_point.x - (screen_point.x - self.x) * ratio
        self.y = screen_point.y - (screen_point.y - self.y) * ratio
        self.zoom = new_zoom
        return self.state

    def wheel(self, screen_point: Point, delta_y: float) -> ViewState:
        """Wheel zoom: one notch of ``delta_y`` scales by ``1 - delta_y * sensitivity``."""
        return self.zoom_at(screen_point, 1 - delta_y * config.wheel_zoom_sensitivity)

    def pan(self, dx: float, dy: float) -> ViewState:
        """Translate by a screen-space delta."""
        self.x += dx
        self.y += dy
        return self.state

    def screen_to_world(self, screen_point: Point) -> Point:
        return Point((screen_point.x - self.x) / self.zoom, (screen_point.y - self.y) / self.zoom)

    def world_to_screen(self, world_point: Point) -> Point:
        return Point(world_point.x * self.zoom + self.x, world_point.y * self.zoom + self.y)

    def screen_delta_to_world(self, dx: float, dy: float) -> Tuple[float, float]:
        return dx / self.zoom, dy / self.zoom

    def reset(self) -> ViewState:
        """Center view."""
        self.x = self.default_view.x
        self.y = self.default_view.y
        self.zoom = self.default_view.zoom
        return self.state

    @property
    def css_transform(self) -> str:
        return f"translate({self.x}px, {self.y}px) scale({self.zoom})"


# -----------------------------
# Node geometry
# -----------------------------
class NodeMetrics:
    """
    Rendered node sizes by item id.

    Items that were not measured yet, or whose measurement is unusable
    (missing, non-numeric, non-positive), fall back to the default size.
    """

    def __init__(
        self,
        sizes: Optional[Mapping[str, Tuple[float, float]]] = None,
        default_size: Optional[Tuple[float, float]] = None,
    ) -> None:
        self.default_size = default_size or config.default_node_size
        self._sizes: Dict[str, Tuple[float, float]] = {}
        for item_id, size in (sizes or {}).items():
            self.measure(item_id, size)

    def measure(self, item_id: str, size) -> None:
        self._sizes[item_id] = size

    def forget(self, item_id: str) -> None:
        self._sizes.pop(item_id, None)

    def size_of(self, item_id: str) -> Tuple[float, float]:
        size = self._sizes.get(item_id)
        default_width, default_height = self.default_size
        try:
            width, height = size
            width, height = float(width), float(height)
        except (TypeError, ValueError):
            return default_width, default_height
        if not (width > 0 and math.isfinite(width)):
            width = default_width
        if not (height > 0 and math.isfinite(height)):
            height = default_height
        return width, height

    def center(self, item: SchemaItem) -> Point:
        width, height = self.size_of(item.id)
        return Point(item.position.x + width / 2, item.position.y + height / 2)

    def output_point(self, item: SchemaItem) -> Point:
        width, height = self.size_of(item.id)
        return Point(item.position.x + width, item.position.y + height / 2)

    def input_point(self, item: SchemaItem) -> Point:
        _, height = self.size_of(item.id)
        return Point(item.position.x, item.position.y + height / 2)

    def contains(self, item: SchemaItem, world_point: Point) -> bool:
        width, height = self.size_of(item.id)
        return (
            item.position.x <= world_point.x <= item.position.x + width
            and item.position.y <= world_point.y <= item.position.y + height
        )


def bezier_path(start: Point, end: Point) -> str:
    """Horizontal-tangent cubic Bezier from ``start`` to ``end`` as an SVG path."""
    bend = abs(end.x - start.x) * 0.5
    return (
        f"M {start.x} {start.y} "
        f"C {start.x + bend} {start.y}, {end.x - bend} {end.y}, {end.x} {end.y}"
    )


def connection_path(from_item: SchemaItem, to_item: SchemaItem, metrics: NodeMetrics) -> str:
    """Path of a committed edge: source output point to target input point."""
    return bezier_path(metrics.output_point(from_item), metrics.input_point(to_item))
