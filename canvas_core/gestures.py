"""
Pointer gesture state machine for the schema canvas.

Raw input (mouse, touch, wheel) is reduced to lists of screen points relative
to the canvas container. The machine classifies them into:

- panning the viewport (press on empty canvas)
- dragging a node (press on a node, then move past the drag threshold)
- drawing a connection, either from a node's connection point ("point"
  style) or by holding a node until the long-press timer fires
  ("long-press" style)
- pinch zoom (two pointers) and wheel zoom (any time)

and applies the outcome to a SchemaGraph and a ViewportController.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Literal, Optional, Protocol, Sequence, Tuple

from canvas_core.graph import SchemaGraph
from canvas_core.models import Connection
from canvas_core.viewport import NodeMetrics, Point, ViewportController, bezier_path, connection_path
from shared.config import config
from shared.logger import get_logger

logger = get_logger("canvas_core.gestures")


class GestureState(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    DRAGGING_NODE = "dragging_node"
    DRAWING_CONNECTION = "drawing_connection"
    PINCHING = "pinching"


class HitKind(str, Enum):
    CANVAS = "canvas"
    NODE = "node"
    OUTPUT_POINT = "output_point"
    INPUT_POINT = "input_point"


@dataclass(frozen=True)
class HitTarget:
    kind: HitKind
    item_id: Optional[str] = None


CANVAS_HIT = HitTarget(HitKind.CANVAS)


@dataclass(frozen=True)
class DrawingLine:
    """The connection currently being drawn, in world coordinates."""

    anchor_id: str
    start: Point
    end: Point
    method: Literal["point", "long-press"]

    @property
    def path(self) -> str:
        return bezier_path(self.start, self.end)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class _NoTimer:
    def cancel(self) -> None:
        pass


class AsyncioTimerScheduler:
    """
    Schedules long-press timers on the running asyncio loop.

    Without a running loop the timer is never armed: presses still click and
    drag, but long-press connections are unavailable.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; long-press timer not scheduled")
            return _NoTimer()
        return loop.call_later(delay, callback)


class CanvasHitTester:
    """
    Finds what lies under a screen point.

    Items later in the list are drawn on top, so they are tested first.
    Connection points win over the node body within ``point_radius``.
    """

    def __init__(
        self,
        graph: SchemaGraph,
        viewport: ViewportController,
        metrics: NodeMetrics,
        point_radius: Optional[float] = None,
    ) -> None:
        self.graph = graph
        self.viewport = viewport
        self.metrics = metrics
        self.point_radius = config.connection_point_radius if point_radius is None else point_radius

    def hit_test(self, screen_point: Point) -> HitTarget:
        world = self.viewport.screen_to_world(screen_point)
        for item in reversed(self.graph.items):
            if world.distance_to(self.metrics.output_point(item)) <= self.point_radius:
                return HitTarget(HitKind.OUTPUT_POINT, item.id)
            if world.distance_to(self.metrics.input_point(item)) <= self.point_radius:
                return HitTarget(HitKind.INPUT_POINT, item.id)
            if self.metrics.contains(item, world):
                return HitTarget(HitKind.NODE, item.id)
        return CANVAS_HIT


class GestureStateMachine:
    """
    Turns pointer events into graph and viewport mutations.

    Points are screen coordinates relative to the canvas container. Mouse
    input passes one point; touch input passes every active touch.
    """

    def __init__(
        self,
        graph: SchemaGraph,
        viewport: ViewportController,
        metrics: Optional[NodeMetrics] = None,
        hit_tester: Optional[CanvasHitTester] = None,
        scheduler: Optional[TimerScheduler] = None,
        long_press_seconds: Optional[float] = None,
        drag_threshold: Optional[float] = None,
        on_node_click: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.graph = graph
        self.viewport = viewport
        self.metrics = metrics or NodeMetrics()
        self.hit_tester = hit_tester or CanvasHitTester(graph, viewport, self.metrics)
        self.scheduler = scheduler or AsyncioTimerScheduler()
        self.long_press_seconds = config.long_press_seconds if long_press_seconds is None else long_press_seconds
        self.drag_threshold = config.drag_threshold_px if drag_threshold is None else drag_threshold
        self.on_node_click = on_node_click

        self.state = GestureState.IDLE
        self.pressed_node: Optional[str] = None
        self.dragging_item: Optional[str] = None
        self.drawing_line: Optional[DrawingLine] = None
        self.hovered_target: Optional[str] = None
        self._press_origin: Optional[Point] = None
        self._last_point: Optional[Point] = None
        self._pinch_distance: Optional[float] = None
        self._timer: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------
    def press(self, points: Sequence[Point], target: Optional[HitTarget] = None) -> GestureState:
        """
        Handle a pointer going down.

        Args:
            points: All active pointers after the press
            target: What was pressed; hit-tested from ``points[0]`` when omitted
        """
        if not points:
            return self.state
        if len(points) >= 2:
            self._start_pinch(points)
            return self.state

        self._reset()
        point = points[0]
        self._last_point = point
        target = target or self.hit_tester.hit_test(point)
        item = self.graph.get_item(target.item_id) if target.item_id else None

        if item is None:
            self.state = GestureState.PANNING
        elif target.kind in (HitKind.OUTPUT_POINT, HitKind.INPUT_POINT):
            start = self.metrics.output_point(item)
            self.drawing_line = DrawingLine(item.id, start, start, "point")
            self.state = GestureState.DRAWING_CONNECTION
        else:
            self.pressed_node = item.id
            self._press_origin = point
            self._timer = self.scheduler.call_later(self.long_press_seconds, self._on_long_press)
        logger.debug(f"press -> {self.state.value} target={target.kind.value}:{target.item_id}")
        return self.state

    def move(self, points: Sequence[Point]) -> GestureState:
        """Handle pointer movement; ``points`` are all active pointers."""
        if not points:
            return self.state
        if len(points) >= 2:
            if self.state == GestureState.PINCHING and self._pinch_distance:
                self._pinch(points)
            else:
                self._start_pinch(points)
            return self.state
        if self.state == GestureState.PINCHING:
            return self.state

        point = points[0]
        last = self._last_point or point
        dx, dy = point.x - last.x, point.y - last.y

        if self.pressed_node and self.state == GestureState.IDLE:
            if point.distance_to(self._press_origin or point) > self.drag_threshold:
                self._cancel_timer()
                self.dragging_item = self.pressed_node
                self.pressed_node = None
                self.state = GestureState.DRAGGING_NODE

        if self.state == GestureState.PANNING:
            self.viewport.pan(dx, dy)
        elif self.state == GestureState.DRAGGING_NODE and self.dragging_item:
            world_dx, world_dy = self.viewport.screen_delta_to_world(dx, dy)
            self.graph.move_item(self.dragging_item, world_dx, world_dy)
        elif self.state == GestureState.DRAWING_CONNECTION and self.drawing_line:
            self.drawing_line = replace(self.drawing_line, end=self.viewport.screen_to_world(point))
            self.hovered_target = self._target_under(point)

        self._last_point = point
        return self.state

    def release(self, remaining: Sequence[Point] = ()) -> Optional[Connection]:
        """
        Handle a pointer going up.

        Args:
            remaining: Pointers still down after the release

        Returns:
            The connection created by finishing a drawn line, if any
        """
        self._cancel_timer()

        if self.state == GestureState.PINCHING:
            if len(remaining) >= 2:
                self._pinch_distance = remaining[0].distance_to(remaining[1])
                return None
            self._reset()
            return None

        if remaining:
            self._last_point = remaining[0]
            return None

        connection = None
        if self.state == GestureState.DRAWING_CONNECTION and self.drawing_line:
            anchor = self.drawing_line.anchor_id
            if self.hovered_target and self.hovered_target != anchor:
                connection = self.graph.add_connection(anchor, self.hovered_target)
        elif self.pressed_node and self.on_node_click:
            self.on_node_click(self.pressed_node)

        self._reset()
        return connection

    def cancel(self) -> None:
        """Pointer lost (left the canvas, touch cancelled): drop the gesture."""
        self._cancel_timer()
        self._reset()

    def wheel(self, point: Point, delta_y: float) -> None:
        """Wheel zoom around ``point``; the gesture state is left alone."""
        self.viewport.wheel(point, delta_y)

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def connection_paths(self) -> List[Tuple[str, str]]:
        """(connection id, SVG path) for every edge whose endpoints exist."""
        index = self.graph.item_index()
        paths = []
        for conn in self.graph.connections:
            from_item = index.get(conn.from_id)
            to_item = index.get(conn.to_id)
            if from_item is None or to_item is None:
                continue
            paths.append((conn.id, connection_path(from_item, to_item, self.metrics)))
        return paths

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_long_press(self) -> None:
        self._timer = None
        if self.pressed_node is None or self.state != GestureState.IDLE:
            return
        item = self.graph.get_item(self.pressed_node)
        if item is None:
            self._reset()
            return
        end = self.viewport.screen_to_world(self._last_point) if self._last_point else self.metrics.center(item)
        self.drawing_line = DrawingLine(item.id, self.metrics.center(item), end, "long-press")
        self.pressed_node = None
        self.state = GestureState.DRAWING_CONNECTION
        logger.debug(f"long press on {item.id} -> drawing connection")

    def _target_under(self, point: Point) -> Optional[str]:
        target = self.hit_tester.hit_test(point)
        if target.kind == HitKind.CANVAS or target.item_id is None:
            return None
        if self.drawing_line and target.item_id == self.drawing_line.anchor_id:
            return None
        return target.item_id

    def _start_pinch(self, points: Sequence[Point]) -> None:
        self._reset()
        self.state = GestureState.PINCHING
        self._pinch_distance = points[0].distance_to(points[1])

    def _pinch(self, points: Sequence[Point]) -> None:
        distance = points[0].distance_to(points[1])
        if distance > 0:
            self.viewport.zoom_at(points[0].midpoint(points[1]), distance / self._pinch_distance)
            self._pinch_distance = distance

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset(self) -> None:
        self._cancel_timer()
        self.state = GestureState.IDLE
        self.pressed_node = None
        self.dragging_item = None
        self.drawing_line = None
        self.hovered_target = None
        self._press_origin = None
        self._pinch_distance = None
