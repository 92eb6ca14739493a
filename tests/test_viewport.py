import math

import pytest

from canvas_core.models import Position, SchemaItem, ViewState
from canvas_core.viewport import NodeMetrics, Point, ViewportController, bezier_path, connection_path


def _item(item_id: str, x: float, y: float) -> SchemaItem:
    return SchemaItem(id=item_id, base_id="merge", type="node", position=Position(x=x, y=y))


class TestViewportController:
    """Pan/zoom transform and the mapping between screen and world points."""

    def test_starts_at_default_view(self):
        viewport = ViewportController()
        assert viewport.state == ViewState(x=200, y=150, zoom=1)

    def test_zoom_keeps_focal_point_fixed(self):
        viewport = ViewportController(ViewState(x=40, y=-10, zoom=0.8))
        focal = Point(300, 220)
        before = viewport.screen_to_world(focal)

        viewport.zoom_at(focal, 1.7)

        after = viewport.screen_to_world(focal)
        assert viewport.zoom == pytest.approx(0.8 * 1.7)
        assert after.x == pytest.approx(before.x)
        assert after.y == pytest.approx(before.y)

    def test_zoom_is_clamped_and_focal_point_still_holds(self):
        viewport = ViewportController()
        focal = Point(500, 400)
        before = viewport.screen_to_world(focal)

        viewport.zoom_at(focal, 100)
        assert viewport.zoom == 3.0
        after = viewport.screen_to_world(focal)
        assert after.x == pytest.approx(before.x)
        assert after.y == pytest.approx(before.y)

        viewport.zoom_at(focal, 0.0001)
        assert viewport.zoom == 0.2

    def test_wheel_scales_by_delta(self):
        viewport = ViewportController()
        viewport.wheel(Point(0, 0), 100)
        assert viewport.zoom == pytest.approx(0.9)

        viewport.wheel(Point(0, 0), -100)
        assert viewport.zoom == pytest.approx(0.99)

    def test_pan_is_not_scaled_by_zoom(self):
        viewport = ViewportController(ViewState(x=0, y=0, zoom=2.5))
        viewport.pan(10, -4)
        assert viewport.offset == Point(10, -4)

    def test_screen_world_mapping_is_inverse(self):
        viewport = ViewportController(ViewState(x=120, y=-30, zoom=1.5))
        world = Point(42, 17)

        screen = viewport.world_to_screen(world)
        assert screen == Point(42 * 1.5 + 120, 17 * 1.5 - 30)

        back = viewport.screen_to_world(screen)
        assert back.x == pytest.approx(world.x)
        assert back.y == pytest.approx(world.y)

    def test_reset_restores_default_view(self):
        viewport = ViewportController()
        viewport.pan(50, 50)
        viewport.zoom_at(Point(10, 10), 2)

        viewport.reset()

        assert viewport.state == ViewState(x=200, y=150, zoom=1)
        assert viewport.css_transform == "translate(200.0px, 150.0px) scale(1.0)"


class TestNodeMetrics:
    """Measured node sizes with default-size fallback."""

    def test_unmeasured_items_use_default_size(self):
        metrics = NodeMetrics()
        assert metrics.size_of("anything") == (170, 40)

    @pytest.mark.parametrize(
        "size, expected",
        [
            ((200, 60), (200, 60)),
            ((0, 60), (170, 60)),
            ((200, -1), (200, 40)),
            ((math.nan, 60), (170, 60)),
            (("wide", 60), (170, 40)),
            (None, (170, 40)),
            ((1, 2, 3), (170, 40)),
        ],
    )
    def test_malformed_measurements_fall_back(self, size, expected):
        metrics = NodeMetrics({"a": size})
        assert metrics.size_of("a") == expected

    def test_connection_points_and_center(self):
        metrics = NodeMetrics({"a": (100, 30)})
        item = _item("a", 10, 20)

        assert metrics.output_point(item) == Point(110, 35)
        assert metrics.input_point(item) == Point(10, 35)
        assert metrics.center(item) == Point(60, 35)
        assert metrics.contains(item, Point(50, 30))
        assert not metrics.contains(item, Point(111, 30))

    def test_forget_drops_measurement(self):
        metrics = NodeMetrics({"a": (100, 30)})
        metrics.forget("a")
        assert metrics.size_of("a") == (170, 40)


def test_bezier_path_uses_half_horizontal_distance():
    path = bezier_path(Point(0.0, 0.0), Point(100.0, 50.0))
    assert path == "M 0.0 0.0 C 50.0 0.0, 50.0 50.0, 100.0 50.0"


def test_connection_path_runs_from_output_to_input_point():
    metrics = NodeMetrics()
    path = connection_path(_item("a", 0, 0), _item("b", 300, 100), metrics)
    assert path == "M 170.0 20.0 C 235.0 20.0, 235.0 120.0, 300.0 120.0"
