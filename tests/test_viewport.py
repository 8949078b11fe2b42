"""Tests for the viewport controller -- zoom, pan, pinch, resize and fit."""
from __future__ import annotations

import pytest

from schema_diagram.types import BBox, Point, Size, ViewportState
from schema_diagram.viewport import MAX_SCALE, MIN_SCALE, ViewportController


def assert_point(actual: Point, x: float, y: float) -> None:
    assert actual.x == pytest.approx(x)
    assert actual.y == pytest.approx(y)


class TestCoordinateConversion:
    def test_identity_at_default_state(self):
        vp = ViewportController()
        assert vp.screen_to_world(Point(x=10, y=20)) == Point(x=10, y=20)

    def test_screen_to_world_inverts_world_to_screen(self):
        vp = ViewportController(ViewportState(scale=1.5, translate_x=30, translate_y=-12))
        world = Point(x=77, y=-4)
        assert_point(vp.screen_to_world(vp.world_to_screen(world)), 77, -4)

    def test_visible_world_bounds(self):
        vp = ViewportController(ViewportState(scale=2, translate_x=-100, translate_y=-50))
        assert vp.visible_world_bounds(800, 600) == BBox(x=50, y=25, width=400, height=300)


class TestZoom:
    def test_zoom_keeps_anchor_fixed(self):
        vp = ViewportController()
        state = vp.zoom_at(0.2, Point(x=100, y=100))
        assert state.scale == pytest.approx(1.2)
        assert state.translate_x == pytest.approx(-20)
        assert state.translate_y == pytest.approx(-20)
        assert_point(vp.world_to_screen(Point(x=100, y=100)), 100, 100)

    def test_zoom_is_clamped_to_bounds(self):
        vp = ViewportController()
        assert vp.zoom_to(50, Point(x=0, y=0)).scale == MAX_SCALE
        assert vp.zoom_to(0.001, Point(x=0, y=0)).scale == MIN_SCALE

    def test_initial_state_is_clamped(self):
        vp = ViewportController(ViewportState(scale=10))
        assert vp.state.scale == MAX_SCALE

    def test_anchor_stays_fixed_even_when_clamped(self):
        vp = ViewportController(ViewportState(scale=2.9, translate_x=15, translate_y=8))
        anchor = Point(x=300, y=200)
        world = vp.screen_to_world(anchor)
        vp.zoom_at(0.5, anchor)
        assert_point(vp.world_to_screen(world), 300, 200)

    def test_zoom_in_and_out_about_center(self):
        vp = ViewportController()
        viewport = Size(width=800, height=600)
        center_world = vp.screen_to_world(Point(x=400, y=300))

        vp.zoom_in(viewport)
        assert vp.state.scale == pytest.approx(1.2)
        assert_point(vp.world_to_screen(center_world), 400, 300)

        vp.zoom_out(viewport)
        vp.zoom_out(viewport)
        assert vp.state.scale == pytest.approx(1 / 1.2)
        assert_point(vp.world_to_screen(center_world), 400, 300)

    def test_custom_zoom_step(self):
        vp = ViewportController(zoom_step=2)
        vp.zoom_in(Size(width=100, height=100))
        assert vp.state.scale == 2


class TestWheelZoom:
    def test_touchpad_scroll_up_zooms_in_proportionally(self):
        vp = ViewportController()
        assert vp.wheel_zoom(-10, Point(x=0, y=0))
        assert vp.state.scale == pytest.approx(1.05)

    def test_mouse_wheel_steps_by_fixed_amount(self):
        vp = ViewportController()
        assert vp.wheel_zoom(120, Point(x=0, y=0))
        assert vp.state.scale == pytest.approx(0.9)

    def test_no_change_at_bound_returns_false(self):
        vp = ViewportController(ViewportState(scale=MIN_SCALE))
        assert not vp.wheel_zoom(120, Point(x=0, y=0))
        assert vp.state.scale == MIN_SCALE

    def test_zero_delta_is_ignored(self):
        vp = ViewportController()
        assert not vp.wheel_zoom(0, Point(x=0, y=0))

    def test_wheel_zoom_keeps_cursor_point_fixed(self):
        vp = ViewportController()
        cursor = Point(x=250, y=130)
        world = vp.screen_to_world(cursor)
        vp.wheel_zoom(-100, cursor)
        assert_point(vp.world_to_screen(world), 250, 130)


class TestPinch:
    def test_spreading_fingers_zooms_in_about_midpoint(self):
        vp = ViewportController()
        vp.pinch_start(Point(x=100, y=100), Point(x=200, y=100))
        assert vp.is_pinching
        midpoint_world = vp.screen_to_world(Point(x=150, y=100))

        assert vp.pinch_move(Point(x=50, y=100), Point(x=250, y=100))
        assert vp.state.scale == pytest.approx(2)
        assert_point(vp.world_to_screen(midpoint_world), 150, 100)

        vp.pinch_end()
        assert not vp.is_pinching

    def test_pinch_is_relative_to_scale_at_start(self):
        vp = ViewportController(ViewportState(scale=0.5))
        vp.pinch_start(Point(x=0, y=0), Point(x=100, y=0))
        vp.pinch_move(Point(x=0, y=0), Point(x=150, y=0))
        vp.pinch_move(Point(x=0, y=0), Point(x=200, y=0))
        assert vp.state.scale == pytest.approx(1.0)

    def test_move_without_start_is_ignored(self):
        vp = ViewportController()
        assert not vp.pinch_move(Point(x=0, y=0), Point(x=10, y=0))

    def test_zero_distance_start_is_ignored(self):
        vp = ViewportController()
        vp.pinch_start(Point(x=5, y=5), Point(x=5, y=5))
        assert not vp.pinch_move(Point(x=0, y=0), Point(x=10, y=0))
        assert vp.state.scale == 1.0


class TestPan:
    def test_pan_translates_by_pointer_delta(self):
        vp = ViewportController()
        vp.pan_start(Point(x=10, y=10))
        assert vp.is_panning
        vp.pan_move(Point(x=30, y=5))
        vp.pan_move(Point(x=40, y=0))
        assert (vp.state.translate_x, vp.state.translate_y) == (30, -10)
        vp.pan_end()
        assert not vp.is_panning

    def test_small_drag_is_not_a_pan(self):
        vp = ViewportController()
        vp.pan_start(Point(x=0, y=0))
        vp.pan_move(Point(x=3, y=3))
        vp.pan_end()
        assert not vp.has_panned

    def test_large_drag_marks_panned_until_next_start(self):
        vp = ViewportController()
        vp.pan_start(Point(x=0, y=0))
        vp.pan_move(Point(x=20, y=0))
        vp.pan_end()
        assert vp.has_panned
        vp.pan_start(Point(x=0, y=0))
        assert not vp.has_panned

    def test_move_without_start_is_ignored(self):
        vp = ViewportController()
        assert not vp.pan_move(Point(x=20, y=20))
        assert vp.state.translate_x == 0


class TestResize:
    def test_panel_open_then_close_restores_state(self):
        vp = ViewportController(ViewportState(scale=1.3, translate_x=-75, translate_y=40))
        vp.open_panel(Size(width=1200, height=700))
        assert vp.state.scale == pytest.approx(1.3 * 800 / 1200)

        vp.close_panel(Size(width=800, height=700))
        assert vp.state.scale == pytest.approx(1.3)
        assert vp.state.translate_x == pytest.approx(-75)
        assert vp.state.translate_y == pytest.approx(40)

    def test_visible_center_stays_centered(self):
        vp = ViewportController(ViewportState(scale=1, translate_x=10, translate_y=20))
        before = vp.visible_world_bounds(1000, 600).center
        vp.adjust_for_viewport_resize(1000, 500, 600)
        assert_point(vp.world_to_screen(before), 250, 300)

    @pytest.mark.parametrize("widths", [(0, 500), (500, 0), (-1, 500)])
    def test_degenerate_widths_are_ignored(self, widths):
        vp = ViewportController(ViewportState(scale=1.1, translate_x=3, translate_y=4))
        vp.adjust_for_viewport_resize(*widths, 600)
        assert vp.state == ViewportState(scale=1.1, translate_x=3, translate_y=4)

    def test_resize_scale_is_clamped(self):
        vp = ViewportController(ViewportState(scale=MIN_SCALE))
        vp.adjust_for_viewport_resize(1000, 100, 600)
        assert vp.state.scale == MIN_SCALE


class TestFitToContent:
    def test_large_content_is_scaled_down_and_centered(self):
        vp = ViewportController()
        state = vp.fit_to_content(
            BBox(x=0, y=0, width=1000, height=500), Size(width=1000, height=600), padding=40
        )
        assert state.scale == pytest.approx(0.92)
        assert state.translate_x == pytest.approx(40)
        assert state.translate_y == pytest.approx(70)

    def test_small_content_is_never_magnified(self):
        vp = ViewportController(ViewportState(scale=2.5))
        state = vp.fit_to_content(
            BBox(x=100, y=100, width=200, height=100), Size(width=1000, height=600)
        )
        assert state.scale == 1.0
        assert state.translate_x == pytest.approx(300)
        assert state.translate_y == pytest.approx(150)

    def test_content_center_lands_on_viewport_center(self):
        vp = ViewportController()
        content = BBox(x=-300, y=250, width=2400, height=900)
        vp.fit_to_content(content, Size(width=1280, height=720))
        assert_point(vp.world_to_screen(content.center), 640, 360)

    def test_tiny_viewport_clamps_to_min_scale(self):
        vp = ViewportController()
        vp.fit_to_content(BBox(x=0, y=0, width=100000, height=100000), Size(width=200, height=200))
        assert vp.state.scale == MIN_SCALE

    def test_empty_content_is_a_no_op(self):
        vp = ViewportController(ViewportState(scale=1.4, translate_x=5, translate_y=6))
        vp.fit_to_content(BBox(x=0, y=0, width=0, height=0), Size(width=800, height=600))
        assert vp.state == ViewportState(scale=1.4, translate_x=5, translate_y=6)

    def test_zero_area_viewport_is_a_no_op(self):
        vp = ViewportController()
        vp.fit_to_content(BBox(x=0, y=0, width=10, height=10), Size(width=0, height=600))
        assert vp.state == ViewportState()


class TestCenterOn:
    def test_world_point_lands_mid_viewport_at_current_scale(self):
        vp = ViewportController(ViewportState(scale=1.7, translate_x=-300, translate_y=90))
        vp.center_on(Point(x=525, y=350), Size(width=1000, height=600))
        assert vp.state.scale == 1.7
        assert_point(vp.world_to_screen(Point(x=525, y=350)), 500, 300)
