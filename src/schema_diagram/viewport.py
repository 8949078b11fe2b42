from __future__ import annotations

import logging
import math

from .types import BBox, Point, Size, ViewportState

logger = logging.getLogger(__name__)

# ============================================================================
# Viewport controller
#
# The canvas maps world coordinates to screen coordinates as
#   screen = world * scale + translate
# Every operation here rewrites scale/translate so that some world point
# stays put on screen (the cursor, the pinch centroid, the center of the
# visible region). Scale is always clamped to [min_scale, max_scale].
# ============================================================================

MIN_SCALE = 0.1
MAX_SCALE = 3.0
ZOOM_STEP = 1.2
FIT_PADDING = 40.0
PANEL_WIDTH = 400.0

# Pointer travel (px) beyond which a drag counts as a pan, not a click
PAN_CLICK_THRESHOLD = 8.0

# Wheel deltas below this come from touchpads, above from mouse wheels
TOUCHPAD_DELTA_THRESHOLD = 50.0
TOUCHPAD_ZOOM_PER_PIXEL = 0.005
MOUSE_ZOOM_PER_NOTCH = 0.1


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


class ViewportController:
    def __init__(
        self,
        state: ViewportState | None = None,
        min_scale: float = MIN_SCALE,
        max_scale: float = MAX_SCALE,
        zoom_step: float = ZOOM_STEP,
        panel_width: float = PANEL_WIDTH,
    ) -> None:
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.zoom_step = zoom_step
        self.panel_width = panel_width
        self.state = state if state is not None else ViewportState()
        self.state.scale = self.clamp_scale(self.state.scale)

        self._pinch_distance: float | None = None
        self._pinch_scale = self.state.scale
        self._pan_last: Point | None = None
        self.has_panned = False

    def clamp_scale(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))

    # -- coordinate conversion ----------------------------------------------

    def screen_to_world(self, point: Point) -> Point:
        s = self.state
        return Point(
            x=(point.x - s.translate_x) / s.scale,
            y=(point.y - s.translate_y) / s.scale,
        )

    def world_to_screen(self, point: Point) -> Point:
        s = self.state
        return Point(
            x=point.x * s.scale + s.translate_x,
            y=point.y * s.scale + s.translate_y,
        )

    def visible_world_bounds(self, width: float, height: float) -> BBox:
        """World-space rectangle currently shown in a width x height viewport."""
        s = self.state
        return BBox(
            x=-s.translate_x / s.scale,
            y=-s.translate_y / s.scale,
            width=width / s.scale,
            height=height / s.scale,
        )

    # -- zoom ----------------------------------------------------------------

    def zoom_to(self, new_scale: float, anchor: Point) -> ViewportState:
        """Set the scale, keeping the world point under anchor fixed on screen."""
        world = self.screen_to_world(anchor)
        scale = self.clamp_scale(new_scale)
        self.state.scale = scale
        self.state.translate_x = anchor.x - world.x * scale
        self.state.translate_y = anchor.y - world.y * scale
        return self.state

    def zoom_at(self, factor_delta: float, anchor: Point) -> ViewportState:
        """Zoom by a relative factor (0.2 = +20%) about a screen point."""
        return self.zoom_to(self.state.scale * (1 + factor_delta), anchor)

    def wheel_zoom(self, delta_y: float, anchor: Point) -> bool:
        """Zoom for one wheel event; returns False when nothing changed.

        Scrolling up (negative delta) zooms in. Touchpads report small
        deltas and zoom proportionally; mouse wheels step by a fixed amount.
        """
        magnitude = abs(delta_y)
        if magnitude == 0:
            return False
        if magnitude < TOUCHPAD_DELTA_THRESHOLD:
            intensity = magnitude * TOUCHPAD_ZOOM_PER_PIXEL
        else:
            intensity = MOUSE_ZOOM_PER_NOTCH
        new_scale = self.clamp_scale(self.state.scale - math.copysign(intensity, delta_y))
        if new_scale == self.state.scale:
            return False
        self.zoom_to(new_scale, anchor)
        return True

    def zoom_in(self, viewport: Size) -> ViewportState:
        center = Point(x=viewport.width / 2, y=viewport.height / 2)
        return self.zoom_to(self.state.scale * self.zoom_step, center)

    def zoom_out(self, viewport: Size) -> ViewportState:
        center = Point(x=viewport.width / 2, y=viewport.height / 2)
        return self.zoom_to(self.state.scale / self.zoom_step, center)

    # -- pinch ---------------------------------------------------------------

    def pinch_start(self, first: Point, second: Point) -> None:
        self._pinch_distance = _distance(first, second)
        self._pinch_scale = self.state.scale

    def pinch_move(self, first: Point, second: Point) -> bool:
        """Scale by the change in finger distance about the finger midpoint."""
        if not self._pinch_distance:
            return False
        ratio = _distance(first, second) / self._pinch_distance
        centroid = Point(x=(first.x + second.x) / 2, y=(first.y + second.y) / 2)
        self.zoom_to(self._pinch_scale * ratio, centroid)
        return True

    def pinch_end(self) -> None:
        self._pinch_distance = None

    @property
    def is_pinching(self) -> bool:
        return self._pinch_distance is not None

    # -- pan -----------------------------------------------------------------

    def pan_start(self, point: Point) -> None:
        self._pan_last = point
        self.has_panned = False

    def pan_move(self, point: Point) -> bool:
        if self._pan_last is None:
            return False
        dx = point.x - self._pan_last.x
        dy = point.y - self._pan_last.y
        if abs(dx) > PAN_CLICK_THRESHOLD or abs(dy) > PAN_CLICK_THRESHOLD:
            self.has_panned = True
        self.state.translate_x += dx
        self.state.translate_y += dy
        self._pan_last = point
        return True

    def pan_end(self) -> None:
        """Stop panning. has_panned stays set so the trailing click can be ignored."""
        self._pan_last = None

    @property
    def is_panning(self) -> bool:
        return self._pan_last is not None

    # -- viewport size changes -----------------------------------------------

    def adjust_for_viewport_resize(
        self, old_width: float, new_width: float, view_height: float
    ) -> ViewportState:
        """Rescale for a width change so the same world region stays in view.

        The center of the previously visible region ends up at the center of
        the resized viewport. Opening then closing a panel of the same width
        restores the previous scale and translate.
        """
        if old_width <= 0 or new_width <= 0:
            logger.debug("Ignoring viewport resize %s -> %s", old_width, new_width)
            return self.state

        visible = self.visible_world_bounds(old_width, view_height)
        visible_center = visible.center
        scale = self.clamp_scale(self.state.scale * (new_width / old_width))

        self.state.scale = scale
        self.state.translate_x = new_width / 2 - visible_center.x * scale
        self.state.translate_y = view_height / 2 - visible_center.y * scale
        return self.state

    def open_panel(self, viewport: Size) -> ViewportState:
        """Compensate for a side panel taking panel_width from the viewport."""
        return self.adjust_for_viewport_resize(
            viewport.width, viewport.width - self.panel_width, viewport.height
        )

    def close_panel(self, viewport: Size) -> ViewportState:
        """Inverse of open_panel; viewport is the size while the panel is open."""
        return self.adjust_for_viewport_resize(
            viewport.width, viewport.width + self.panel_width, viewport.height
        )

    def center_on(self, world_point: Point, viewport: Size) -> ViewportState:
        """Translate so world_point lands at the viewport center; scale is kept."""
        self.state.translate_x = viewport.width / 2 - world_point.x * self.state.scale
        self.state.translate_y = viewport.height / 2 - world_point.y * self.state.scale
        return self.state

    # -- fit -----------------------------------------------------------------

    def fit_to_content(
        self, content: BBox, viewport: Size, padding: float = FIT_PADDING
    ) -> ViewportState:
        """Scale and center content inside the viewport, never zooming past 1:1."""
        if content.width <= 0 or content.height <= 0:
            logger.debug("Nothing to fit: empty content bounds")
            return self.state
        if viewport.width <= 0 or viewport.height <= 0:
            logger.debug("Nothing to fit: viewport has no area")
            return self.state

        scale = min(
            (viewport.width - 2 * padding) / content.width,
            (viewport.height - 2 * padding) / content.height,
            1.0,
        )
        scale = self.clamp_scale(scale)

        self.state.scale = scale
        self.state.translate_x = (viewport.width - content.width * scale) / 2 - content.x * scale
        self.state.translate_y = (viewport.height - content.height * scale) / 2 - content.y * scale
        return self.state
