from __future__ import annotations

import math
from collections.abc import Iterable

from .errors import InvalidGeometryError
from .types import Entity, Point, Port, Side, SIDES, Size

# ============================================================================
# Geometry calculator
#
# Pure functions that decide port placement from the spatial relationship
# between entity boxes. Screen coordinates: Y increases downward, so
#   0° = right, 90° = down, ±180° = left, -90° = up.
# ============================================================================

# Angle used when two centers coincide (self-references, stacked boxes)
DEFAULT_COINCIDENT_ANGLE = 0.0

_COINCIDENT_EPSILON = 1e-9


def center(position: Point, size: Size) -> Point:
    """Center of a box given its top-left corner and size."""
    return Point(x=position.x + size.width / 2, y=position.y + size.height / 2)


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into the half-open interval (-180, 180]."""
    if not math.isfinite(angle):
        raise InvalidGeometryError(f"Cannot normalize non-finite angle: {angle}")
    if -180.0 < angle <= 180.0:
        return angle
    wrapped = math.fmod(angle, 360.0)
    if wrapped <= -180.0:
        wrapped += 360.0
    elif wrapped > 180.0:
        wrapped -= 360.0
    return wrapped


def angle_between(from_pt: Point, to_pt: Point) -> float:
    """Angle in degrees from one point to another, in (-180, 180]."""
    dx = to_pt.x - from_pt.x
    dy = to_pt.y - from_pt.y
    if abs(dx) < _COINCIDENT_EPSILON and abs(dy) < _COINCIDENT_EPSILON:
        return DEFAULT_COINCIDENT_ANGLE
    return normalize_angle(math.degrees(math.atan2(dy, dx)))


def corner_angle(width: float, height: float) -> float:
    """Angle from a box's center to its lower-right corner.

    A 250x100 box gives ~21.8°, a square gives exactly 45°.
    """
    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        raise InvalidGeometryError(f"Box size must be positive, got {width}x{height}")
    return math.degrees(math.atan2(height / 2, width / 2))


def side_from_angle(angle: float, width: float, height: float) -> Side:
    """Side of a width x height box facing the given direction.

    The right/left zones span the corner angle c on either side of the
    horizontal axis, so wide boxes get wide right/left zones. Boundary
    angles belong to the first matching zone: c is bottom, -c is right,
    180-c is left, -(180-c) is top.
    """
    c = corner_angle(width, height)
    a = normalize_angle(angle)

    if -c <= a < c:
        return "right"
    if c <= a < 180.0 - c:
        return "bottom"
    if a >= 180.0 - c or a < -(180.0 - c):
        return "left"
    return "top"


# ============================================================================
# Port grouping and ordering
# ============================================================================


def _left_sort_value(angle: float) -> float:
    # Left-side angles straddle ±180°; shifting negatives by 360 moves the
    # cut to 0°, which no left-side angle can reach.
    return angle + 360.0 if angle < 0 else angle


def group_ports_by_side(ports: Iterable[Port]) -> dict[Side, list[Port]]:
    grouped: dict[Side, list[Port]] = {side: [] for side in SIDES}
    for port in ports:
        grouped[port.side].append(port)
    return grouped


def sort_ports_by_side(ports: Iterable[Port], side: Side) -> list[Port]:
    """Order one side's ports so they read naturally along that side.

    top and right run left-to-right / top-to-bottom by ascending angle;
    bottom runs left-to-right by descending angle; left runs top-to-bottom
    by descending angle after normalizing negatives into [180, 360).
    Equal angles fall back to the port id so the order is deterministic.
    """
    if side in ("top", "right"):
        return sorted(ports, key=lambda p: (p.angle, p.id))
    if side == "bottom":
        return sorted(ports, key=lambda p: (-p.angle, p.id))
    return sorted(ports, key=lambda p: (-_left_sort_value(p.angle), p.id))


def sort_all_ports(ports: Iterable[Port]) -> dict[Side, list[Port]]:
    grouped = group_ports_by_side(ports)
    return {side: sort_ports_by_side(grouped[side], side) for side in SIDES}


def distribute_offsets(count: int) -> list[float]:
    """Evenly spaced fractions k/(n+1); never touches a corner."""
    return [k / (count + 1) for k in range(1, count + 1)]


# ============================================================================
# Point helpers
# ============================================================================


def midpoint(a: Point, b: Point) -> Point:
    return Point(x=(a.x + b.x) / 2, y=(a.y + b.y) / 2)


def from_polar(length: float, degrees: float, origin: Point | None = None) -> Point:
    """Point at the given distance and screen-space angle from origin."""
    rad = math.radians(degrees)
    ox = origin.x if origin else 0.0
    oy = origin.y if origin else 0.0
    return Point(x=ox + length * math.cos(rad), y=oy + length * math.sin(rad))


def port_position(entity: Entity, side: Side, fraction: float) -> Point:
    """Absolute canvas position of a port placed at fraction along side."""
    if side == "top":
        return Point(x=entity.x + entity.width * fraction, y=entity.y)
    if side == "right":
        return Point(x=entity.x + entity.width, y=entity.y + entity.height * fraction)
    if side == "bottom":
        return Point(x=entity.x + entity.width * fraction, y=entity.y + entity.height)
    return Point(x=entity.x, y=entity.y + entity.height * fraction)
