from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal, Union

from .errors import InvalidGeometryError

# ============================================================================
# Geometry primitives -- canvas coordinates, Y increases downward
# ============================================================================

Side = Literal["top", "right", "bottom", "left"]

SIDES: tuple[Side, ...] = ("top", "right", "bottom", "left")


@dataclass(slots=True)
class Point:
    x: float
    y: float


@dataclass(slots=True)
class Size:
    width: float
    height: float


@dataclass(slots=True)
class BBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(x=self.x + self.width / 2, y=self.y + self.height / 2)

    def union(self, other: BBox) -> BBox:
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        right = max(self.x + self.width, other.x + other.width)
        bottom = max(self.y + self.height, other.y + other.height)
        return BBox(x=left, y=top, width=right - left, height=bottom - top)


# ============================================================================
# Diagram model -- entities and the relationships between them
# ============================================================================


@dataclass(slots=True)
class Entity:
    """A table box. Position is the top-left corner supplied by the layout."""

    id: str
    table_name: str
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidGeometryError(
                    f"Entity {self.id!r} has non-positive {name}: {value}"
                )

    @property
    def position(self) -> Point:
        return Point(x=self.x, y=self.y)

    @property
    def size(self) -> Size:
        return Size(width=self.width, height=self.height)

    @property
    def center(self) -> Point:
        return Point(x=self.x + self.width / 2, y=self.y + self.height / 2)

    @property
    def bbox(self) -> BBox:
        return BBox(x=self.x, y=self.y, width=self.width, height=self.height)

    def moved_to(self, x: float, y: float) -> Entity:
        return replace(self, x=x, y=y)


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """source_table.source_column references target_table.target_join_column."""

    source_table: str
    source_column: str
    target_table: str
    target_join_column: str


@dataclass(frozen=True, slots=True)
class ManyToMany:
    """source_table and target_table associated through junction_table."""

    junction_table: str
    source_table: str
    target_table: str


Relationship = Union[ForeignKey, ManyToMany]


def relationship_key(rel: Relationship) -> str:
    """Stable string identity of a relationship, used to key route bindings."""
    if isinstance(rel, ForeignKey):
        return (
            f"fk:{rel.source_table}.{rel.source_column}"
            f"->{rel.target_table}.{rel.target_join_column}"
        )
    return f"m2m:{rel.junction_table}:{rel.source_table}<->{rel.target_table}"


# ============================================================================
# Ports -- connection points on the four sides of an entity box
# ============================================================================


class PortKind(str, Enum):
    FK_OUT = "out"
    FK_IN = "in"
    M2M_OUT = "m2m_out"
    M2M_IN = "m2m_in"


@dataclass(frozen=True, slots=True)
class PortKey:
    """Structural identity of a port, independent of the side it lands on.

    The same relationship always produces the same key, so ports can be
    matched across layout passes by equality instead of string search.
    """

    kind: PortKind
    related_table: str
    join_column: str | None = None
    own_column: str | None = None
    junction_table: str | None = None

    @classmethod
    def for_source(cls, rel: Relationship) -> PortKey:
        """Key of the port on the relationship's source entity."""
        if isinstance(rel, ForeignKey):
            return cls(
                kind=PortKind.FK_OUT,
                related_table=rel.target_table,
                join_column=rel.target_join_column,
                own_column=rel.source_column,
            )
        return cls(
            kind=PortKind.M2M_OUT,
            related_table=rel.target_table,
            junction_table=rel.junction_table,
        )

    @classmethod
    def for_target(cls, rel: Relationship) -> PortKey:
        """Key of the port on the relationship's target entity."""
        if isinstance(rel, ForeignKey):
            return cls(
                kind=PortKind.FK_IN,
                related_table=rel.source_table,
                join_column=rel.target_join_column,
                own_column=rel.source_column,
            )
        return cls(
            kind=PortKind.M2M_IN,
            related_table=rel.source_table,
            junction_table=rel.junction_table,
        )

    def serialize(self, side: Side) -> str:
        """Render the string port id handed to the renderer."""
        if self.kind is PortKind.FK_OUT:
            return f"{side}_out_{self.related_table}_{self.join_column}_{self.own_column}"
        if self.kind is PortKind.FK_IN:
            return f"{side}_in_{self.join_column}_{self.related_table}_{self.own_column}"
        return f"{side}_{self.kind.value}_{self.junction_table}"


@dataclass(slots=True)
class Port:
    key: PortKey
    side: Side
    # Degrees from this entity's center to the related entity's center
    angle: float
    related_table: str
    # Position along the side, strictly inside (0, 1)
    offset_fraction: float = 0.0
    # Set when distinct keys serialize to the same id on one entity
    id_suffix: str = ""

    @property
    def id(self) -> str:
        return self.key.serialize(self.side) + self.id_suffix


@dataclass(slots=True)
class PortSet:
    """Ports of one entity grouped by side, each list in render order."""

    top: list[Port] = field(default_factory=list)
    right: list[Port] = field(default_factory=list)
    bottom: list[Port] = field(default_factory=list)
    left: list[Port] = field(default_factory=list)

    def side(self, name: Side) -> list[Port]:
        return getattr(self, name)

    def all_ports(self) -> list[Port]:
        return [port for name in SIDES for port in self.side(name)]

    def find(self, key: PortKey, side: Side | None = None) -> Port | None:
        candidates = self.side(side) if side is not None else self.all_ports()
        for port in candidates:
            if port.key == key:
                return port
        return None

    def is_empty(self) -> bool:
        return not (self.top or self.right or self.bottom or self.left)

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        return {
            name: [
                {
                    "id": port.id,
                    "offset": port.offset_fraction,
                    "angle": port.angle,
                    "related_table": port.related_table,
                }
                for port in self.side(name)
            ]
            for name in SIDES
        }


# ============================================================================
# Routing output -- what the renderer consumes for each relationship
# ============================================================================


@dataclass(slots=True)
class ParallelGroup:
    """Relationships sharing the same unordered pair of entities."""

    # Entity ids, sorted
    pair: tuple[str, str]
    members: list[Relationship] = field(default_factory=list)
    # relationship_key -> waypoints; the first member has none
    waypoints: dict[str, list[Point]] = field(default_factory=dict)


@dataclass(slots=True)
class LinkBinding:
    relationship: Relationship
    source_entity_id: str
    target_entity_id: str
    source_port_id: str
    target_port_id: str
    # Router hints: the face each end should approach from
    source_direction: list[Side]
    target_direction: list[Side]
    waypoints: list[Point] = field(default_factory=list)

    @property
    def key(self) -> str:
        return relationship_key(self.relationship)

    def as_tuple(self) -> tuple[str, str, list[Side], list[Side]]:
        return (
            self.source_port_id,
            self.target_port_id,
            self.source_direction,
            self.target_direction,
        )


# ============================================================================
# Viewport and user-facing configuration
# ============================================================================


@dataclass(slots=True)
class ViewportState:
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0


LayoutDirection = Literal["LR", "TB"]


@dataclass(slots=True)
class DiagramOptions:
    entity_width: float | None = None
    entity_height: float | None = None
    node_spacing: float | None = None
    layer_spacing: float | None = None
    padding: float | None = None
    parallel_gap: float | None = None
    min_scale: float | None = None
    max_scale: float | None = None
    zoom_step: float | None = None
    fit_padding: float | None = None
    panel_width: float | None = None
    direction: LayoutDirection | None = None
