"""schema-diagram -- port placement, link routing and viewport math for ER diagrams."""

from __future__ import annotations

from .types import (
    BBox,
    DiagramOptions,
    Entity,
    ForeignKey,
    LinkBinding,
    ManyToMany,
    ParallelGroup,
    Point,
    Port,
    PortKey,
    PortKind,
    PortSet,
    Relationship,
    Side,
    SIDES,
    Size,
    ViewportState,
    relationship_key,
)
from .errors import (
    BatchError,
    InvalidGeometryError,
    LayoutError,
    SchemaDiagramError,
    UnknownEntityError,
)
from .geometry import angle_between, center, side_from_angle, sort_all_ports
from .ports import PortAssignmentEngine, recompute_all_ports, recompute_ports
from .parallel import ParallelEdgeSeparator, fan_out_waypoints, group_parallel_links
from .routing import LinkRoutingCoordinator, RoutingIssue, RoutingReport
from .batch import BatchCommit, DiagramState, Highlight, UpdateBatch
from .viewport import ViewportController
from .layout import LayoutEdge, LayoutNode, LayoutResult, layout_positions
from .diagram import SchemaDiagram

__version__ = "0.1.0"

__all__ = [
    # Facade
    "SchemaDiagram",
    "DiagramOptions",
    # Model
    "Entity",
    "ForeignKey",
    "ManyToMany",
    "Relationship",
    "relationship_key",
    "Point",
    "Size",
    "BBox",
    "Side",
    "SIDES",
    # Geometry
    "center",
    "angle_between",
    "side_from_angle",
    "sort_all_ports",
    # Ports
    "Port",
    "PortKey",
    "PortKind",
    "PortSet",
    "PortAssignmentEngine",
    "recompute_ports",
    "recompute_all_ports",
    # Parallel links
    "ParallelGroup",
    "ParallelEdgeSeparator",
    "fan_out_waypoints",
    "group_parallel_links",
    # Routing
    "LinkBinding",
    "LinkRoutingCoordinator",
    "RoutingIssue",
    "RoutingReport",
    # Batching
    "UpdateBatch",
    "DiagramState",
    "BatchCommit",
    "Highlight",
    # Viewport
    "ViewportController",
    "ViewportState",
    # Layout
    "LayoutNode",
    "LayoutEdge",
    "LayoutResult",
    "layout_positions",
    # Errors
    "SchemaDiagramError",
    "InvalidGeometryError",
    "LayoutError",
    "BatchError",
    "UnknownEntityError",
]
