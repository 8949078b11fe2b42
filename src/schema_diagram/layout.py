from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from grandalf.graphs import Vertex, Edge, Graph
from grandalf.layouts import SugiyamaLayout

from .errors import LayoutError
from .types import LayoutDirection, Point

logger = logging.getLogger(__name__)

# ============================================================================
# Position oracle
#
# Hierarchical node placement via grandalf (Sugiyama algorithm). Takes box
# sizes and edges, returns top-left positions. Grandalf always stacks
# layers along its y-axis, so LR layouts feed it transposed boxes and swap
# the coordinates back afterwards.
# ============================================================================

LAYOUT_NODE_SPACING = 120
LAYOUT_LAYER_SPACING = 120
LAYOUT_PADDING = 40


@dataclass(slots=True)
class LayoutNode:
    id: str
    width: float
    height: float


@dataclass(slots=True)
class LayoutEdge:
    source_id: str
    target_id: str


@dataclass(slots=True)
class LayoutResult:
    # Top-left corner per node id
    positions: dict[str, Point] = field(default_factory=dict)
    width: float = 0
    height: float = 0

    def as_records(self) -> list[dict[str, float | str]]:
        return [{"id": node_id, "x": p.x, "y": p.y} for node_id, p in self.positions.items()]


# ============================================================================
# Vertex view for grandalf -- provides width/height for layout
# ============================================================================


class _VertexView:
    """Minimal view object required by grandalf's SugiyamaLayout."""

    def __init__(self, w: float = 60, h: float = 36) -> None:
        self.w = w
        self.h = h
        # xy is set by the layout engine (center coordinates)
        self.xy = (0.0, 0.0)


def center_to_top_left(cx: float, cy: float, width: float, height: float) -> Point:
    """Convert center-based coordinates to top-left origin."""
    return Point(x=cx - width / 2, y=cy - height / 2)


def choose_direction(viewport_width: float, viewport_height: float) -> LayoutDirection:
    """Left-to-right on landscape viewports, top-to-bottom on portrait ones."""
    return "LR" if viewport_width > viewport_height else "TB"


# ============================================================================
# Main layout function
# ============================================================================


def layout_positions(
    nodes: Iterable[LayoutNode],
    edges: Iterable[LayoutEdge],
    direction: LayoutDirection = "LR",
    node_spacing: float = LAYOUT_NODE_SPACING,
    layer_spacing: float = LAYOUT_LAYER_SPACING,
    padding: float = LAYOUT_PADDING,
) -> LayoutResult:
    """Place nodes with grandalf and return top-left positions.

    Each connected component is laid out on its own; components are then
    stacked across the flow direction, node_spacing apart. Self-loops and
    repeated edges between the same pair are not passed to grandalf.
    """
    node_list = list(nodes)
    if not node_list:
        return LayoutResult()

    horizontal = direction == "LR"
    sizes = {node.id: (node.width, node.height) for node in node_list}

    # 1. Build grandalf graph
    vertices: dict[str, Vertex] = {}
    for node in node_list:
        v = Vertex(node.id)
        # LR: grandalf's y-axis is our x-axis, so hand it the transposed box
        if horizontal:
            v.view = _VertexView(node.height, node.width)
        else:
            v.view = _VertexView(node.width, node.height)
        vertices[node.id] = v

    edges_list: list[Edge] = []
    seen_pairs: set[frozenset[str]] = set()
    for edge in edges:
        src_v = vertices.get(edge.source_id)
        tgt_v = vertices.get(edge.target_id)
        if src_v is None or tgt_v is None:
            logger.debug("Skipping layout edge %s -> %s: unknown node", edge.source_id, edge.target_id)
            continue
        pair = frozenset((edge.source_id, edge.target_id))
        if len(pair) < 2 or pair in seen_pairs:
            continue
        seen_pairs.add(pair)
        edges_list.append(Edge(src_v, tgt_v))

    g = Graph(list(vertices.values()), edges_list)

    # 2. Lay out each connected component
    components: list[list[tuple[str, float, float]]] = []
    for core in g.C:
        members = list(core.sV)
        if len(members) > 1:
            try:
                sug = SugiyamaLayout(core)
                sug.xspace = node_spacing
                sug.yspace = layer_spacing
                sug.init_all()
                sug.draw()
            except Exception as err:
                raise LayoutError(f"Grandalf layout failed: {err}") from err
        else:
            members[0].view.xy = (0.0, 0.0)

        placed: list[tuple[str, float, float]] = []
        for v in members:
            gx, gy = v.view.xy
            cx, cy = (gy, gx) if horizontal else (gx, gy)
            placed.append((v.data, cx, cy))
        components.append(placed)

    # 3. Stack components across the flow and convert to top-left
    result = LayoutResult()
    offset = 0.0
    for placed in components:
        lefts = []
        tops = []
        for node_id, cx, cy in placed:
            w, h = sizes[node_id]
            tl = center_to_top_left(cx, cy, w, h)
            lefts.append(tl.x)
            tops.append(tl.y)
        min_x = min(lefts)
        min_y = min(tops)

        extent = 0.0
        for node_id, cx, cy in placed:
            w, h = sizes[node_id]
            tl = center_to_top_left(cx, cy, w, h)
            if horizontal:
                pos = Point(x=tl.x - min_x + padding, y=tl.y - min_y + padding + offset)
                extent = max(extent, pos.y + h - padding - offset)
            else:
                pos = Point(x=tl.x - min_x + padding + offset, y=tl.y - min_y + padding)
                extent = max(extent, pos.x + w - padding - offset)
            result.positions[node_id] = pos
        offset += extent + node_spacing

    # Compute final dimensions
    result.width = max(p.x + sizes[i][0] for i, p in result.positions.items()) + padding
    result.height = max(p.y + sizes[i][1] for i, p in result.positions.items()) + padding

    logger.debug(
        "Laid out %d nodes in %d components (%s)", len(node_list), len(components), direction
    )
    return result
