from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from .batch import DiagramState, Highlight, Listener, UpdateBatch
from .errors import UnknownEntityError
from .geometry import port_position
from .layout import LayoutEdge, LayoutNode, LayoutResult, choose_direction, layout_positions
from .parallel import ParallelEdgeSeparator
from .ports import PortAssignmentEngine, index_by_table
from .routing import LinkRoutingCoordinator, RoutingReport, route_relationship
from .types import (
    BBox,
    DiagramOptions,
    Entity,
    LinkBinding,
    PortSet,
    Relationship,
    Size,
    relationship_key,
)
from .viewport import ViewportController

logger = logging.getLogger(__name__)

# Diagram defaults
DIAGRAM_DEFAULTS = {
    "entity_width": 250.0,
    "entity_height": 100.0,
    "node_spacing": 120.0,
    "layer_spacing": 120.0,
    "padding": 40.0,
    "parallel_gap": 35.0,
    "min_scale": 0.1,
    "max_scale": 3.0,
    "zoom_step": 1.2,
    "fit_padding": 40.0,
    "panel_width": 400.0,
    "direction": None,
}

# Spacing of the initial grid before the first auto-arrange
GRID_GAP = 50.0


def merge_options(options: DiagramOptions | None) -> dict:
    opts = dict(DIAGRAM_DEFAULTS)
    if options:
        for name in DIAGRAM_DEFAULTS:
            value = getattr(options, name)
            if value is not None:
                opts[name] = value
    return opts


class SchemaDiagram:
    """Entities, relationships and the derived ports, routes and viewport.

    Every operation that changes geometry runs a full layout pass
    (ports -> parallel waypoints -> routes) inside one update batch, so
    listeners only ever observe a consistent diagram.
    """

    def __init__(
        self,
        entities: Iterable[Entity],
        relationships: Iterable[Relationship] = (),
        options: DiagramOptions | None = None,
    ) -> None:
        self.options = merge_options(options)
        self._entities: dict[str, Entity] = {}
        for entity in entities:
            self._entities[entity.id] = entity
        self._relationships: list[Relationship] = []
        seen: set[str] = set()
        for rel in relationships:
            key = relationship_key(rel)
            if key in seen:
                logger.debug("Ignoring duplicate relationship %s", key)
                continue
            seen.add(key)
            self._relationships.append(rel)

        self.batch = UpdateBatch()
        self.ports = PortAssignmentEngine()
        self.separator = ParallelEdgeSeparator(gap=self.options["parallel_gap"])
        self.router = LinkRoutingCoordinator()
        self.viewport = ViewportController(
            min_scale=self.options["min_scale"],
            max_scale=self.options["max_scale"],
            zoom_step=self.options["zoom_step"],
            panel_width=self.options["panel_width"],
        )
        self.last_report: RoutingReport | None = None

    @classmethod
    def from_tables(
        cls,
        table_names: Iterable[str],
        relationships: Iterable[Relationship] = (),
        options: DiagramOptions | None = None,
    ) -> SchemaDiagram:
        """One default-sized box per table, placed on a square grid."""
        opts = merge_options(options)
        width = opts["entity_width"]
        height = opts["entity_height"]
        names = list(table_names)
        columns = max(1, math.ceil(math.sqrt(len(names))))

        entities = []
        for index, name in enumerate(names):
            row, col = divmod(index, columns)
            entities.append(
                Entity(
                    id=name,
                    table_name=name,
                    x=col * (width + GRID_GAP) + GRID_GAP,
                    y=row * (height + GRID_GAP) + GRID_GAP,
                    width=width,
                    height=height,
                )
            )
        return cls(entities, relationships, options)

    # -- snapshot access -----------------------------------------------------

    @property
    def entities(self) -> list[Entity]:
        return list(self._entities.values())

    @property
    def relationships(self) -> list[Relationship]:
        return list(self._relationships)

    @property
    def state(self) -> DiagramState:
        return self.batch.state

    def entity(self, entity_id: str) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise UnknownEntityError(entity_id) from None

    def subscribe(self, listener: Listener):
        return self.batch.subscribe(listener)

    def content_bbox(self) -> BBox | None:
        box: BBox | None = None
        for entity in self._entities.values():
            box = entity.bbox if box is None else box.union(entity.bbox)
        return box

    # -- layout passes -------------------------------------------------------

    def relayout(self) -> RoutingReport:
        """Recompute ports, sibling waypoints and routes from the current snapshot."""
        entities = self.entities
        relationships = self.relationships

        with self.batch.update("layout"):
            port_sets = self.ports.rebuild(entities, relationships)
            self.batch.set_port_sets(port_sets)
            waypoints = self.separator.separate(relationships, entities)
            report = self.router.route_all(relationships, entities, port_sets, waypoints)
            self.router.apply(report, self.batch)
            if self.state.highlight.entity_id is not None:
                self._stage_highlight(self.state.highlight.entity_id, report)

        self.last_report = report
        logger.debug(
            "Layout pass: %d routed, %d unrouted, %d dropped",
            len(report.bindings),
            len(report.unrouted),
            len(report.dropped),
        )
        return report

    def auto_arrange(self, viewport: Size | None = None) -> LayoutResult:
        """Place entities with the position oracle, relayout, then fit to view."""
        direction = self.options["direction"]
        if direction is None:
            direction = choose_direction(viewport.width, viewport.height) if viewport else "LR"

        by_table = index_by_table(self._entities.values())
        edges = []
        for rel in self._relationships:
            source = by_table.get(rel.source_table)
            target = by_table.get(rel.target_table)
            if source is not None and target is not None:
                edges.append(LayoutEdge(source_id=source.id, target_id=target.id))

        result = layout_positions(
            [LayoutNode(id=e.id, width=e.width, height=e.height) for e in self._entities.values()],
            edges,
            direction=direction,
            node_spacing=self.options["node_spacing"],
            layer_spacing=self.options["layer_spacing"],
            padding=self.options["padding"],
        )
        for entity_id, position in result.positions.items():
            self._entities[entity_id] = self._entities[entity_id].moved_to(position.x, position.y)

        self.relayout()
        if viewport is not None:
            self.zoom_to_fit(viewport)
        return result

    def move_entity(self, entity_id: str, x: float, y: float) -> RoutingReport:
        """Drag an entity to a new top-left position."""
        self._entities[entity_id] = self.entity(entity_id).moved_to(x, y)
        return self.relayout()

    def add_relationship(self, rel: Relationship) -> RoutingReport | None:
        """Add a link and relayout. A link already in the diagram changes nothing."""
        key = relationship_key(rel)
        if any(relationship_key(other) == key for other in self._relationships):
            logger.info("Relationship %s is already in the diagram", key)
            return self.last_report
        self._relationships.append(rel)
        return self.relayout()

    def remove_relationship(self, rel: Relationship) -> RoutingReport:
        self._relationships.remove(rel)
        return self.relayout()

    # -- selection -----------------------------------------------------------

    def _connected_keys(self, entity_id: str) -> list[str]:
        return [
            key
            for key, binding in self.batch.pending_bindings().items()
            if entity_id in (binding.source_entity_id, binding.target_entity_id)
        ]

    def _stage_highlight(self, entity_id: str, report: RoutingReport) -> None:
        keys = [
            key
            for key, binding in report.bindings.items()
            if entity_id in (binding.source_entity_id, binding.target_entity_id)
        ]
        self.batch.set_highlight(Highlight(entity_id=entity_id, relationship_keys=frozenset(keys)))

    def _refresh_bindings(self, keys: Iterable[str]) -> None:
        # Re-derive direction hints from current geometry, inside the open batch
        by_table = index_by_table(self._entities.values())
        bindings = self.batch.pending_bindings()
        for key in keys:
            binding = bindings[key]
            outcome = route_relationship(
                binding.relationship, by_table, self.ports.port_sets, binding.waypoints
            )
            if isinstance(outcome, LinkBinding):
                self.batch.set_binding(key, outcome)
            else:
                logger.debug("Keeping previous binding for %s: %s", key, outcome.message)

    def select(self, entity_id: str) -> None:
        """Highlight an entity and its links as a single update."""
        self.entity(entity_id)
        with self.batch.update("highlight"):
            keys = self._connected_keys(entity_id)
            self._refresh_bindings(keys)
            self.batch.set_highlight(
                Highlight(entity_id=entity_id, relationship_keys=frozenset(keys))
            )

    def clear_selection(self) -> None:
        with self.batch.update("unhighlight"):
            self._refresh_bindings(list(self.batch.pending_bindings()))
            self.batch.set_highlight(Highlight())

    def navigate_to(self, entity_id: str, viewport: Size) -> None:
        """Select an entity and pan so its center sits mid-viewport at the current scale."""
        entity = self.entity(entity_id)
        self.select(entity_id)
        self.viewport.center_on(entity.center, viewport)

    # -- viewport ------------------------------------------------------------

    def zoom_to_fit(self, viewport: Size) -> None:
        content = self.content_bbox()
        if content is None:
            logger.debug("Cannot zoom to fit: diagram has no entities")
            return
        self.viewport.fit_to_content(content, viewport, self.options["fit_padding"])

    def open_panel(self, viewport: Size) -> None:
        self.viewport.open_panel(viewport)

    def close_panel(self, viewport: Size) -> None:
        self.viewport.close_panel(viewport)

    # -- renderer output -----------------------------------------------------

    def render_output(self) -> dict:
        """Committed ports and link bindings in the renderer's terms."""
        state = self.state
        entities = {}
        for entity in self._entities.values():
            ports = state.port_sets.get(entity.id, PortSet()).to_dict()
            for side, items in ports.items():
                for item in items:
                    p = port_position(entity, side, item["offset"])
                    item["x"] = p.x
                    item["y"] = p.y
            entities[entity.id] = {
                "table_name": entity.table_name,
                "x": entity.x,
                "y": entity.y,
                "width": entity.width,
                "height": entity.height,
                "ports": ports,
                "highlighted": state.highlight.entity_id == entity.id,
            }

        links = []
        for key, binding in state.bindings.items():
            links.append(
                {
                    "key": key,
                    "source": binding.source_entity_id,
                    "target": binding.target_entity_id,
                    "source_port": binding.source_port_id,
                    "target_port": binding.target_port_id,
                    "source_direction": list(binding.source_direction),
                    "target_direction": list(binding.target_direction),
                    "waypoints": [(p.x, p.y) for p in binding.waypoints],
                    "highlighted": key in state.highlight.relationship_keys,
                }
            )

        vp = self.viewport.state
        return {
            "entities": entities,
            "links": links,
            "viewport": {
                "scale": vp.scale,
                "translate_x": vp.translate_x,
                "translate_y": vp.translate_y,
            },
        }
