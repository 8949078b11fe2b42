from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from .batch import UpdateBatch
from .geometry import angle_between, side_from_angle
from .ports import index_by_table
from .types import (
    Entity,
    LinkBinding,
    Point,
    PortKey,
    PortSet,
    Relationship,
    relationship_key,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Link routing
#
# Binds each relationship to the port on either end that port assignment
# created for it, and derives the face each end should leave/enter from.
# Port sets must already reflect the current positions.
#
# Failures never abort the pass:
#   dropped   an endpoint table is not in the diagram; the link is not drawn
#   unrouted  no matching port (stale port sets); retried on the next pass
# ============================================================================

IssueKind = Literal["dropped", "unrouted"]


@dataclass(slots=True)
class RoutingIssue:
    kind: IssueKind
    relationship_key: str
    message: str


@dataclass(slots=True)
class RoutingReport:
    bindings: dict[str, LinkBinding] = field(default_factory=dict)
    unrouted: list[RoutingIssue] = field(default_factory=list)
    dropped: list[RoutingIssue] = field(default_factory=list)

    @property
    def issues(self) -> list[RoutingIssue]:
        return self.dropped + self.unrouted


def route_relationship(
    rel: Relationship,
    by_table: Mapping[str, Entity],
    port_sets: Mapping[str, PortSet],
    waypoints: list[Point] | None = None,
) -> LinkBinding | RoutingIssue:
    """Bind one relationship to its source and target ports."""
    key = relationship_key(rel)
    source = by_table.get(rel.source_table)
    target = by_table.get(rel.target_table)
    if source is None or target is None:
        missing = rel.source_table if source is None else rel.target_table
        return RoutingIssue(
            kind="dropped",
            relationship_key=key,
            message=f"table {missing!r} is not in the diagram",
        )

    source_center = source.center
    target_center = target.center
    source_side = side_from_angle(
        angle_between(source_center, target_center), source.width, source.height
    )
    target_side = side_from_angle(
        angle_between(target_center, source_center), target.width, target.height
    )

    source_port = None
    target_port = None
    source_ports = port_sets.get(source.id)
    target_ports = port_sets.get(target.id)
    if source_ports is not None:
        source_port = source_ports.find(PortKey.for_source(rel), source_side)
    if target_ports is not None:
        target_port = target_ports.find(PortKey.for_target(rel), target_side)

    if source_port is None:
        return RoutingIssue(
            kind="unrouted",
            relationship_key=key,
            message=f"no port on the {source_side} side of {source.table_name!r}",
        )
    if target_port is None:
        return RoutingIssue(
            kind="unrouted",
            relationship_key=key,
            message=f"no port on the {target_side} side of {target.table_name!r}",
        )

    return LinkBinding(
        relationship=rel,
        source_entity_id=source.id,
        target_entity_id=target.id,
        source_port_id=source_port.id,
        target_port_id=target_port.id,
        source_direction=[source_side],
        target_direction=[target_side],
        waypoints=list(waypoints or []),
    )


class LinkRoutingCoordinator:
    def __init__(self) -> None:
        # Relationship keys that had no matching port on the last pass
        self.pending_retry: set[str] = set()

    def route_all(
        self,
        relationships: Iterable[Relationship],
        entities: Iterable[Entity],
        port_sets: Mapping[str, PortSet],
        waypoints: Mapping[str, list[Point]] | None = None,
    ) -> RoutingReport:
        by_table = index_by_table(entities)
        waypoints = waypoints or {}
        report = RoutingReport()
        retry: set[str] = set()

        for rel in relationships:
            key = relationship_key(rel)
            outcome = route_relationship(rel, by_table, port_sets, waypoints.get(key))
            if isinstance(outcome, LinkBinding):
                if key in self.pending_retry:
                    logger.info("Link %s routed after retry", key)
                report.bindings[key] = outcome
            elif outcome.kind == "dropped":
                logger.warning("Dropping link %s: %s", key, outcome.message)
                report.dropped.append(outcome)
            else:
                logger.warning("Leaving link %s unrouted: %s", key, outcome.message)
                report.unrouted.append(outcome)
                retry.add(key)

        self.pending_retry = retry
        return report

    def apply(self, report: RoutingReport, batch: UpdateBatch) -> None:
        """Replace every binding with the report's, as one atomic commit."""
        with batch.update("reconnect"):
            batch.clear_bindings()
            for key, binding in report.bindings.items():
                batch.set_binding(key, binding)
