from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from .geometry import angle_between, from_polar, midpoint
from .ports import index_by_table
from .types import Entity, ParallelGroup, Point, Relationship, relationship_key

logger = logging.getLogger(__name__)

# ============================================================================
# Parallel edge separation
#
# When several relationships join the same pair of entities, each sibling
# after the first gets one waypoint pushed perpendicular to the line
# between the two centers, alternating sides and growing by GAP every
# second sibling:
#
#     index:   0    1    2    3    4
#     offset:  0   +G   -G  +2G  -2G
#
# An even sibling count additionally shifts the whole fan by G/2 so it is
# centered on the straight line.
# ============================================================================

PARALLEL_GAP = 35.0


def fan_out_waypoints(
    source_center: Point,
    target_center: Point,
    count: int,
    gap: float = PARALLEL_GAP,
) -> list[list[Point]]:
    """Waypoint lists for count sibling links between two centers."""
    if count <= 1:
        return [[] for _ in range(count)]

    mid = midpoint(source_center, target_center)
    theta = angle_between(source_center, target_center)

    result: list[list[Point]] = [[]]
    for index in range(1, count):
        offset = gap * math.ceil(index / 2)
        sign = 1 if index % 2 == 1 else -1
        result.append([from_polar(offset, theta + sign * 90, mid)])

    if count % 2 == 0:
        shift = from_polar(gap / 2, theta - 90)
        result = [
            [Point(x=p.x + shift.x, y=p.y + shift.y) for p in waypoints]
            if waypoints
            else [Point(x=mid.x + shift.x, y=mid.y + shift.y)]
            for waypoints in result
        ]

    return result


def _pair_of(rel: Relationship, by_table: dict[str, Entity]) -> tuple[str, str] | None:
    source = by_table.get(rel.source_table)
    target = by_table.get(rel.target_table)
    if source is None or target is None or source.id == target.id:
        return None
    return (source.id, target.id) if source.id <= target.id else (target.id, source.id)


def group_parallel_links(
    relationships: Iterable[Relationship],
    entities: Iterable[Entity],
    gap: float = PARALLEL_GAP,
) -> list[ParallelGroup]:
    """Group relationships by unordered entity pair and assign waypoints.

    Groups appear in first-seen order and members keep input order.
    Self-references and links to entities missing from the diagram are
    left out.
    """
    entity_list = list(entities)
    by_table = index_by_table(entity_list)
    by_id = {entity.id: entity for entity in entity_list}

    groups: dict[tuple[str, str], ParallelGroup] = {}
    for rel in relationships:
        pair = _pair_of(rel, by_table)
        if pair is None:
            continue
        group = groups.get(pair)
        if group is None:
            group = groups[pair] = ParallelGroup(pair=pair)
        group.members.append(rel)

    for group in groups.values():
        first, second = by_id[group.pair[0]], by_id[group.pair[1]]
        fans = fan_out_waypoints(first.center, second.center, len(group.members), gap)
        group.waypoints = {
            relationship_key(rel): waypoints
            for rel, waypoints in zip(group.members, fans)
        }

    return list(groups.values())


class ParallelEdgeSeparator:
    """Computes sibling waypoints; rerun after links or endpoints change."""

    def __init__(self, gap: float = PARALLEL_GAP) -> None:
        self.gap = gap
        self.groups: list[ParallelGroup] = []

    def separate(
        self, relationships: Iterable[Relationship], entities: Iterable[Entity]
    ) -> dict[str, list[Point]]:
        self.groups = group_parallel_links(relationships, entities, self.gap)
        waypoints: dict[str, list[Point]] = {}
        for group in self.groups:
            waypoints.update(group.waypoints)
            if len(group.members) > 1:
                logger.debug(
                    "Fanned out %d links between %s and %s",
                    len(group.members),
                    *group.pair,
                )
        return waypoints

    def siblings_of(
        self,
        rel: Relationship,
        relationships: Iterable[Relationship],
        entities: Iterable[Entity],
    ) -> list[Relationship]:
        """Every relationship spanning the same entity pair as rel, rel included."""
        by_table = index_by_table(entities)
        pair = _pair_of(rel, by_table)
        if pair is None:
            return []
        return [other for other in relationships if _pair_of(other, by_table) == pair]
