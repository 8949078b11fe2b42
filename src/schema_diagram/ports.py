from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace

from .geometry import angle_between, distribute_offsets, side_from_angle, sort_all_ports
from .types import SIDES, Entity, ForeignKey, ManyToMany, Port, PortKey, PortSet, Relationship

logger = logging.getLogger(__name__)

# ============================================================================
# Port assignment
#
# For one entity, every relationship it takes part in becomes a port on the
# side of the box that faces the related entity. Port sets are recomputed
# wholesale on every layout pass and never patched in place.
#
# Candidate sources, in enumeration order:
#   1. Outgoing foreign keys  (this entity holds the column)
#   2. Incoming foreign keys  (another entity references this one)
#   3. Many-to-many memberships (either side of a junction)
# ============================================================================


def index_by_table(entities: Iterable[Entity]) -> dict[str, Entity]:
    """Map table name -> entity for relationship endpoint lookup."""
    return {entity.table_name: entity for entity in entities}


def _candidates(
    entity: Entity, relationships: Iterable[Relationship]
) -> list[tuple[PortKey, str]]:
    """(port key, related table) for every relationship touching entity."""
    table = entity.table_name
    outgoing: list[tuple[PortKey, str]] = []
    incoming: list[tuple[PortKey, str]] = []
    many: list[tuple[PortKey, str]] = []

    for rel in relationships:
        if isinstance(rel, ForeignKey):
            if rel.source_table == table:
                outgoing.append((PortKey.for_source(rel), rel.target_table))
            if rel.target_table == table:
                incoming.append((PortKey.for_target(rel), rel.source_table))
        elif isinstance(rel, ManyToMany):
            if rel.source_table == table:
                many.append((PortKey.for_source(rel), rel.target_table))
            if rel.target_table == table:
                many.append((PortKey.for_target(rel), rel.source_table))

    return outgoing + incoming + many


def _ports_for(
    entity: Entity,
    relationships: Iterable[Relationship],
    by_table: Mapping[str, Entity],
) -> PortSet:
    own_center = entity.center
    raw: list[Port] = []

    for key, related_table in _candidates(entity, relationships):
        related = by_table.get(related_table)
        if related is None:
            logger.debug(
                "No port for %s on %s: related table %s is not in the diagram",
                key.kind.value,
                entity.table_name,
                related_table,
            )
            continue
        angle = angle_between(own_center, related.center)
        side = side_from_angle(angle, entity.width, entity.height)
        raw.append(Port(key=key, side=side, angle=angle, related_table=related_table))

    ordered = sort_all_ports(raw)
    port_set = PortSet()
    for side, ports in ordered.items():
        offsets = distribute_offsets(len(ports))
        port_set.side(side).extend(
            replace(port, offset_fraction=offset) for port, offset in zip(ports, offsets)
        )
    return _disambiguate_ids(port_set, entity)


PORT_ID_SUFFIX_SEPARATOR = "~"


def _disambiguate_ids(port_set: PortSet, entity: Entity) -> PortSet:
    """Suffix colliding ids in render order: "x", "x~2", "x~3".

    Names joined with "_" can collide when table or column names contain
    underscores themselves. "~" never appears in an unquoted SQL identifier.
    """
    counts: dict[str, int] = {}
    for side in SIDES:
        ports = port_set.side(side)
        for index, port in enumerate(ports):
            base = port.id
            counts[base] = counts.get(base, 0) + 1
            if counts[base] > 1:
                suffix = f"{PORT_ID_SUFFIX_SEPARATOR}{counts[base]}"
                logger.debug(
                    "Port id %s is not unique on %s; using %s", base, entity.table_name, base + suffix
                )
                ports[index] = replace(port, id_suffix=suffix)
    return port_set


def recompute_ports(
    entity: Entity,
    relationships: Iterable[Relationship],
    entities: Iterable[Entity],
) -> PortSet:
    """Compute the full, ordered port set of one entity.

    Pure: the same entity positions and relationship list always produce
    the same ports, ids, order and offsets.
    """
    return _ports_for(entity, list(relationships), index_by_table(entities))


def recompute_all_ports(
    entities: Iterable[Entity], relationships: Iterable[Relationship]
) -> dict[str, PortSet]:
    """Port sets for every entity, keyed by entity id."""
    entity_list = list(entities)
    rel_list = list(relationships)
    by_table = index_by_table(entity_list)
    return {entity.id: _ports_for(entity, rel_list, by_table) for entity in entity_list}


class PortAssignmentEngine:
    """Holds the port sets of the most recent layout pass."""

    def __init__(self) -> None:
        self.port_sets: dict[str, PortSet] = {}

    def rebuild(
        self, entities: Iterable[Entity], relationships: Iterable[Relationship]
    ) -> dict[str, PortSet]:
        self.port_sets = recompute_all_ports(entities, relationships)
        logger.debug("Recomputed ports for %d entities", len(self.port_sets))
        return self.port_sets

    def port_set(self, entity_id: str) -> PortSet:
        return self.port_sets.get(entity_id, PortSet())
