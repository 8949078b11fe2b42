from __future__ import annotations

# ============================================================================
# Exception hierarchy
#
# Data-level conditions (stale ports, links to absent entities, out-of-range
# zoom) never raise; they degrade to a missing link or a clamped scale.
# These exceptions cover programming errors at the construction boundary.
# ============================================================================


class SchemaDiagramError(Exception):
    """Base class for all schema-diagram errors."""


class InvalidGeometryError(SchemaDiagramError, ValueError):
    """An entity box or angle that geometry cannot be computed for."""


class LayoutError(SchemaDiagramError, RuntimeError):
    """The position oracle failed to lay out the graph."""


class BatchError(SchemaDiagramError, RuntimeError):
    """Unbalanced begin/end update calls, or a mutation outside a batch."""


class UnknownEntityError(SchemaDiagramError, KeyError):
    """A diagram operation named an entity id that is not in the diagram."""
