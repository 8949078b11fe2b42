from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .errors import BatchError
from .types import LinkBinding, PortSet

logger = logging.getLogger(__name__)

# ============================================================================
# Transactional update batch
#
# Port sets and route bindings are the only mutable shared state. Writes
# are staged inside begin_update()/end_update() and become visible to
# listeners (the renderer) in one step when the outermost batch ends, so
# an observer never sees links unbound between removal and re-binding.
# ============================================================================


@dataclass(slots=True)
class Highlight:
    entity_id: str | None = None
    relationship_keys: frozenset[str] = frozenset()


@dataclass(slots=True)
class DiagramState:
    """Committed state, as last seen by listeners."""

    port_sets: dict[str, PortSet] = field(default_factory=dict)
    bindings: dict[str, LinkBinding] = field(default_factory=dict)
    highlight: Highlight = field(default_factory=Highlight)


@dataclass(slots=True)
class BatchCommit:
    # Name of the outermost batch
    name: str
    port_sets_changed: bool = False
    # Relationship keys whose binding was added, replaced or removed
    bindings_changed: frozenset[str] = frozenset()
    highlight_changed: bool = False


Listener = Callable[[DiagramState, BatchCommit], None]


class UpdateBatch:
    def __init__(self, state: DiagramState | None = None) -> None:
        self.state = state if state is not None else DiagramState()
        self._listeners: list[Listener] = []
        self._names: list[str] = []
        self._reset_staging()

    def _reset_staging(self) -> None:
        self._port_sets: dict[str, PortSet] | None = None
        self._bindings: dict[str, LinkBinding] | None = None
        self._touched: set[str] = set()
        self._highlight: Highlight | None = None

    # -- listeners -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a commit listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- batch boundary ------------------------------------------------------

    @property
    def in_batch(self) -> bool:
        return bool(self._names)

    @property
    def depth(self) -> int:
        return len(self._names)

    def begin_update(self, name: str = "update") -> None:
        self._names.append(name)

    def end_update(self, name: str | None = None) -> BatchCommit | None:
        """Close the innermost batch; commits when it was the outermost one."""
        if not self._names:
            raise BatchError("end_update() called without a matching begin_update()")
        if name is not None and name != self._names[-1]:
            raise BatchError(
                f"end_update({name!r}) does not match open batch {self._names[-1]!r}"
            )
        closed = self._names.pop()
        if self._names:
            return None
        return self._commit(closed)

    @contextmanager
    def update(self, name: str = "update") -> Iterator[UpdateBatch]:
        """Context manager form; the batch commits on every exit path."""
        self.begin_update(name)
        depth = len(self._names)
        try:
            yield self
        except BaseException:
            # Close batches the body left open so its error is the one raised
            if len(self._names) >= depth:
                del self._names[depth:]
                self.end_update()
            raise
        self.end_update(name)

    # -- staged mutations ----------------------------------------------------

    def _require_batch(self, operation: str) -> None:
        if not self._names:
            raise BatchError(f"{operation}() must be called inside begin_update()/end_update()")

    def _staged_bindings(self) -> dict[str, LinkBinding]:
        if self._bindings is None:
            self._bindings = dict(self.state.bindings)
        return self._bindings

    def set_port_sets(self, port_sets: dict[str, PortSet]) -> None:
        self._require_batch("set_port_sets")
        self._port_sets = dict(port_sets)

    def set_binding(self, key: str, binding: LinkBinding) -> None:
        self._require_batch("set_binding")
        self._staged_bindings()[key] = binding
        self._touched.add(key)

    def remove_binding(self, key: str) -> None:
        self._require_batch("remove_binding")
        if self._staged_bindings().pop(key, None) is not None:
            self._touched.add(key)

    def clear_bindings(self) -> None:
        self._require_batch("clear_bindings")
        staged = self._staged_bindings()
        self._touched.update(staged)
        staged.clear()

    def set_highlight(self, highlight: Highlight) -> None:
        self._require_batch("set_highlight")
        self._highlight = highlight

    def pending_bindings(self) -> dict[str, LinkBinding]:
        """Bindings as they will look after commit (read-only view)."""
        if self._bindings is not None:
            return dict(self._bindings)
        return dict(self.state.bindings)

    # -- commit --------------------------------------------------------------

    def _commit(self, name: str) -> BatchCommit:
        commit = BatchCommit(name=name)

        if self._port_sets is not None:
            self.state.port_sets = self._port_sets
            commit.port_sets_changed = True

        if self._bindings is not None:
            previous = self.state.bindings
            changed = {
                key
                for key in self._touched
                if previous.get(key) != self._bindings.get(key)
            }
            self.state.bindings = self._bindings
            commit.bindings_changed = frozenset(changed)

        if self._highlight is not None and self._highlight != self.state.highlight:
            self.state.highlight = self._highlight
            commit.highlight_changed = True

        self._reset_staging()
        logger.debug(
            "Committed batch %r: ports=%s bindings=%d highlight=%s",
            name,
            commit.port_sets_changed,
            len(commit.bindings_changed),
            commit.highlight_changed,
        )
        for listener in list(self._listeners):
            listener(self.state, commit)
        return commit
