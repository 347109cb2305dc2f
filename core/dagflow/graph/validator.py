"""Structural validation for candidate edge sets.

Decides, for a full node set and a proposed edge set, whether committing the
edges would leave the graph acyclic and free of dangling references. The
graph store calls this before replacing its edges so a rejected set never
partially lands.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from dagflow.graph.edge import EdgeSpec

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a candidate edge set."""

    success: bool
    errors: list[str] = field(default_factory=list)
    cycle: list[str] | None = None
    dangling: list[tuple[str, str]] = field(default_factory=list)

    @property
    def error(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""


def _successor_map(node_ids: Iterable[str], edges: Iterable[EdgeSpec]) -> dict[str, list[str]]:
    successors: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        targets = successors.setdefault(edge.source, [])
        if edge.target not in targets:
            targets.append(edge.target)
        successors.setdefault(edge.target, [])
    return successors


def find_cycle(node_ids: Iterable[str], edges: Iterable[EdgeSpec]) -> list[str] | None:
    """
    Find one cycle in the graph, if any.

    Depth-first search with a ``visited`` set and an ``on_stack`` set, started
    from every node so disconnected components are covered. A cycle exists iff
    a successor of the current path is already on the stack. Runs in O(V+E)
    and walks iteratively, so long chains never hit the recursion limit.

    Returns:
        The cycle as a node path that starts and ends on the same id
        (e.g. ``["a", "b", "a"]``), or None when the graph is acyclic.
    """
    successors = _successor_map(node_ids, edges)
    visited: set[str] = set()
    on_stack: set[str] = set()

    for start in successors:
        if start in visited:
            continue

        visited.add(start)
        on_stack.add(start)
        path = [start]
        pending = [iter(successors[start])]

        while pending:
            nxt = next(pending[-1], None)
            if nxt is None:
                pending.pop()
                on_stack.discard(path.pop())
                continue
            if nxt in on_stack:
                return path[path.index(nxt) :] + [nxt]
            if nxt not in visited:
                visited.add(nxt)
                on_stack.add(nxt)
                path.append(nxt)
                pending.append(iter(successors[nxt]))

    return None


def has_cycle(node_ids: Iterable[str], edges: Iterable[EdgeSpec]) -> bool:
    """True if the node set plus the edge set contains a directed cycle."""
    return find_cycle(node_ids, edges) is not None


def find_dangling_edges(
    node_ids: Iterable[str], edges: Iterable[EdgeSpec]
) -> list[tuple[str, str]]:
    """Edges whose source or target is not a known node id."""
    known = set(node_ids)
    return [
        edge.as_pair() for edge in edges if edge.source not in known or edge.target not in known
    ]


class GraphValidator:
    """
    Validates candidate edge sets against a node set.

    Used by the graph store to reject a replacement atomically.
    """

    def __init__(self, reject_dangling: bool = True):
        self.reject_dangling = reject_dangling

    def validate_edges(
        self,
        node_ids: Iterable[str],
        edges: Iterable[EdgeSpec],
    ) -> ValidationResult:
        node_ids = list(node_ids)
        edges = list(edges)
        errors: list[str] = []

        dangling = find_dangling_edges(node_ids, edges) if self.reject_dangling else []
        for source, target in dangling:
            errors.append(f"Edge '{source}->{target}' references an unknown node")

        cycle = find_cycle(node_ids, edges)
        if cycle:
            errors.append("Cycle detected: " + " -> ".join(cycle))

        if errors:
            logger.debug(f"Rejected edge set: {'; '.join(errors)}")

        return ValidationResult(
            success=not errors,
            errors=errors,
            cycle=cycle,
            dangling=dangling,
        )
