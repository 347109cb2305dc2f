"""Errors raised by graph mutations."""

from collections.abc import Iterable


class GraphError(Exception):
    """Base class for rejected graph mutations."""


class CyclicGraphError(GraphError):
    """The proposed edge set contains a cycle; nothing was committed."""

    def __init__(self, cycle: list[str] | None = None):
        self.cycle = list(cycle or [])
        if self.cycle:
            message = "Cyclic dependency detected: " + " -> ".join(self.cycle)
        else:
            message = "Cyclic dependency detected"
        super().__init__(message)


class DanglingEdgeError(GraphError):
    """An edge names a node that is not in the graph; nothing was committed."""

    def __init__(self, edges: Iterable[tuple[str, str]]):
        self.edges = list(edges)
        pairs = ", ".join(f"{source}->{target}" for source, target in self.edges)
        super().__init__(f"Edges reference unknown nodes: {pairs}")


class DuplicateNodeError(GraphError):
    """A node with the same id already exists."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' already exists")
