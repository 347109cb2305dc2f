"""
Graph Store - Authoritative holder of nodes and edges.

The store owns the node set and the edge set and exposes a derived adjacency
view (node id -> ordered direct successors). The adjacency map is a pure
function of the two sets: it is rebuilt after every structural change and
only ever handed out as a copy.

Edge replacement is atomic. ``set_edge_data`` validates the whole candidate
set first and either commits all of it or raises, leaving the previous edges
in place.
"""

import logging
from collections import deque
from collections.abc import Iterable

from dagflow.graph.edge import EdgeSpec
from dagflow.graph.errors import CyclicGraphError, DanglingEdgeError, DuplicateNodeError
from dagflow.graph.node import NodeSpec
from dagflow.graph.validator import GraphValidator
from dagflow.runtime.result_store import ResultStore

logger = logging.getLogger(__name__)


class GraphStore:
    """
    Nodes, edges and the adjacency list derived from them.

    Example:
        graph = GraphStore()
        graph.add_node(NodeSpec(id="a", kind=NodeKind.API))
        graph.add_node(NodeSpec(id="b", kind=NodeKind.DB))
        graph.set_edge_data([EdgeSpec(source="a", target="b")])

        graph.get_direct_successors("a")  # ["b"]
        graph.set_edge_data([...a->b, b->a...])  # raises CyclicGraphError
    """

    def __init__(
        self,
        nodes: Iterable[NodeSpec] | None = None,
        edges: Iterable[EdgeSpec] | None = None,
        result_store: ResultStore | None = None,
        validator: GraphValidator | None = None,
    ):
        """
        Initialize the store.

        Args:
            nodes: Initial nodes, added in order
            edges: Initial edge set, validated like any later replacement
            result_store: Results to prune when a node is removed
            validator: Edge-set validator (rejects cycles and dangling edges)
        """
        self._nodes: dict[str, NodeSpec] = {}
        self._edges: list[EdgeSpec] = []
        self._adjacency: dict[str, list[str]] = {}
        self.result_store = result_store
        self.validator = validator or GraphValidator()

        for node in nodes or []:
            self.add_node(node)
        if edges is not None:
            self.set_edge_data(edges)

    # === READ ACCESS ===

    @property
    def nodes(self) -> list[NodeSpec]:
        return list(self._nodes.values())

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def edges(self) -> list[EdgeSpec]:
        return list(self._edges)

    @property
    def adjacency(self) -> dict[str, list[str]]:
        """Copy of the derived adjacency map."""
        return {node_id: list(successors) for node_id, successors in self._adjacency.items()}

    def get_node(self, node_id: str) -> NodeSpec | None:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_direct_successors(self, node_id: str) -> list[str]:
        """Direct successors in edge insertion order; empty for unknown ids."""
        return list(self._adjacency.get(node_id, []))

    def get_direct_predecessors(self, node_id: str) -> list[str]:
        """Sources of edges whose target is ``node_id``, in edge insertion order."""
        predecessors: list[str] = []
        for edge in self._edges:
            if edge.target == node_id and edge.source not in predecessors:
                predecessors.append(edge.source)
        return predecessors

    def get_descendants(self, node_id: str) -> list[str]:
        """Every node reachable from ``node_id`` (excluding itself), breadth-first."""
        seen = {node_id}
        order: list[str] = []
        queue = deque(self._adjacency.get(node_id, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            order.append(current)
            queue.extend(self._adjacency.get(current, []))
        return order

    def topological_order(self) -> list[str]:
        """Node ids ordered so that every edge points forward."""
        in_degree = {node_id: 0 for node_id in self._adjacency}
        for successors in self._adjacency.values():
            for successor in successors:
                in_degree[successor] = in_degree.get(successor, 0) + 1

        queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            for successor in self._adjacency.get(node_id, []):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    queue.append(successor)
        return order

    # === MUTATIONS ===

    def add_node(self, node: NodeSpec) -> None:
        """
        Add a node.

        Raises:
            DuplicateNodeError: if a node with the same id already exists
        """
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._nodes[node.id] = node
        self._adjacency[node.id] = []
        self._rebuild_adjacency()
        logger.debug(f"Added node '{node.id}' ({node.kind})")

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it. No-op for unknown ids."""
        if node_id not in self._nodes:
            return
        del self._nodes[node_id]
        self._edges = [edge for edge in self._edges if not edge.touches(node_id)]
        self._rebuild_adjacency()
        if self.result_store is not None:
            self.result_store.remove(node_id)
        logger.debug(f"Removed node '{node_id}'")

    def set_edge_data(self, edges: Iterable[EdgeSpec]) -> None:
        """
        Replace the whole edge set after validating it.

        Raises:
            DanglingEdgeError: if an edge names an unknown node
            CyclicGraphError: if the edge set contains a cycle
        """
        candidate = list(edges)
        validation = self.validator.validate_edges(self._nodes, candidate)

        if not validation.success:
            logger.warning(f"Rejected edge set: {validation.error}")
            if validation.dangling:
                raise DanglingEdgeError(validation.dangling)
            raise CyclicGraphError(validation.cycle)

        self._edges = candidate
        self._rebuild_adjacency()
        logger.debug(f"Committed {len(candidate)} edges")

    def _rebuild_adjacency(self) -> None:
        adjacency: dict[str, list[str]] = {node_id: [] for node_id in self._nodes}
        for edge in self._edges:
            successors = adjacency.setdefault(edge.source, [])
            if edge.target not in successors:
                successors.append(edge.target)
        self._adjacency = adjacency
