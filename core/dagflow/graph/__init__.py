"""Graph structures: Nodes, Edges, the Graph Store and the executor contract."""

from dagflow.graph.edge import EdgeSpec
from dagflow.graph.errors import (
    CyclicGraphError,
    DanglingEdgeError,
    DuplicateNodeError,
    GraphError,
)
from dagflow.graph.executor import (
    ExecutionOutcome,
    ExecutorRegistry,
    NodeExecutor,
)
from dagflow.graph.node import (
    ApiNodeConfig,
    DbNodeConfig,
    FileNodeConfig,
    NodeConfig,
    NodeKind,
    NodeSpec,
    ParameterSpec,
    ValueSource,
)
from dagflow.graph.store import GraphStore
from dagflow.graph.validator import GraphValidator, find_cycle, has_cycle

__all__ = [
    # Node
    "NodeSpec",
    "NodeKind",
    "NodeConfig",
    "ApiNodeConfig",
    "DbNodeConfig",
    "FileNodeConfig",
    "ParameterSpec",
    "ValueSource",
    # Edge
    "EdgeSpec",
    # Store
    "GraphStore",
    # Validation
    "GraphValidator",
    "find_cycle",
    "has_cycle",
    # Errors
    "GraphError",
    "CyclicGraphError",
    "DanglingEdgeError",
    "DuplicateNodeError",
    # Executor contract
    "ExecutionOutcome",
    "ExecutorRegistry",
    "NodeExecutor",
]
