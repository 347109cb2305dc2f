"""dagflow - dependency-graph execution with cross-node references."""

from dagflow.execution import ExecutionScheduler, ExecutionSummary
from dagflow.graph import (
    ApiNodeConfig,
    CyclicGraphError,
    DanglingEdgeError,
    DbNodeConfig,
    DuplicateNodeError,
    EdgeSpec,
    ExecutionOutcome,
    ExecutorRegistry,
    FileNodeConfig,
    GraphError,
    GraphStore,
    NodeKind,
    NodeSpec,
    ParameterSpec,
    ValueSource,
)
from dagflow.reference import Reference, ReferenceResolver, extract_value_from_path
from dagflow.runtime import EventBus, EventType, ExecutionLog, ResultStore
from dagflow.schemas import NodeResult, NodeStatus

__all__ = [
    "ApiNodeConfig",
    "CyclicGraphError",
    "DanglingEdgeError",
    "DbNodeConfig",
    "DuplicateNodeError",
    "EdgeSpec",
    "EventBus",
    "EventType",
    "ExecutionLog",
    "ExecutionOutcome",
    "ExecutionScheduler",
    "ExecutionSummary",
    "ExecutorRegistry",
    "FileNodeConfig",
    "GraphError",
    "GraphStore",
    "NodeKind",
    "NodeResult",
    "NodeSpec",
    "NodeStatus",
    "ParameterSpec",
    "Reference",
    "ReferenceResolver",
    "ResultStore",
    "ValueSource",
    "extract_value_from_path",
]
