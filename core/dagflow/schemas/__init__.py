"""Schemas for execution state."""

from dagflow.schemas.node_result import NodeResult, NodeStatus

__all__ = ["NodeResult", "NodeStatus"]
