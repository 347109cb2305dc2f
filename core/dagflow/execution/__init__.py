"""Dependency-respecting execution of graph nodes."""

from dagflow.execution.scheduler import ExecutionScheduler, ExecutionSummary

__all__ = ["ExecutionScheduler", "ExecutionSummary"]
