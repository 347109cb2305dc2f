"""Runtime state: results, lifecycle events and the execution log."""

from dagflow.runtime.event_bus import EventBus, EventType, GraphEvent, Subscription
from dagflow.runtime.execution_log import ExecutionLog, LogEntry, LogType
from dagflow.runtime.result_store import ResultStore

__all__ = [
    "EventBus",
    "EventType",
    "GraphEvent",
    "Subscription",
    "ExecutionLog",
    "LogEntry",
    "LogType",
    "ResultStore",
]
