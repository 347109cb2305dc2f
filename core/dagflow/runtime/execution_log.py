"""ExecutionLog: per-node, per-run log entries for execution panels.

Attach it to an EventBus and it records one entry per lifecycle event, so a
UI can show the log for a single node or a single run without the scheduler
knowing the log exists.

Usage::

    bus = EventBus()
    log = ExecutionLog()
    log.attach(bus)
    scheduler = ExecutionScheduler(graph, results, executor, event_bus=bus)
    await scheduler.start_execution("fetch")
    log.get_node_logs("fetch")

Thread-safe: entries are appended under a lock for parallel runs.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from dagflow.runtime.event_bus import EventBus, EventType, GraphEvent

logger = logging.getLogger(__name__)


class LogType(StrEnum):
    """Kind of log entry."""

    STDOUT = "stdout"
    STDERR = "stderr"
    INFO = "info"
    ERROR = "error"
    SUCCESS = "success"
    WARNING = "warning"


class LogEntry(BaseModel):
    """One line in the execution log."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=datetime.now)
    node_id: str
    node_name: str = ""
    type: LogType = LogType.INFO
    message: str
    run_id: str | None = None


class ExecutionLog:
    """Bounded in-memory store of LogEntry records."""

    def __init__(self, max_entries: int = 5000) -> None:
        self._entries: list[LogEntry] = []
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._subscription_ids: list[str] = []
        self._bus: EventBus | None = None

    # === RECORDING ===

    def add(
        self,
        node_id: str,
        message: str,
        type: LogType = LogType.INFO,
        node_name: str = "",
        run_id: str | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            node_id=node_id,
            node_name=node_name or node_id,
            type=type,
            message=message,
            run_id=run_id,
        )
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._max_entries:
                self._entries = self._entries[-self._max_entries :]
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_node(self, node_id: str) -> None:
        with self._lock:
            self._entries = [e for e in self._entries if e.node_id != node_id]

    # === QUERIES ===

    @property
    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def get_node_logs(self, node_id: str) -> list[LogEntry]:
        with self._lock:
            return [e for e in self._entries if e.node_id == node_id]

    def get_run_logs(self, run_id: str) -> list[LogEntry]:
        with self._lock:
            return [e for e in self._entries if e.run_id == run_id]

    # === EVENT BUS WIRING ===

    def attach(self, bus: EventBus) -> None:
        """Record node lifecycle events published on ``bus``."""
        self.detach()
        self._bus = bus
        self._subscription_ids = [
            bus.subscribe(
                event_types=[
                    EventType.NODE_STARTED,
                    EventType.NODE_COMPLETED,
                    EventType.NODE_FAILED,
                    EventType.EDGE_TRAVERSED,
                ],
                handler=self._on_event,
            )
        ]

    def detach(self) -> None:
        if self._bus is not None:
            for sub_id in self._subscription_ids:
                self._bus.unsubscribe(sub_id)
        self._bus = None
        self._subscription_ids = []

    async def _on_event(self, event: GraphEvent) -> None:
        node_id = event.node_id or ""
        node_name = event.data.get("node_name", "")

        if event.type == EventType.NODE_STARTED:
            kind = event.data.get("kind", "")
            self.add(node_id, f"Starting {kind} node".strip(), LogType.INFO, node_name, event.run_id)
        elif event.type == EventType.NODE_COMPLETED:
            duration = event.data.get("duration_ms", 0)
            self.add(node_id, f"Completed ({duration}ms)", LogType.SUCCESS, node_name, event.run_id)
        elif event.type == EventType.NODE_FAILED:
            error = event.data.get("error", "unknown error")
            self.add(node_id, f"Failed: {error}", LogType.ERROR, node_name, event.run_id)
        elif event.type == EventType.EDGE_TRAVERSED:
            target = event.data.get("target_node", "")
            self.add(node_id, f"Triggering '{target}'", LogType.INFO, node_name, event.run_id)
