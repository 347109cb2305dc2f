"""
Event Bus - Pub/sub for node and execution lifecycle events.

Lets observers (log panels, result views, tests):
- Follow a run as nodes start, succeed and fail
- See which successors a completed node triggered
- Wait for a particular node to settle

Publishing never fails because of an observer: handler exceptions are logged
and dropped.
"""

import asyncio
import itertools
import logging
from collections import Counter, deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Execution lifecycle
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"

    # Scheduling
    EDGE_TRAVERSED = "edge_traversed"
    RESULTS_CLEARED = "results_cleared"

    CUSTOM = "custom"


@dataclass
class GraphEvent:
    """An event raised while executing a graph."""

    type: EventType
    run_id: str | None = None
    node_id: str | None = None  # Which node the event is about
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    correlation_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "run_id": self.run_id,
            "node_id": self.node_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
        }


EventHandler = Callable[[GraphEvent], Awaitable[None]]


@dataclass
class Subscription:
    """Handler plus the event types and node/run filters it listens with."""

    id: str
    event_types: frozenset[EventType]
    handler: EventHandler
    filter_node: str | None = None
    filter_run: str | None = None

    def accepts(self, event: GraphEvent) -> bool:
        return (
            event.type in self.event_types
            and self.filter_node in (None, event.node_id)
            and self.filter_run in (None, event.run_id)
        )


class EventBus:
    """
    Pub/sub event bus for execution observers.

    Handlers run concurrently (bounded by ``max_concurrent_handlers``) and the
    last ``max_history`` events are kept for inspection.

    Example:
        bus = EventBus()

        async def on_node_failed(event: GraphEvent):
            print(f"{event.node_id} failed: {event.data['error']}")

        bus.subscribe([EventType.NODE_FAILED], on_node_failed)
    """

    def __init__(self, max_history: int = 1000, max_concurrent_handlers: int = 10):
        self._subscriptions: dict[str, Subscription] = {}
        self._history: deque[GraphEvent] = deque(maxlen=max_history)
        self._handler_slots = asyncio.Semaphore(max_concurrent_handlers)
        self._ids = itertools.count(1)

    def subscribe(
        self,
        event_types: Iterable[EventType],
        handler: EventHandler,
        filter_node: str | None = None,
        filter_run: str | None = None,
    ) -> str:
        """
        Register ``handler`` for ``event_types``.

        Args:
            event_types: Types of events to receive
            handler: Async callable invoked with each matching event
            filter_node: Only receive events about this node
            filter_run: Only receive events from this run

        Returns:
            Subscription ID for unsubscribe()
        """
        subscription = Subscription(
            id=f"sub_{next(self._ids)}",
            event_types=frozenset(event_types),
            handler=handler,
            filter_node=filter_node,
            filter_run=filter_run,
        )
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"{subscription.id} listening for {sorted(subscription.event_types)}")
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Returns True if the subscription existed."""
        removed = self._subscriptions.pop(subscription_id, None) is not None
        if removed:
            logger.debug(f"{subscription_id} removed")
        return removed

    async def publish(self, event: GraphEvent) -> None:
        """Record ``event`` and deliver it to every accepting subscription."""
        self._history.append(event)

        handlers = [sub.handler for sub in self._subscriptions.values() if sub.accepts(event)]
        if handlers:
            await asyncio.gather(*(self._deliver(handler, event) for handler in handlers))

    async def _deliver(self, handler: EventHandler, event: GraphEvent) -> None:
        async with self._handler_slots:
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Event handler failed on {event.type}: {e}")

    # === CONVENIENCE PUBLISHERS ===

    async def emit_execution_started(self, run_id: str, root_node_id: str) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.EXECUTION_STARTED,
                run_id=run_id,
                node_id=root_node_id,
                data={"root": root_node_id},
            )
        )

    async def emit_execution_completed(
        self,
        run_id: str,
        path: list[str],
        total_latency_ms: int,
    ) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.EXECUTION_COMPLETED,
                run_id=run_id,
                data={"path": list(path), "total_latency_ms": total_latency_ms},
            )
        )

    async def emit_execution_failed(
        self,
        run_id: str,
        failed_nodes: list[str],
        blocked_nodes: list[str],
    ) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.EXECUTION_FAILED,
                run_id=run_id,
                data={"failed_nodes": list(failed_nodes), "blocked_nodes": list(blocked_nodes)},
            )
        )

    async def emit_node_started(
        self,
        node_id: str,
        run_id: str | None = None,
        node_name: str = "",
        kind: str = "",
    ) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.NODE_STARTED,
                run_id=run_id,
                node_id=node_id,
                data={"node_name": node_name, "kind": kind},
            )
        )

    async def emit_node_completed(
        self,
        node_id: str,
        run_id: str | None = None,
        node_name: str = "",
        duration_ms: int = 0,
    ) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.NODE_COMPLETED,
                run_id=run_id,
                node_id=node_id,
                data={"node_name": node_name, "duration_ms": duration_ms},
            )
        )

    async def emit_node_failed(
        self,
        node_id: str,
        error: str,
        run_id: str | None = None,
        node_name: str = "",
        duration_ms: int = 0,
    ) -> None:
        await self.publish(
            GraphEvent(
                type=EventType.NODE_FAILED,
                run_id=run_id,
                node_id=node_id,
                data={"node_name": node_name, "error": error, "duration_ms": duration_ms},
            )
        )

    async def emit_edge_traversed(
        self,
        source_node: str,
        target_node: str,
        run_id: str | None = None,
    ) -> None:
        """A completed node is starting one of its ready successors."""
        await self.publish(
            GraphEvent(
                type=EventType.EDGE_TRAVERSED,
                run_id=run_id,
                node_id=source_node,
                data={"source_node": source_node, "target_node": target_node},
            )
        )

    async def emit_results_cleared(self, run_id: str | None = None) -> None:
        await self.publish(GraphEvent(type=EventType.RESULTS_CLEARED, run_id=run_id))

    # === INSPECTION ===

    def get_history(
        self,
        event_type: EventType | None = None,
        node_id: str | None = None,
        run_id: str | None = None,
        limit: int = 100,
    ) -> list[GraphEvent]:
        """Recorded events matching every given filter, most recent first."""
        matches = (
            event
            for event in reversed(self._history)
            if (event_type is None or event.type == event_type)
            and (node_id is None or event.node_id == node_id)
            and (run_id is None or event.run_id == run_id)
        )
        return list(itertools.islice(matches, limit))

    def get_stats(self) -> dict:
        by_type = Counter(event.type.value for event in self._history)
        return {
            "total_events": len(self._history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": dict(by_type),
        }

    async def wait_for(
        self,
        event_type: EventType,
        node_id: str | None = None,
        run_id: str | None = None,
        timeout: float | None = None,
    ) -> GraphEvent | None:
        """
        Block until a matching event is published.

        Returns:
            The first matching event, or None on timeout
        """
        received: asyncio.Future[GraphEvent] = asyncio.get_running_loop().create_future()

        async def capture(event: GraphEvent) -> None:
            if not received.done():
                received.set_result(event)

        sub_id = self.subscribe([event_type], capture, filter_node=node_id, filter_run=run_id)
        try:
            return await asyncio.wait_for(received, timeout=timeout)
        except TimeoutError:
            return None
        finally:
            self.unsubscribe(sub_id)
