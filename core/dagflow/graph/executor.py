"""
Executor contract - How the scheduler hands a node's work to the outside.

The core never performs a node's I/O itself. It calls an executor
collaborator with ``(kind, resolved_config)`` and awaits one settle:

- An ExecutionOutcome with ``success=True`` carries the result value
- An ExecutionOutcome with ``success=False`` carries an error message
- A raised exception counts as a failure with the exception text
- Any other return value counts as success with that value

ExecutorRegistry dispatches on node kind so applications can plug in one
callable per kind (sync or async) and pass the registry as the executor.
Sync handlers run in a worker thread so blocking calls do not stall other
nodes running in parallel.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel

from dagflow.graph.node import NodeKind

logger = logging.getLogger(__name__)


@dataclass
class ExecutionOutcome:
    """Settled outcome of one executor call."""

    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any = None) -> "ExecutionOutcome":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ExecutionOutcome":
        return cls(success=False, error=error)


class NodeExecutor(Protocol):
    """Executor collaborator signature."""

    def __call__(self, kind: NodeKind, config: BaseModel) -> Awaitable[Any]: ...


KindHandler = Callable[[BaseModel], Any]


def to_outcome(returned: Any) -> ExecutionOutcome:
    """Normalize an executor's return value into an ExecutionOutcome."""
    if isinstance(returned, ExecutionOutcome):
        if not returned.success and not returned.error:
            returned.error = "Executor reported failure without a message"
        return returned
    return ExecutionOutcome.ok(returned)


class ExecutorRegistry:
    """
    Kind-dispatching executor collaborator.

    Example:
        registry = ExecutorRegistry()

        async def call_api(config: ApiNodeConfig) -> dict:
            ...

        registry.register(NodeKind.API, call_api)
        scheduler = ExecutionScheduler(graph, results, executor=registry)
    """

    def __init__(self, handlers: dict[NodeKind, KindHandler] | None = None):
        self._handlers: dict[NodeKind, KindHandler] = {}
        for kind, handler in (handlers or {}).items():
            self.register(kind, handler)

    def register(self, kind: NodeKind, handler: KindHandler) -> None:
        """Register the handler for a node kind, replacing any previous one."""
        self._handlers[NodeKind(kind)] = handler
        logger.debug(f"Registered executor for kind '{kind}'")

    def unregister(self, kind: NodeKind) -> bool:
        return self._handlers.pop(NodeKind(kind), None) is not None

    def has_handler(self, kind: NodeKind) -> bool:
        return NodeKind(kind) in self._handlers

    async def __call__(self, kind: NodeKind, config: BaseModel) -> ExecutionOutcome:
        handler = self._handlers.get(NodeKind(kind))
        if handler is None:
            return ExecutionOutcome.fail(f"No executor registered for node kind '{kind}'")

        if inspect.iscoroutinefunction(handler):
            returned = await handler(config)
        else:
            returned = await asyncio.to_thread(handler, config)
        if inspect.isawaitable(returned):
            returned = await returned
        return to_outcome(returned)
