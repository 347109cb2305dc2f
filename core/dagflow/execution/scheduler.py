"""
Execution Scheduler - Runs nodes in dependency order.

The scheduler:
1. Marks a node running in the ResultStore
2. Resolves the node's templates and references against stored results
3. Hands the resolved configuration to the executor collaborator
4. Records success or error
5. On success, starts every direct successor whose predecessors have all
   succeeded (the join condition), one after another

Sequential mode awaits each node before looking at its successors, so a run
is a depth-first walk of the ready frontier in edge insertion order. Parallel
mode replaces the recursion with a work queue: completed nodes trigger a
sweep over the root's not-yet-scheduled descendants and every ready node is
started as its own task, bounded by ``max_concurrency``.

A failed node halts its branch. Its dependents get no result at all;
``get_blocked_node_ids`` reports them.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime

from dagflow.config import SchedulerConfig
from dagflow.graph.executor import ExecutionOutcome, ExecutorRegistry, NodeExecutor, to_outcome
from dagflow.graph.node import NodeSpec
from dagflow.graph.store import GraphStore
from dagflow.observability import reset_trace_context, set_trace_context
from dagflow.reference.resolver import ReferenceResolver
from dagflow.runtime.event_bus import EventBus
from dagflow.runtime.result_store import ResultStore
from dagflow.schemas.node_result import NodeResult, NodeStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ExecutionSummary:
    """Result of one start_execution call."""

    run_id: str
    root_node_id: str
    success: bool = False
    path: list[str] = field(default_factory=list)  # Node IDs in start order
    failed_nodes: list[str] = field(default_factory=list)
    blocked_nodes: list[str] = field(default_factory=list)  # Left without a result
    total_latency_ms: int = 0
    parallel: bool = False

    @property
    def completed_nodes(self) -> list[str]:
        return [node_id for node_id in self.path if node_id not in self.failed_nodes]


@dataclass
class _RunState:
    run_id: str
    path: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


_current_run: ContextVar[_RunState | None] = ContextVar("dagflow_current_run", default=None)


class ExecutionScheduler:
    """
    Runs graph nodes through an executor collaborator.

    Example:
        registry = ExecutorRegistry()
        registry.register(NodeKind.API, call_api)

        scheduler = ExecutionScheduler(graph=graph, executor=registry)
        summary = await scheduler.start_execution("fetch-users")
        scheduler.results.get("fetch-users").status  # NodeStatus.SUCCESS
    """

    def __init__(
        self,
        graph: GraphStore,
        results: ResultStore | None = None,
        executor: NodeExecutor | None = None,
        resolver: ReferenceResolver | None = None,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
        config: SchedulerConfig | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            graph: Nodes and edges to run
            results: Result store (defaults to the graph's, or a new one); the
                graph is rebound to it
            executor: Collaborator performing each node's work
            resolver: Reference resolver (defaults to one over ``results``)
            event_bus: Optional bus for node lifecycle events
            clock: Returns the current time; injected for deterministic tests
            config: Parallel mode and concurrency settings
        """
        self.graph = graph
        if results is None:
            results = graph.result_store if graph.result_store is not None else ResultStore()
        self.results = results
        if graph.result_store is not self.results:
            if graph.result_store is not None:
                logger.debug("Graph result store replaced by the scheduler's")
            # remove_node prunes through the graph, so both must share one store
            graph.result_store = self.results
        self.executor: NodeExecutor = executor or ExecutorRegistry()
        self.resolver = resolver or ReferenceResolver(self.results, graph)
        self.config = config or SchedulerConfig()
        self._event_bus = event_bus
        self._clock = clock or utc_now

    # === READINESS ===

    def is_ready(self, node_id: str) -> bool:
        """True if every direct predecessor of ``node_id`` has succeeded."""
        return all(
            self.results.is_success(predecessor)
            for predecessor in self.graph.get_direct_predecessors(node_id)
        )

    def get_ready_node_ids(self, node_id: str) -> list[str]:
        """Direct successors of ``node_id`` whose predecessors have all succeeded."""
        return [
            successor
            for successor in self.graph.get_direct_successors(node_id)
            if self.is_ready(successor)
        ]

    def get_blocked_node_ids(self) -> list[str]:
        """
        Nodes with no result that sit downstream of a failed node.

        These never ran because a dependency failed; no result is stored for
        them, so this is the only place the condition shows up.
        """
        blocked: set[str] = set()
        for node_id, result in self.results.all().items():
            if result.status != NodeStatus.ERROR:
                continue
            for descendant in self.graph.get_descendants(node_id):
                if descendant not in self.results:
                    blocked.add(descendant)
        return [node_id for node_id in self.graph.topological_order() if node_id in blocked]

    def check_runnable(self, node_id: str) -> list[str]:
        """
        Problems that should stop a "Run" action before it reaches the scheduler.

        Returns:
            Human-readable problems; empty when the node can run
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return [f"Node '{node_id}' not found"]
        return [
            f"Node '{node_id}' is missing required field '{name}'"
            for name in node.missing_fields()
        ]

    # === EXECUTION ===

    async def run_node(self, node_id: str) -> NodeResult:
        """
        Run a node, then every successor it makes ready.

        An unknown node id is recorded as an error result rather than raised.

        Returns:
            The node's own final result
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return await self._record_missing(node_id)

        result = await self._execute_single(node)
        if not result.succeeded:
            return result

        ready = self.get_ready_node_ids(node_id)
        if ready:
            logger.info(f"   → {node_id} triggers {ready}")
        for ready_id in ready:
            if self._event_bus:
                await self._event_bus.emit_edge_traversed(
                    source_node=node_id, target_node=ready_id, run_id=self._run_id()
                )
            await self.run_node(ready_id)

        return result

    async def start_execution(
        self,
        root_node_id: str,
        parallel: bool | None = None,
        max_concurrency: int | None = None,
    ) -> ExecutionSummary:
        """
        Clear every stored result and run the graph from ``root_node_id``.

        Args:
            root_node_id: Node to start from
            parallel: Use the work-queue scheduler (defaults to config)
            max_concurrency: Parallel task bound (defaults to config)

        Returns:
            ExecutionSummary for the run
        """
        if parallel is None:
            parallel = self.config.parallel
        if max_concurrency is None:
            max_concurrency = self.config.max_concurrency

        state = _RunState(run_id=uuid.uuid4().hex)
        trace_token = set_trace_context(run_id=state.run_id)
        try:
            token = _current_run.set(state)
            try:
                self.results.clear_all()
                logger.info(
                    f"▶ Starting execution from '{root_node_id}' "
                    f"({'parallel' if parallel else 'sequential'})"
                )
                if self._event_bus:
                    await self._event_bus.emit_results_cleared(run_id=state.run_id)
                    await self._event_bus.emit_execution_started(
                        run_id=state.run_id, root_node_id=root_node_id
                    )

                if parallel:
                    await self._run_parallel(root_node_id, max(1, max_concurrency))
                else:
                    await self.run_node(root_node_id)
            finally:
                _current_run.reset(token)

            summary = self._summarize(state, root_node_id, parallel)

            if summary.success:
                logger.info(f"✓ Execution completed: {len(summary.path)} nodes")
            else:
                logger.warning(
                    f"✗ Execution finished with failures: {summary.failed_nodes} "
                    f"(blocked: {summary.blocked_nodes})"
                )

            if self._event_bus:
                if summary.success:
                    await self._event_bus.emit_execution_completed(
                        run_id=state.run_id,
                        path=summary.path,
                        total_latency_ms=summary.total_latency_ms,
                    )
                else:
                    await self._event_bus.emit_execution_failed(
                        run_id=state.run_id,
                        failed_nodes=summary.failed_nodes,
                        blocked_nodes=summary.blocked_nodes,
                    )
        finally:
            reset_trace_context(trace_token)

        return summary

    async def _run_parallel(self, root_node_id: str, max_concurrency: int) -> None:
        root = self.graph.get_node(root_node_id)
        if root is None:
            await self._record_missing(root_node_id)
            return

        scope = {root_node_id, *self.graph.get_descendants(root_node_id)}
        order = [node_id for node_id in self.graph.topological_order() if node_id in scope]
        scheduled = {root_node_id}
        semaphore = asyncio.Semaphore(max_concurrency)

        async def worker(node: NodeSpec) -> NodeResult:
            async with semaphore:
                return await self._execute_single(node)

        pending = {asyncio.create_task(worker(root))}
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                completed = {task.result().node_id for task in done}

                # Sweep every pending node in scope, not just direct successors
                for node_id in order:
                    if node_id in scheduled or not self.is_ready(node_id):
                        continue
                    node = self.graph.get_node(node_id)
                    if node is None:
                        continue
                    scheduled.add(node_id)
                    if self._event_bus:
                        for source in self.graph.get_direct_predecessors(node_id):
                            if source in completed:
                                await self._event_bus.emit_edge_traversed(
                                    source_node=source, target_node=node_id, run_id=self._run_id()
                                )
                    pending.add(asyncio.create_task(worker(node)))

                if pending:
                    logger.debug(f"   ⑂ {len(pending)} node(s) in flight")
        finally:
            for task in pending:
                task.cancel()

    async def _execute_single(self, node: NodeSpec) -> NodeResult:
        """Run one node's work and record its result; never triggers successors."""
        trace_token = set_trace_context(node_id=node.id)
        try:
            return await self._perform(node)
        finally:
            reset_trace_context(trace_token)

    async def _perform(self, node: NodeSpec) -> NodeResult:
        run = _current_run.get()

        started_at = self._clock()
        self.results.set(
            node.id,
            NodeResult(node_id=node.id, status=NodeStatus.RUNNING, started_at=started_at),
        )
        if run is not None:
            run.path.append(node.id)

        logger.info(f"▶ Running {node.kind} node '{node.display_name}'")
        if self._event_bus:
            await self._event_bus.emit_node_started(
                node_id=node.id,
                run_id=self._run_id(),
                node_name=node.display_name,
                kind=node.kind.value,
            )

        try:
            config = self.resolver.resolve_config(node)
            outcome = to_outcome(await self.executor(node.kind, config))
        except Exception as e:
            logger.error(f"Executor raised for '{node.id}': {e}", exc_info=True)
            outcome = ExecutionOutcome.fail(str(e) or type(e).__name__)

        duration_ms = self._elapsed_ms(started_at)

        if outcome.success:
            result = NodeResult(
                node_id=node.id,
                status=NodeStatus.SUCCESS,
                value=outcome.value,
                started_at=started_at,
                duration_ms=duration_ms,
            )
        else:
            result = NodeResult(
                node_id=node.id,
                status=NodeStatus.ERROR,
                error=outcome.error,
                started_at=started_at,
                duration_ms=duration_ms,
            )
        self.results.set(node.id, result)

        if result.succeeded:
            logger.info(
                f"   ✓ '{node.id}' succeeded ({duration_ms}ms)",
                extra={"event": "node_completed", "duration_ms": duration_ms},
            )
            if self._event_bus:
                await self._event_bus.emit_node_completed(
                    node_id=node.id,
                    run_id=self._run_id(),
                    node_name=node.display_name,
                    duration_ms=duration_ms,
                )
        else:
            if run is not None:
                run.failed.append(node.id)
            logger.warning(
                f"   ✗ '{node.id}' failed: {result.error}",
                extra={"event": "node_failed", "duration_ms": duration_ms},
            )
            if self._event_bus:
                await self._event_bus.emit_node_failed(
                    node_id=node.id,
                    error=result.error or "",
                    run_id=self._run_id(),
                    node_name=node.display_name,
                    duration_ms=duration_ms,
                )

        return result

    async def _record_missing(self, node_id: str) -> NodeResult:
        result = NodeResult(
            node_id=node_id,
            status=NodeStatus.ERROR,
            error=f"Node '{node_id}' not found",
            started_at=self._clock(),
            duration_ms=0,
        )
        self.results.set(node_id, result)

        run = _current_run.get()
        if run is not None:
            run.failed.append(node_id)

        logger.error(f"Cannot run '{node_id}': node not found")
        if self._event_bus:
            await self._event_bus.emit_node_failed(
                node_id=node_id, error=result.error or "", run_id=self._run_id()
            )
        return result

    # === HELPERS ===

    def _elapsed_ms(self, started_at: datetime) -> int:
        return max(0, int((self._clock() - started_at).total_seconds() * 1000))

    def _run_id(self) -> str | None:
        run = _current_run.get()
        return run.run_id if run is not None else None

    def _summarize(self, state: _RunState, root_node_id: str, parallel: bool) -> ExecutionSummary:
        in_scope = {root_node_id, *self.graph.get_descendants(root_node_id)}
        blocked = [node_id for node_id in self.get_blocked_node_ids() if node_id in in_scope]

        total_latency_ms = 0
        for node_id in state.path:
            result = self.results.get(node_id)
            if result is not None and result.duration_ms:
                total_latency_ms += result.duration_ms

        return ExecutionSummary(
            run_id=state.run_id,
            root_node_id=root_node_id,
            success=not state.failed,
            path=list(state.path),
            failed_nodes=list(state.failed),
            blocked_nodes=blocked,
            total_latency_ms=total_latency_ms,
            parallel=parallel,
        )
