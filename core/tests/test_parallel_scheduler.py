"""Tests for ExecutionScheduler's bounded parallel mode."""

import asyncio
import threading
import time

import pytest

from conftest import RecordingExecutor, build_graph
from dagflow.config import SchedulerConfig
from dagflow.execution.scheduler import ExecutionScheduler
from dagflow.graph.executor import ExecutorRegistry
from dagflow.graph.node import FileNodeConfig, NodeKind
from dagflow.runtime.event_bus import EventBus, EventType
from dagflow.schemas.node_result import NodeStatus

DIAMOND = (["A", "B", "C", "D"], [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])


def make_scheduler(graph, executor, **kwargs) -> ExecutionScheduler:
    return ExecutionScheduler(
        graph=graph,
        executor=executor,
        config=SchedulerConfig(parallel=True, max_concurrency=4),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_independent_branches_run_concurrently():
    executor = RecordingExecutor(delay=0.02)
    scheduler = make_scheduler(build_graph(*DIAMOND), executor)

    summary = await scheduler.start_execution("A")

    assert summary.success
    assert summary.parallel
    assert executor.max_active == 2
    assert executor.calls[0] == "A"
    assert set(executor.calls[1:3]) == {"B", "C"}
    assert executor.calls[-1] == "D"
    assert executor.calls.count("D") == 1


@pytest.mark.asyncio
async def test_max_concurrency_bounds_in_flight_nodes():
    graph = build_graph(
        ["A", "B", "C", "D", "E"],
        [("A", "B"), ("A", "C"), ("A", "D"), ("A", "E")],
    )
    executor = RecordingExecutor(delay=0.01)
    scheduler = make_scheduler(graph, executor)

    summary = await scheduler.start_execution("A", max_concurrency=2)

    assert summary.success
    assert executor.max_active == 2
    assert sorted(executor.calls) == ["A", "B", "C", "D", "E"]


@pytest.mark.asyncio
async def test_concurrency_of_one_runs_serially():
    executor = RecordingExecutor(delay=0.01)
    scheduler = make_scheduler(build_graph(*DIAMOND), executor)

    await scheduler.start_execution("A", max_concurrency=1)

    assert executor.max_active == 1
    assert executor.calls[-1] == "D"


@pytest.mark.asyncio
async def test_failed_branch_blocks_join_but_not_sibling():
    executor = RecordingExecutor(fail={"B"}, delay=0.01)
    scheduler = make_scheduler(build_graph(*DIAMOND), executor)

    summary = await scheduler.start_execution("A")

    assert not summary.success
    assert summary.failed_nodes == ["B"]
    assert summary.blocked_nodes == ["D"]
    assert scheduler.results.status_of("C") == NodeStatus.SUCCESS
    assert "D" not in scheduler.results
    assert "D" not in executor.calls


@pytest.mark.asyncio
async def test_join_waits_for_slow_branch():
    # B is slow; D must not start until both B and C have finished
    graph = build_graph(*DIAMOND)
    finished: list[str] = []

    async def executor(kind, config):
        node_id = config.file_path
        if node_id == "D":
            assert {"B", "C"} <= set(finished)
        await asyncio.sleep(0.03 if node_id == "B" else 0)
        finished.append(node_id)
        return node_id

    scheduler = make_scheduler(graph, executor)
    summary = await scheduler.start_execution("A")

    assert summary.success
    assert finished == ["A", "C", "B", "D"]


@pytest.mark.asyncio
async def test_parallel_run_only_covers_root_descendants():
    graph = build_graph(["A", "B", "X"], [("A", "B")])
    executor = RecordingExecutor()
    scheduler = make_scheduler(graph, executor)

    await scheduler.start_execution("A")

    assert sorted(executor.calls) == ["A", "B"]
    assert "X" not in scheduler.results


@pytest.mark.asyncio
async def test_parallel_unknown_root():
    scheduler = make_scheduler(build_graph(["A"], []), RecordingExecutor())

    summary = await scheduler.start_execution("ghost")

    assert not summary.success
    assert scheduler.results.get("ghost").error == "Node 'ghost' not found"


@pytest.mark.asyncio
async def test_parallel_edge_events_name_completed_source():
    bus = EventBus()
    scheduler = make_scheduler(build_graph(*DIAMOND), RecordingExecutor(), event_bus=bus)

    await scheduler.start_execution("A")

    traversed = {
        (e.data["source_node"], e.data["target_node"])
        for e in bus.get_history(event_type=EventType.EDGE_TRAVERSED)
    }
    assert ("A", "B") in traversed
    assert ("A", "C") in traversed
    assert len([t for s, t in traversed if t == "D"]) >= 1
    assert len(bus.get_history(event_type=EventType.NODE_STARTED)) == 4


@pytest.mark.asyncio
async def test_parallel_flag_overrides_config():
    executor = RecordingExecutor()
    scheduler = ExecutionScheduler(
        graph=build_graph(*DIAMOND),
        executor=executor,
        config=SchedulerConfig(parallel=False, max_concurrency=4),
    )

    summary = await scheduler.start_execution("A", parallel=True)

    assert summary.parallel
    assert summary.success


@pytest.mark.asyncio
async def test_blocking_sync_handlers_overlap():
    lock = threading.Lock()
    active = 0
    max_active = 0

    def read_file(config: FileNodeConfig):
        nonlocal active, max_active
        with lock:
            active += 1
            max_active = max(max_active, active)
        time.sleep(0.05)
        with lock:
            active -= 1
        return config.file_path

    scheduler = make_scheduler(
        build_graph(["A", "B", "C", "D"], [("A", "B"), ("A", "C"), ("A", "D")]),
        ExecutorRegistry({NodeKind.FILE: read_file}),
    )

    summary = await scheduler.start_execution("A")

    assert summary.success
    assert max_active >= 2
    assert scheduler.results.get("D").value == "D"
