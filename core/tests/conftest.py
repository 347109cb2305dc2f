"""Shared fixtures and fakes for dagflow tests."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from dagflow.graph.edge import EdgeSpec
from dagflow.graph.executor import ExecutionOutcome
from dagflow.graph.node import FileNodeConfig, NodeKind, NodeSpec, ParameterSpec
from dagflow.graph.store import GraphStore
from dagflow.observability import clear_trace_context
from dagflow.runtime.result_store import ResultStore


def make_node(node_id: str, parameters: list[ParameterSpec] | None = None, name: str = "") -> NodeSpec:
    """File node whose file_path is its own id, so fakes can tell nodes apart."""
    return NodeSpec(
        id=node_id,
        kind=NodeKind.FILE,
        name=name,
        config=FileNodeConfig(file_path=node_id, parameters=parameters or []),
    )


def build_graph(
    node_ids: list[str],
    edges: list[tuple[str, str]],
    results: ResultStore | None = None,
) -> GraphStore:
    graph = GraphStore(result_store=results)
    for node_id in node_ids:
        graph.add_node(make_node(node_id))
    graph.set_edge_data([EdgeSpec(source=s, target=t) for s, t in edges])
    return graph


class FakeClock:
    """Deterministic clock advancing a fixed step on every call."""

    def __init__(self, step_ms: int = 5):
        self.start = datetime(2024, 1, 1, tzinfo=UTC)
        self.now = self.start
        self.step = timedelta(milliseconds=step_ms)

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


class RecordingExecutor:
    """Executor fake keyed on FileNodeConfig.file_path (the node id)."""

    def __init__(
        self,
        outputs: dict[str, Any] | None = None,
        fail: set[str] | None = None,
        raise_for: set[str] | None = None,
        delay: float = 0.0,
    ):
        self.outputs = outputs or {}
        self.fail = fail or set()
        self.raise_for = raise_for or set()
        self.delay = delay
        self.calls: list[str] = []
        self.configs: dict[str, Any] = {}
        self.active = 0
        self.max_active = 0

    async def __call__(self, kind: NodeKind, config: FileNodeConfig) -> ExecutionOutcome:
        node_id = config.file_path
        self.calls.append(node_id)
        self.configs[node_id] = config

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        if node_id in self.raise_for:
            raise RuntimeError(f"{node_id} exploded")
        if node_id in self.fail:
            return ExecutionOutcome.fail(f"{node_id} failed")
        return ExecutionOutcome.ok(self.outputs.get(node_id, {"node": node_id}))


@pytest.fixture(autouse=True)
def reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an absent file so a developer's ~/.dagflow never leaks in."""
    monkeypatch.setenv("DAGFLOW_CONFIG", str(tmp_path / "absent-configuration.json"))
    monkeypatch.delenv("LOG_LEVEL", raising=False)


@pytest.fixture
def results() -> ResultStore:
    return ResultStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
