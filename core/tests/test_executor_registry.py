"""Tests for the executor contract and kind-dispatching registry."""

import threading

import pytest

from dagflow.graph.executor import ExecutionOutcome, ExecutorRegistry, to_outcome
from dagflow.graph.node import ApiNodeConfig, DbNodeConfig, NodeKind


def test_to_outcome_wraps_plain_values():
    outcome = to_outcome({"rows": []})

    assert outcome.success
    assert outcome.value == {"rows": []}


def test_to_outcome_fills_missing_error():
    outcome = to_outcome(ExecutionOutcome(success=False))

    assert not outcome.success
    assert outcome.error


@pytest.mark.asyncio
async def test_dispatches_sync_and_async_handlers():
    async def call_api(config: ApiNodeConfig):
        return ExecutionOutcome.ok({"url": config.url})

    def run_query(config: DbNodeConfig):
        return [{"n": 1}]

    registry = ExecutorRegistry({NodeKind.API: call_api})
    registry.register(NodeKind.DB, run_query)

    api = await registry(NodeKind.API, ApiNodeConfig(url="https://example.com"))
    db = await registry(NodeKind.DB, DbNodeConfig(connection_id="c", query="select 1"))

    assert api.value == {"url": "https://example.com"}
    assert db.value == [{"n": 1}]


@pytest.mark.asyncio
async def test_sync_handler_runs_off_the_event_loop():
    loop_thread = threading.get_ident()
    seen: list[int] = []

    def run_query(config: DbNodeConfig):
        seen.append(threading.get_ident())
        return "done"

    registry = ExecutorRegistry({NodeKind.DB: run_query})

    outcome = await registry(NodeKind.DB, DbNodeConfig(connection_id="c", query="select 1"))

    assert outcome.value == "done"
    assert seen and seen[0] != loop_thread


@pytest.mark.asyncio
async def test_unregistered_kind_fails():
    registry = ExecutorRegistry()

    outcome = await registry(NodeKind.FILE, ApiNodeConfig())

    assert not outcome.success
    assert outcome.error == "No executor registered for node kind 'file'"


def test_register_and_unregister():
    registry = ExecutorRegistry()
    registry.register("api", lambda config: None)

    assert registry.has_handler(NodeKind.API)
    assert registry.unregister(NodeKind.API)
    assert not registry.unregister(NodeKind.API)
    assert not registry.has_handler("api")
