"""Tests for ResultStore."""

import threading

from dagflow.runtime.result_store import ResultStore
from dagflow.schemas.node_result import NodeResult, NodeStatus


def result(node_id: str, status: NodeStatus, value=None) -> NodeResult:
    return NodeResult(node_id=node_id, status=status, value=value)


def test_get_absent_is_none_and_pending():
    store = ResultStore()

    assert store.get("a") is None
    assert store.status_of("a") == NodeStatus.PENDING
    assert not store.is_success("a")
    assert "a" not in store
    assert len(store) == 0


def test_set_overwrites_last_write_wins():
    store = ResultStore()
    store.set("a", result("a", NodeStatus.RUNNING))
    store.set("a", result("a", NodeStatus.SUCCESS, value={"x": 1}))

    assert store.status_of("a") == NodeStatus.SUCCESS
    assert store.get("a").value == {"x": 1}
    assert len(store) == 1


def test_remove_and_clear_all():
    store = ResultStore()
    store.set("a", result("a", NodeStatus.SUCCESS))
    store.set("b", result("b", NodeStatus.ERROR))

    store.remove("a")
    store.remove("ghost")
    assert list(store) == ["b"]

    store.clear_all()
    assert store.all() == {}


def test_successful_node_ids():
    store = ResultStore()
    store.set("a", result("a", NodeStatus.SUCCESS))
    store.set("b", result("b", NodeStatus.ERROR))
    store.set("c", result("c", NodeStatus.RUNNING))
    store.set("d", result("d", NodeStatus.SUCCESS))

    assert store.successful_node_ids() == ["a", "d"]


def test_compare_and_set():
    store = ResultStore()

    assert store.compare_and_set("a", None, result("a", NodeStatus.RUNNING))
    assert not store.compare_and_set("a", None, result("a", NodeStatus.RUNNING))
    assert not store.compare_and_set("a", NodeStatus.SUCCESS, result("a", NodeStatus.ERROR))
    assert store.compare_and_set("a", NodeStatus.RUNNING, result("a", NodeStatus.SUCCESS))

    assert store.status_of("a") == NodeStatus.SUCCESS


def test_all_is_a_snapshot():
    store = ResultStore()
    store.set("a", result("a", NodeStatus.SUCCESS))

    snapshot = store.all()
    store.set("b", result("b", NodeStatus.SUCCESS))

    assert list(snapshot) == ["a"]


def test_concurrent_writers_on_disjoint_keys():
    store = ResultStore()

    def writer(prefix: str) -> None:
        for i in range(200):
            store.set(f"{prefix}{i}", result(f"{prefix}{i}", NodeStatus.SUCCESS))

    threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 800


def test_reference_root_and_terminal_status():
    stored = NodeResult(node_id="a", status=NodeStatus.SUCCESS, value=[1], duration_ms=3)

    assert stored.reference_root() == {
        "result": [1],
        "status": "success",
        "error": None,
        "duration_ms": 3,
    }
    assert NodeStatus.ERROR.is_terminal
    assert not NodeStatus.RUNNING.is_terminal


def test_default_started_at_is_timezone_aware():
    assert NodeResult(node_id="a").started_at.tzinfo is not None
