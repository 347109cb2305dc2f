"""Tests for cycle detection and edge-set validation."""

from dagflow.graph.edge import EdgeSpec
from dagflow.graph.validator import (
    GraphValidator,
    find_cycle,
    find_dangling_edges,
    has_cycle,
)


def edges(*pairs: tuple[str, str]) -> list[EdgeSpec]:
    return [EdgeSpec(source=s, target=t) for s, t in pairs]


def test_empty_graph_is_acyclic():
    assert not has_cycle([], [])
    assert not has_cycle(["a", "b"], [])


def test_chain_and_diamond_are_acyclic():
    assert not has_cycle(["a", "b", "c"], edges(("a", "b"), ("b", "c")))
    assert not has_cycle(
        ["a", "b", "c", "d"],
        edges(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")),
    )


def test_self_loop_is_a_cycle():
    assert find_cycle(["a"], edges(("a", "a"))) == ["a", "a"]


def test_two_node_cycle_path():
    assert find_cycle(["a", "b"], edges(("a", "b"), ("b", "a"))) == ["a", "b", "a"]


def test_cycle_found_in_disconnected_component():
    node_ids = ["a", "b", "x", "y", "z"]
    cycle = find_cycle(node_ids, edges(("a", "b"), ("x", "y"), ("y", "z"), ("z", "y")))

    assert cycle == ["y", "z", "y"]


def test_cycle_reached_through_acyclic_prefix():
    cycle = find_cycle(
        ["a", "b", "c", "d"],
        edges(("a", "b"), ("b", "c"), ("c", "d"), ("d", "b")),
    )

    assert cycle == ["b", "c", "d", "b"]


def test_shared_descendant_is_not_a_cycle():
    # d is visited twice from different branches but never while on the stack
    assert not has_cycle(
        ["a", "b", "c", "d"],
        edges(("a", "d"), ("a", "b"), ("b", "c"), ("c", "d")),
    )


def test_long_chain_does_not_hit_recursion_limit():
    node_ids = [f"n{i}" for i in range(5000)]
    chain = edges(*zip(node_ids, node_ids[1:], strict=False))

    assert not has_cycle(node_ids, chain)
    assert has_cycle(node_ids, chain + edges((node_ids[-1], node_ids[0])))


def test_edges_to_unlisted_nodes_still_checked_for_cycles():
    assert has_cycle([], edges(("a", "b"), ("b", "a")))


def test_find_dangling_edges():
    dangling = find_dangling_edges(["a", "b"], edges(("a", "b"), ("a", "x"), ("y", "b")))

    assert dangling == [("a", "x"), ("y", "b")]


def test_validator_reports_cycle_and_dangling():
    validator = GraphValidator()

    result = validator.validate_edges(["a", "b"], edges(("a", "b"), ("b", "a"), ("a", "x")))

    assert not result.success
    assert result.dangling == [("a", "x")]
    assert result.cycle == ["a", "b", "a"]
    assert "references an unknown node" in result.error
    assert "Cycle detected: a -> b -> a" in result.error


def test_validator_accepts_valid_set():
    result = GraphValidator().validate_edges(["a", "b"], edges(("a", "b")))

    assert result.success
    assert result.error == ""
    assert result.cycle is None


def test_lenient_validator_ignores_dangling():
    result = GraphValidator(reject_dangling=False).validate_edges(["a"], edges(("a", "x")))

    assert result.success
    assert result.dangling == []
