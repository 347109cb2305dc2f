"""
Result Store - Single in-memory source of truth for node execution state.

Holds the latest NodeResult per node id. Setting a result overwrites the
previous one unconditionally; no history is kept.

Writes are serialized by a re-entrant lock so independent execution chains
(parallel mode, or several chains started concurrently) can write results for
disjoint nodes without interleaving destructively on the same id.
``compare_and_set`` gives callers a per-key atomic read/modify/write.
"""

import logging
import threading
from collections.abc import Iterator

from dagflow.schemas.node_result import NodeResult, NodeStatus

logger = logging.getLogger(__name__)


class ResultStore:
    """
    Table of node id -> latest NodeResult.

    Example:
        store = ResultStore()
        store.set("fetch", NodeResult(node_id="fetch", status=NodeStatus.RUNNING))
        store.status_of("fetch")  # NodeStatus.RUNNING
    """

    def __init__(self):
        self._results: dict[str, NodeResult] = {}
        self._lock = threading.RLock()

    def get(self, node_id: str) -> NodeResult | None:
        with self._lock:
            return self._results.get(node_id)

    def set(self, node_id: str, result: NodeResult) -> None:
        """Store ``result`` for ``node_id``, replacing any previous result."""
        with self._lock:
            self._results[node_id] = result
        logger.debug(f"Result for '{node_id}' set to {result.status.value}")

    def remove(self, node_id: str) -> None:
        with self._lock:
            self._results.pop(node_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._results.clear()
        logger.debug("Cleared all node results")

    def compare_and_set(
        self,
        node_id: str,
        expected: NodeStatus | None,
        result: NodeResult,
    ) -> bool:
        """
        Atomically store ``result`` only if the current status is ``expected``.

        ``expected=None`` means "no result stored yet".

        Returns:
            True if the result was stored
        """
        with self._lock:
            current = self._results.get(node_id)
            current_status = current.status if current is not None else None
            if current_status != expected:
                return False
            self._results[node_id] = result
            return True

    def status_of(self, node_id: str) -> NodeStatus:
        """Status of a node; PENDING when it has no stored result."""
        result = self.get(node_id)
        return result.status if result is not None else NodeStatus.PENDING

    def is_success(self, node_id: str) -> bool:
        return self.status_of(node_id) == NodeStatus.SUCCESS

    def all(self) -> dict[str, NodeResult]:
        """Snapshot of every stored result."""
        with self._lock:
            return dict(self._results)

    def successful_node_ids(self) -> list[str]:
        with self._lock:
            return [
                node_id
                for node_id, result in self._results.items()
                if result.status == NodeStatus.SUCCESS
            ]

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __iter__(self) -> Iterator[str]:
        return iter(self.all())
