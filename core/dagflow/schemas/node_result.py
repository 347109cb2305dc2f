"""
NodeResult Schema - The latest execution outcome of a node.

A result is created when a node starts (status=running) and finalized when
the executor settles (success or error). Absence of a result means the node
has not run since the last clear; ``pending`` is never stored by the
scheduler and only exists so callers can name that state.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NodeStatus(StrEnum):
    """Execution state of a node."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeStatus.SUCCESS, NodeStatus.ERROR)


class NodeResult(BaseModel):
    """Outcome of a node's most recent execution."""

    node_id: str
    status: NodeStatus = NodeStatus.PENDING
    value: Any = None
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int | None = None

    model_config = {"extra": "allow"}

    @property
    def succeeded(self) -> bool:
        return self.status == NodeStatus.SUCCESS

    @property
    def failed(self) -> bool:
        return self.status == NodeStatus.ERROR

    def reference_root(self) -> dict[str, Any]:
        """
        The object reference paths are evaluated against.

        Paths address the payload under ``result`` (``result.items[0].id``);
        the other keys let a template pick up the status or error text.
        """
        return {
            "result": self.value,
            "status": self.status.value,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }
