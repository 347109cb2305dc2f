"""
Edge Protocol - How nodes depend on each other.

An edge (source, target) means "target depends on source": the target may
only run once the source, and every other source feeding it, has succeeded.

Edges are never mutated one at a time. The graph store replaces the whole
edge set at once and validates it before committing.
"""

from pydantic import BaseModel, Field, model_validator


class EdgeSpec(BaseModel):
    """
    Specification for a dependency edge between two nodes.

    Examples:
        # fetch must succeed before transform runs
        EdgeSpec(source="fetch", target="transform")
    """

    id: str = ""
    source: str = Field(min_length=1, description="Producer node ID")
    target: str = Field(min_length=1, description="Dependent node ID")

    # Metadata
    label: str = ""

    model_config = {"extra": "allow"}

    @model_validator(mode="after")
    def _default_id(self) -> "EdgeSpec":
        if not self.id:
            self.id = f"{self.source}-{self.target}"
        return self

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def touches(self, node_id: str) -> bool:
        """True if either endpoint is ``node_id``."""
        return self.source == node_id or self.target == node_id

    def as_pair(self) -> tuple[str, str]:
        return (self.source, self.target)
