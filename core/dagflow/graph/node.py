"""
Node Schema - Typed units of work in a dependency graph.

A node is one of a small set of kinds (API call, database query, file-based
script). Each kind owns its configuration model; the core only ever:
1. Passes the configuration to the executor collaborator
2. Substitutes {{nodeId.path}} templates inside its string fields

Configurations form a tagged union discriminated on ``kind`` so a NodeSpec
can be rebuilt from plain dicts (e.g. editor payloads) without losing type.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, model_validator


class NodeKind(StrEnum):
    """Kinds of work a node can perform."""

    API = "api"  # HTTP request
    DB = "db"  # SQL query against a stored connection
    FILE = "file"  # Script file run by the host


class ValueSource(StrEnum):
    """Where a parameter's value comes from."""

    MANUAL = "manual"  # Typed in by the user
    LINKED = "linked"  # Bound by the editor, passed through as-is
    REFERENCE = "reference"  # Pulled from another node's stored result


class ParameterSpec(BaseModel):
    """
    A single key/value parameter that may reference an upstream result.

    Examples:
        ParameterSpec(key="limit", value=10)

        ParameterSpec(
            key="user_id",
            value_source=ValueSource.REFERENCE,
            reference_node_id="fetch-users",
            reference_path="result.items[0].id",
        )
    """

    key: str = ""
    value: Any = None
    value_source: ValueSource = ValueSource.MANUAL

    reference_node_id: str | None = None
    reference_path: str | None = Field(
        default=None, description="Path into the referenced result, e.g. 'result.data[0]'"
    )
    display_reference: str | None = None

    model_config = {"extra": "allow"}

    @property
    def is_reference(self) -> bool:
        return self.value_source == ValueSource.REFERENCE


class ApiNodeConfig(BaseModel):
    """Configuration for an HTTP request node."""

    kind: Literal["api"] = "api"
    method: str = "GET"
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    query_params: list[ParameterSpec] = Field(default_factory=list)
    body: str | None = None
    timeout_seconds: float = 30.0

    model_config = {"extra": "allow"}

    def missing_fields(self) -> list[str]:
        return [] if self.url.strip() else ["url"]


class DbNodeConfig(BaseModel):
    """Configuration for a database query node."""

    kind: Literal["db"] = "db"
    connection_id: str = ""
    query: str = ""
    max_rows: int = Field(default=1000, ge=1)
    timeout_seconds: float = 30.0

    model_config = {"extra": "allow"}

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.connection_id.strip():
            missing.append("connection_id")
        if not self.query.strip():
            missing.append("query")
        return missing


class FileNodeConfig(BaseModel):
    """Configuration for a script file node."""

    kind: Literal["file"] = "file"
    file_path: str = ""
    file_name: str = ""
    file_extension: str = ""
    parameters: list[ParameterSpec] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def missing_fields(self) -> list[str]:
        return [] if self.file_path.strip() else ["file_path"]


NodeConfig = Annotated[
    ApiNodeConfig | DbNodeConfig | FileNodeConfig,
    Field(discriminator="kind"),
]

_CONFIG_TYPES: dict[NodeKind, type[BaseModel]] = {
    NodeKind.API: ApiNodeConfig,
    NodeKind.DB: DbNodeConfig,
    NodeKind.FILE: FileNodeConfig,
}


def default_config(kind: NodeKind) -> BaseModel:
    """Build an empty configuration for a node kind."""
    return _CONFIG_TYPES[NodeKind(kind)]()


class NodeSpec(BaseModel):
    """
    Specification for a node in the graph.

    ``config`` defaults to an empty configuration of ``kind``; when both are
    given they must agree.

    Examples:
        NodeSpec(
            id="fetch-users",
            kind=NodeKind.API,
            name="Fetch users",
            config=ApiNodeConfig(url="https://example.com/users"),
        )
    """

    id: str = Field(min_length=1)
    kind: NodeKind
    name: str = ""
    config: NodeConfig | None = None

    model_config = {"extra": "allow"}

    @model_validator(mode="after")
    def _align_config(self) -> "NodeSpec":
        if self.config is None:
            self.config = default_config(self.kind)
        elif self.config.kind != self.kind:
            raise ValueError(
                f"Node '{self.id}' has kind '{self.kind}' but config of kind '{self.config.kind}'"
            )
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def missing_fields(self) -> list[str]:
        """Names of mandatory configuration fields that are still empty."""
        return self.config.missing_fields()
