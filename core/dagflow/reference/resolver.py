"""
Reference Resolver - Wires one node's stored result into another's config.

Two mechanisms share the same path grammar (see dagflow.reference.path):

- Templates: ``{{<nodeId>.<path>}}`` anywhere inside a string field. Each
  placeholder is resolved on its own; one that cannot be resolved is left
  verbatim in the output.
- Reference parameters: a ParameterSpec with ``value_source=reference``
  names a node id and a path directly.

Resolution is a soft operation. A node that has not run, did not succeed, or
whose result lacks the path resolves to None (or keeps its placeholder) and a
warning is logged; it is up to the executor to fail if a required value is
missing.

Paths are evaluated against NodeResult.reference_root(), so the payload lives
under ``result`` (``{{fetch.result.items[0].id}}``).
"""

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, computed_field

from dagflow.config import ReferenceConfig
from dagflow.graph.node import NodeSpec, ParameterSpec
from dagflow.graph.store import GraphStore
from dagflow.reference.path import extract_value_from_path
from dagflow.runtime.result_store import ResultStore

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}.\s]+)\.([^{}]+?)\s*\}\}")


class Reference(BaseModel):
    """A value reachable from a node's stored result, for editor pickers."""

    node_id: str
    field_path: str
    display_label: str
    node_name: str = ""

    @computed_field
    @property
    def template(self) -> str:
        """Placeholder text to insert into a string field."""
        return f"{{{{{self.node_id}.{self.field_path}}}}}"


def stringify(value: Any) -> str:
    """String form used when substituting a value into a template."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class ReferenceResolver:
    """
    Resolves templates and reference parameters against a ResultStore.

    Example:
        resolver = ReferenceResolver(results, graph)

        # fetch succeeded with {"data": {"x": 5}}
        resolver.resolve_template_string("value={{fetch.result.data}}")
        # 'value={"x":5}'
    """

    def __init__(
        self,
        results: ResultStore,
        graph: GraphStore | None = None,
        config: ReferenceConfig | None = None,
    ):
        """
        Initialize the resolver.

        Args:
            results: Store the referenced values are read from
            graph: Graph used to enumerate references; optional for resolving
            config: Reference listing settings (defaults from configuration file)
        """
        self.results = results
        self.graph = graph
        self.config = config or ReferenceConfig()

    # === VALUE LOOKUP ===

    def get_node_result_value(self, node_id: str, path: str | None = None) -> Any:
        """
        Value at ``path`` in a node's successful result.

        Returns:
            The value, the whole payload when ``path`` is empty, or None when
            the node has no successful result or the path does not exist
        """
        result = self.results.get(node_id)
        if result is None:
            logger.warning(f"Reference to '{node_id}' skipped: node has not been executed")
            return None
        if not result.succeeded:
            logger.warning(
                f"Reference to '{node_id}' skipped: execution was not successful "
                f"(status: {result.status.value})"
            )
            return None
        if not path:
            return result.value

        value = extract_value_from_path(result.reference_root(), path)
        if value is None:
            logger.warning(f"Reference '{node_id}.{path}' did not match the stored result")
        return value

    # === TEMPLATES ===

    def find_placeholders(self, text: str) -> list[tuple[str, str]]:
        """(node_id, path) pairs for every placeholder in ``text``."""
        return [(m.group(1), m.group(2)) for m in TEMPLATE_PATTERN.finditer(text)]

    def resolve_template_string(self, text: str) -> str:
        """Substitute every resolvable ``{{nodeId.path}}`` in ``text``."""
        if "{{" not in text:
            return text

        def substitute(match: re.Match[str]) -> str:
            node_id, path = match.group(1), match.group(2)
            value = self.get_node_result_value(node_id, path)
            if value is None:
                return match.group(0)
            return stringify(value)

        return TEMPLATE_PATTERN.sub(substitute, text)

    def resolve_value(self, value: Any) -> Any:
        """Resolve templates in every string nested inside ``value``."""
        if isinstance(value, ParameterSpec):
            return self._materialize_parameter(value)
        if isinstance(value, str):
            return self.resolve_template_string(value)
        if isinstance(value, list):
            return [self.resolve_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve_value(item) for item in value)
        if isinstance(value, dict):
            return {key: self.resolve_value(item) for key, item in value.items()}
        return value

    # === PARAMETERS ===

    def resolve_parameter_value(self, param: ParameterSpec) -> Any:
        """
        Value of a single parameter.

        Only ``reference`` parameters are looked up; ``manual`` and ``linked``
        values are returned as stored, placeholders included.
        """
        if param.is_reference:
            if param.reference_node_id and param.reference_path:
                return self.get_node_result_value(param.reference_node_id, param.reference_path)
            logger.warning(f"Parameter '{param.key}' is a reference without node id or path")
        return param.value

    def resolve_parameter_set(self, params: Iterable[ParameterSpec]) -> dict[str, Any]:
        """
        Map parameter keys to resolved values.

        Parameters without a key are skipped; later duplicates win. Non-reference
        values pass through unchanged.
        """
        resolved: dict[str, Any] = {}
        for param in params:
            if not param.key:
                continue
            resolved[param.key] = self.resolve_parameter_value(param)
        return resolved

    def _materialize_parameter(self, param: ParameterSpec) -> ParameterSpec:
        # Inside a node's config, templates in any parameter value are resolved too
        if param.is_reference:
            value = self.resolve_parameter_value(param)
        else:
            value = self.resolve_value(param.value)
        return param.model_copy(update={"value": value})

    # === NODE CONFIGURATION ===

    def resolve_config(self, node: NodeSpec) -> BaseModel:
        """
        Configuration of ``node`` with every template and reference resolved.

        Returns a new config of the same kind; the node itself is untouched.
        """
        config = node.config
        updates = {name: self.resolve_value(value) for name, value in config}
        return type(config).model_validate(updates)

    # === REFERENCE ENUMERATION ===

    def list_available_references(
        self,
        node_id: str,
        include_all_successful: bool | None = None,
        max_depth: int | None = None,
    ) -> list[Reference]:
        """
        References a node's configuration may use.

        Candidates are the node's direct predecessors. When it has none and
        ``include_all_successful`` is enabled, every other node with a
        successful result is offered instead.

        For each candidate a ``result`` reference is emitted (labelled with
        the status when it has not succeeded), followed by per-field
        references into object payloads down to ``max_depth`` levels below
        the top and into the first item of array payloads.
        """
        if include_all_successful is None:
            include_all_successful = self.config.include_all_successful
        if max_depth is None:
            max_depth = self.config.max_depth

        candidates = self.graph.get_direct_predecessors(node_id) if self.graph else []
        if not candidates and include_all_successful:
            candidates = [nid for nid in self.results.successful_node_ids() if nid != node_id]

        references: list[Reference] = []
        for candidate_id in candidates:
            node = self.graph.get_node(candidate_id) if self.graph else None
            name = node.display_name if node else candidate_id
            result = self.results.get(candidate_id)

            status = result.status.value if result else "not-executed"
            suffix = "" if status == "success" else f" ({status})"
            references.append(
                Reference(
                    node_id=candidate_id,
                    node_name=name,
                    field_path="result",
                    display_label=f"{name} → result{suffix}",
                )
            )

            if result is not None and result.succeeded:
                self._add_field_references(
                    references, candidate_id, name, result.value, "result", 0, max_depth
                )

        return references

    def _add_field_references(
        self,
        references: list[Reference],
        node_id: str,
        node_name: str,
        value: Any,
        path: str,
        depth: int,
        max_depth: int,
    ) -> None:
        if depth > max_depth:
            return

        if isinstance(value, Mapping):
            for key, child in value.items():
                field_path = f"{path}.{key}"
                references.append(
                    Reference(
                        node_id=node_id,
                        node_name=node_name,
                        field_path=field_path,
                        display_label=f"{node_name} → {field_path}",
                    )
                )
                if isinstance(child, Mapping | list) and child:
                    self._add_field_references(
                        references, node_id, node_name, child, field_path, depth + 1, max_depth
                    )
        elif isinstance(value, list) and value and isinstance(value[0], Mapping):
            # First item stands in for the shape of every item
            self._add_field_references(
                references, node_id, node_name, value[0], f"{path}[0]", depth, max_depth
            )
