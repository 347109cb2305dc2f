"""Cross-node references: path extraction and {{nodeId.path}} templates."""

from dagflow.reference.path import extract_value_from_path, parse_path
from dagflow.reference.resolver import (
    TEMPLATE_PATTERN,
    Reference,
    ReferenceResolver,
    stringify,
)

__all__ = [
    "extract_value_from_path",
    "parse_path",
    "Reference",
    "ReferenceResolver",
    "TEMPLATE_PATTERN",
    "stringify",
]
