"""
Node type catalogue.

Importing this package registers every built-in node type in
`default_registry`; call `default_registry.freeze()` once start-up
registration is complete.
"""
from .NodeRegistry import (
    ALL_GRAPH_TYPES,
    COMMON_FIELDS,
    FieldSpec,
    FieldValidationError,
    NodeDefinition,
    NodeRegistry,
    default_registry,
    node_type,
)

# Side-effect: each module registers its node types via @node_type
from . import variable_nodes, math_nodes, string_nodes, table_nodes, flow_nodes  # noqa: F401,E402

__all__ = [
    "ALL_GRAPH_TYPES",
    "COMMON_FIELDS",
    "FieldSpec",
    "FieldValidationError",
    "NodeDefinition",
    "NodeRegistry",
    "default_registry",
    "node_type",
]
