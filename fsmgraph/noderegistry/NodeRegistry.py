from __future__ import annotations

import copy
from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, TYPE_CHECKING

from ..core.Node import NodeInstance
from ..core.Types import GraphKind, ValueType

if TYPE_CHECKING:
    from ..core.Executor import ExecutionContext, ExecutionResult

logger = getLogger(__name__)

# Signature of a simulation behaviour: reads the node's own field values and
# the environment, may mutate the environment, reports an outcome.
Behavior = Callable[[Mapping[str, Any], 'ExecutionContext'], 'ExecutionResult']

ALL_GRAPH_TYPES: FrozenSet[GraphKind] = frozenset(GraphKind)

# Presentation fields every node type persists alongside its own schema
COMMON_FIELDS: FrozenSet[str] = frozenset({"label", "description"})


class FieldValidationError(ValueError):
    """Raised when a node's field values do not match its definition."""


@dataclass(frozen=True)
class FieldSpec:
    value_type: ValueType = ValueType.ANY
    default: Any = None

    def accepts(self, value: Any) -> bool:
        return ValueType.validate(value, self.value_type)


@dataclass(frozen=True)
class NodeDefinition:
    """
    Immutable catalogue entry for one node type.

    `fields` is the concrete shape of the data a placed node carries; it is
    also the allow-list the project serializer persists for this type.
    """
    type_id: str
    label: str
    execute: Behavior
    description: str = ""
    category: str = "General"
    allowed_graph_types: FrozenSet[GraphKind] = ALL_GRAPH_TYPES
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)

    def __post_init__(self):
        # schema is read-only after registration
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(self, "allowed_graph_types", frozenset(self.allowed_graph_types))

    def allowed_fields(self) -> FrozenSet[str]:
        return COMMON_FIELDS | frozenset(self.fields.keys())

    def allows(self, kind: GraphKind) -> bool:
        return kind in self.allowed_graph_types

    def defaults(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {"label": self.label, "description": self.description}
        for name, spec in self.fields.items():
            values[name] = copy.deepcopy(spec.default)
        return values

    def check_field(self, name: str, value: Any) -> Optional[str]:
        """Return a reason string when `value` does not fit field `name`."""
        if name in COMMON_FIELDS:
            if value is not None and not isinstance(value, str):
                return f"field '{name}' must be a string"
            return None
        spec = self.fields.get(name)
        if spec is None:
            return f"node type '{self.type_id}' has no field '{name}'"
        if not spec.accepts(value):
            return (f"field '{name}' of node type '{self.type_id}' expects "
                    f"{spec.value_type.value}, got {type(value).__name__}")
        return None

    def create_instance(self, **overrides: Any) -> NodeInstance:
        """Build a template instance: defaults overlaid with validated overrides."""
        values = self.defaults()
        for name, value in overrides.items():
            reason = self.check_field(name, value)
            if reason:
                raise FieldValidationError(reason)
            values[name] = copy.deepcopy(value)
        return NodeInstance(self.type_id, values)


class NodeRegistry:
    def __init__(self, definitions: Iterable[NodeDefinition] = ()):
        self._definitions: Dict[str, NodeDefinition] = {}
        self._frozen = False
        for definition in definitions:
            self.register(definition)

    def register(self, definition: NodeDefinition) -> NodeDefinition:
        if self._frozen:
            raise RuntimeError("Node registry is frozen; register node types at start-up")
        if definition.type_id in self._definitions:
            raise ValueError(f"Node type '{definition.type_id}' is already registered.")
        self._definitions[definition.type_id] = definition
        logger.debug("Registered node type %s", definition.type_id)
        return definition

    def freeze(self) -> 'NodeRegistry':
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, type_id: str) -> Optional[NodeDefinition]:
        return self._definitions.get(type_id)

    def definitions(self) -> List[NodeDefinition]:
        return list(self._definitions.values())

    def for_graph_kind(self, kind: GraphKind) -> List[NodeDefinition]:
        return [d for d in self._definitions.values() if d.allows(kind)]

    def create_instance(self, type_id: str, **overrides: Any) -> NodeInstance:
        definition = self.lookup(type_id)
        if definition is None:
            raise ValueError(f"Unknown node type '{type_id}'")
        return definition.create_instance(**overrides)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


default_registry = NodeRegistry()


def node_type(type_id: str,
              label: str,
              description: str = "",
              category: str = "General",
              allowed_graph_types: Iterable[GraphKind] = ALL_GRAPH_TYPES,
              fields: Optional[Mapping[str, FieldSpec]] = None,
              registry: Optional[NodeRegistry] = None) -> Callable[[Behavior], Behavior]:
    """Decorator registering a simulation behaviour as a node type."""
    target = registry if registry is not None else default_registry

    def decorator(execute: Behavior) -> Behavior:
        target.register(NodeDefinition(
            type_id=type_id,
            label=label,
            description=description,
            category=category,
            allowed_graph_types=frozenset(allowed_graph_types),
            fields=fields or {},
            execute=execute,
        ))
        return execute
    return decorator
