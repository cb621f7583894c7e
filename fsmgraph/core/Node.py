from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Optional


def new_runtime_id() -> str:
    """Process-unique identity for one placed node. Never persisted."""
    return uuid.uuid4().hex


class NodeInstance:
    """
    One placement of a node type inside a graph.

    Only the type id and the data fields live here. Category, allowed graph
    kinds and the simulation behaviour are resolved through the node registry
    each time they are needed, so an updated definition applies to nodes that
    were saved with an older version.
    """

    def __init__(self,
                 type_id: str,
                 fields: Optional[Dict[str, Any]] = None,
                 runtime_id: Optional[str] = None):
        self.type_id = type_id
        self.runtime_id = runtime_id if runtime_id is not None else new_runtime_id()
        self.fields: Dict[str, Any] = fields if fields is not None else {}

    @property
    def label(self) -> str:
        return self.fields.get("label") or self.type_id

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def clone(self) -> 'NodeInstance':
        """Deep copy of the field values under a fresh runtime identity."""
        return NodeInstance(self.type_id, copy.deepcopy(self.fields))

    def __repr__(self):
        return f"NodeInstance({self.type_id}, {self.runtime_id})"
