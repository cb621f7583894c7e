"""
GraphStore: owns every program unit of a project.

Graphs are addressed by a namespaced key:

    <fileType>/<fileName>    plain script files   (client/main)
    func:<name>              callable functions    (func:onTick)
    event:<name>             event handlers        (event:playerJoined)

Every operation that changes state sets the unsaved-changes flag, and
deleteFile and deleteGraph set it even when there was nothing to delete; queries
never touch it. Other operations on a missing graph or an out-of-range index
are logged no-ops, never exceptions. Node field values must match the
node type schema before the store accepts them.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from .Node import NodeInstance
from .Notifications import NotificationCenter
from .Types import EVENT_SCOPES, FILE_SCOPES, GraphKind, Scope
from ..noderegistry import default_registry
from ..noderegistry.NodeRegistry import NodeDefinition, NodeRegistry

if TYPE_CHECKING:
    from ..serializers.project_serializer import DecodeResult

logger = getLogger(__name__)

FUNC_PREFIX = "func:"
EVENT_PREFIX = "event:"

ScopeLike = Union[Scope, str]


def function_key(name: str) -> str:
    return f"{FUNC_PREFIX}{name}"


def event_key(name: str) -> str:
    return f"{EVENT_PREFIX}{name}"


def graph_kind_for_key(key: str) -> GraphKind:
    if key.startswith(FUNC_PREFIX):
        return GraphKind.FUNCTION
    if key.startswith(EVENT_PREFIX):
        return GraphKind.EVENT
    return GraphKind.FILE


def to_scope(value: ScopeLike) -> Scope:
    if isinstance(value, Scope):
        return value
    try:
        return Scope(str(value).lower())
    except ValueError:
        raise ValueError(f"Unknown scope '{value}'; expected one of "
                         f"{', '.join(s.value for s in Scope)}") from None


@dataclass(frozen=True)
class AppFile:
    """A declared script file; drives which plain-file graphs exist."""
    name: str
    type: Scope

    def __post_init__(self):
        object.__setattr__(self, "type", to_scope(self.type))
        if self.type not in FILE_SCOPES:
            raise ValueError(f"File '{self.name}' must be client or server, not {self.type.value}")

    @property
    def key(self) -> str:
        return f"{self.type.value}/{self.name}"

    def matches(self, other: 'AppFile') -> bool:
        return self.type == other.type and self.name.lower() == other.name.lower()

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type.value}


@dataclass
class Graph:
    key: str
    kind: GraphKind
    nodes: List[NodeInstance] = field(default_factory=list)
    parameters: Optional[List[str]] = None
    argument_names: Optional[List[str]] = None
    scope: Optional[Scope] = None

    def copy(self) -> 'Graph':
        return Graph(
            key=self.key,
            kind=self.kind,
            nodes=[NodeInstance(n.type_id, copy.deepcopy(n.fields), n.runtime_id) for n in self.nodes],
            parameters=list(self.parameters) if self.parameters is not None else None,
            argument_names=list(self.argument_names) if self.argument_names is not None else None,
            scope=self.scope,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "key": self.key,
            "kind": self.kind.value,
            "nodes": [
                {"runtimeId": n.runtime_id, "id": n.type_id, **copy.deepcopy(n.fields)}
                for n in self.nodes
            ],
        }
        if self.parameters is not None:
            result["parameters"] = list(self.parameters)
        if self.argument_names is not None:
            result["argumentNames"] = list(self.argument_names)
        if self.scope is not None:
            result["scope"] = self.scope.value
        return result


@dataclass(frozen=True)
class ProjectSnapshot:
    """Read-only copy of the store handed to the code generator."""
    graphs: Dict[str, Graph]
    files: List[AppFile]


class GraphStore:
    def __init__(self,
                 registry: Optional[NodeRegistry] = None,
                 notifications: Optional[NotificationCenter] = None):
        self.registry = registry if registry is not None else default_registry
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self._graphs: Dict[str, Graph] = {}
        self._files: List[AppFile] = []
        self._is_dirty = False
        self._dirty_listeners: List[Callable[[bool], None]] = []

    # ── Unsaved-changes flag ────────────────────────────────────────────────

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    def on_dirty_changed(self, callback: Callable[[bool], None]) -> None:
        self._dirty_listeners.append(callback)

    def _set_dirty(self, value: bool, reason: str) -> None:
        logger.debug("GraphStore: %s dirty flag (%s)", "Setting" if value else "Clearing", reason)
        changed = self._is_dirty != value
        self._is_dirty = value
        if changed:
            for cb in self._dirty_listeners:
                cb(value)

    def clearDirtyFlag(self) -> None:
        self._set_dirty(False, "clearDirtyFlag")

    # ── Read access ─────────────────────────────────────────────────────────

    @property
    def graphs(self) -> Dict[str, Graph]:
        return dict(self._graphs)

    @property
    def files(self) -> List[AppFile]:
        return list(self._files)

    def getGraph(self, key: str) -> Optional[Graph]:
        return self._graphs.get(key)

    def getFunctionNames(self) -> List[str]:
        return [k[len(FUNC_PREFIX):] for k in self._graphs if k.startswith(FUNC_PREFIX)]

    def getEventNames(self) -> List[str]:
        return [k[len(EVENT_PREFIX):] for k in self._graphs if k.startswith(EVENT_PREFIX)]

    def getAllFileKeys(self) -> List[str]:
        return [k for k in self._graphs
                if not k.startswith(FUNC_PREFIX) and not k.startswith(EVENT_PREFIX)]

    def snapshot(self) -> ProjectSnapshot:
        return ProjectSnapshot(
            graphs={key: graph.copy() for key, graph in self._graphs.items()},
            files=list(self._files),
        )

    # ── File / function / event graphs ──────────────────────────────────────

    def addFile(self, file: AppFile) -> bool:
        if not file.name.strip():
            logger.warning("addFile: refusing empty file name")
            return False
        key = file.key
        if key in self._graphs or any(f.matches(file) for f in self._files):
            self.notifications.warn(
                "File Exists", f'File "{file.name}.lua" ({file.type.value}) already exists.')
            return False

        self._graphs[key] = Graph(key, GraphKind.FILE, scope=file.type)
        self._files.append(file)
        self._set_dirty(True, "addFile")
        return True

    def deleteFile(self, file: AppFile) -> bool:
        removed_graph = self._graphs.pop(file.key, None) is not None
        remaining = [f for f in self._files if not (f.name == file.name and f.type == file.type)]
        removed_file = len(remaining) != len(self._files)
        self._files = remaining
        self._set_dirty(True, "deleteFile")
        return removed_graph or removed_file

    def addFunctionGraph(self,
                         name: str,
                         scope: ScopeLike,
                         parameters: Optional[Sequence[str]] = None) -> bool:
        scope = to_scope(scope)
        key = function_key(name)
        if not name or key in self._graphs:
            return False
        self._graphs[key] = Graph(key, GraphKind.FUNCTION,
                                  parameters=list(parameters or []), scope=scope)
        self._set_dirty(True, "addFunctionGraph")
        return True

    def addEventGraph(self,
                      name: str,
                      scope: ScopeLike,
                      argument_names: Optional[Sequence[str]] = None) -> bool:
        scope = _event_scope(scope)
        key = event_key(name)
        if not name or key in self._graphs:
            return False
        self._graphs[key] = Graph(key, GraphKind.EVENT,
                                  argument_names=list(argument_names or []), scope=scope)
        self._set_dirty(True, "addEventGraph")
        return True

    def deleteGraph(self, key: str) -> bool:
        graph = self._graphs.pop(key, None)
        if graph is not None and graph.kind == GraphKind.FILE:
            # keep the file list paired with the graph map
            self._files = [f for f in self._files if f.key != key]
        self._set_dirty(True, "deleteGraph")
        return graph is not None

    def updateFunctionSettings(self, key: str, parameters: Sequence[str], scope: ScopeLike) -> bool:
        scope = to_scope(scope)
        graph = self._graphs.get(key)
        if graph is None or graph.kind != GraphKind.FUNCTION:
            logger.warning("Function graph not found for key: %s in updateFunctionSettings", key)
            return False
        graph.parameters = list(parameters)
        graph.scope = scope
        self._set_dirty(True, "updateFunctionSettings")
        return True

    def updateEventSettings(self, key: str, argument_names: Sequence[str], scope: ScopeLike) -> bool:
        scope = _event_scope(scope)
        graph = self._graphs.get(key)
        if graph is None or graph.kind != GraphKind.EVENT:
            logger.warning("Event graph not found for key: %s in updateEventSettings", key)
            return False
        graph.argument_names = list(argument_names)
        graph.scope = scope
        self._set_dirty(True, "updateEventSettings")
        return True

    # ── Nodes ───────────────────────────────────────────────────────────────

    def addNodeToGraph(self, key: str, template: NodeInstance) -> Optional[NodeInstance]:
        graph = self._graphs.get(key)
        if graph is None:
            logger.warning("Graph not found for key: %s in addNodeToGraph", key)
            return None
        definition = self.registry.lookup(template.type_id)
        if definition is None:
            logger.warning("Unknown node type '%s' in addNodeToGraph", template.type_id)
            return None
        if not definition.allows(graph.kind):
            logger.warning("Node type '%s' is not allowed in %s graphs (%s)",
                           template.type_id, graph.kind.value, key)
            return None

        reasons = _field_errors(definition, template)
        if reasons:
            logger.warning("Refusing %s node in %s: %s", template.type_id, key, "; ".join(reasons))
            return None

        instance = template.clone()
        # fill in schema fields the template does not carry
        for name, value in definition.defaults().items():
            instance.fields.setdefault(name, value)
        graph.nodes.append(instance)
        self._set_dirty(True, "addNodeToGraph")
        return instance

    def reorderNodes(self, key: str, from_index: int, to_index: int) -> bool:
        graph = self._graphs.get(key)
        if graph is None:
            return False
        if not (0 <= from_index < len(graph.nodes) and 0 <= to_index < len(graph.nodes)):
            logger.warning("reorderNodes: index out of range in %s (%d -> %d)", key, from_index, to_index)
            return False
        moved = graph.nodes.pop(from_index)
        graph.nodes.insert(to_index, moved)
        self._set_dirty(True, "reorderNodes")
        return True

    def updateNode(self, key: str, index: int, updated: NodeInstance) -> bool:
        graph = self._graphs.get(key)
        if graph is None or not 0 <= index < len(graph.nodes):
            return False
        definition = self.registry.lookup(updated.type_id)
        reasons = _field_errors(definition, updated) if definition is not None else []
        if reasons:
            logger.warning("Refusing update of node %d in %s: %s", index, key, "; ".join(reasons))
            return False
        graph.nodes[index] = updated
        self._set_dirty(True, "updateNode")
        return True

    def deleteNodeFromGraph(self, key: str, index: int) -> Optional[NodeInstance]:
        graph = self._graphs.get(key)
        if graph is None or not 0 <= index < len(graph.nodes):
            return None
        removed = graph.nodes.pop(index)
        self.notifications.warn("Node Deleted", f'Node "{removed.get("label") or "Node"}" removed.')
        self._set_dirty(True, "deleteNodeFromGraph")
        return removed

    # ── Whole-project replacement ───────────────────────────────────────────

    def replaceState(self, graphs: Dict[str, Graph], files: Sequence[AppFile]) -> None:
        """Swap in a decoded project in one step and clear the unsaved flag."""
        self._graphs = dict(graphs)
        self._files = list(files)
        self._set_dirty(False, "loadProject")

    def loadProject(self, payload: Union[bytes, str, Dict[str, Any]]) -> 'DecodeResult':
        from ..serializers.project_serializer import load_project
        return load_project(self, payload)


def _event_scope(value: ScopeLike) -> Scope:
    scope = to_scope(value)
    if scope not in EVENT_SCOPES:
        raise ValueError(f"Event graphs must be client or server, not {scope.value}")
    return scope


def _field_errors(definition: NodeDefinition, node: NodeInstance) -> List[str]:
    """Schema mismatches among the fields that would be persisted."""
    allowed = definition.allowed_fields()
    reasons = []
    for name, value in node.fields.items():
        if name not in allowed:
            continue
        reason = definition.check_field(name, value)
        if reason:
            reasons.append(reason)
    return reasons
