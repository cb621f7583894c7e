"""
fsmgraph: ordered node graphs for Lua script projects.

    from fsmgraph import GraphStore, Executor, default_registry

    store = GraphStore()
    store.addFunctionGraph("onTick", "server", [])
    store.addNodeToGraph("func:onTick", default_registry.create_instance("print", message="tick"))
    report = Executor(store).run_key("func:onTick")
"""
from .core.Types import GraphKind, Scope, ValueType
from .core.Node import NodeInstance
from .core.Executor import ExecutionContext, ExecutionResult, Executor, SimulationReport
from .core.GraphStore import AppFile, Graph, GraphStore, ProjectSnapshot
from .core.Notifications import NotificationCenter
from .noderegistry import FieldSpec, NodeDefinition, NodeRegistry, default_registry, node_type
from .serializers import (
    decode_project,
    default_filename,
    dumps_project,
    encode_project,
    load_project,
    save_project,
)

__all__ = [
    "AppFile",
    "ExecutionContext",
    "ExecutionResult",
    "Executor",
    "FieldSpec",
    "Graph",
    "GraphKind",
    "GraphStore",
    "NodeDefinition",
    "NodeInstance",
    "NodeRegistry",
    "NotificationCenter",
    "ProjectSnapshot",
    "Scope",
    "SimulationReport",
    "ValueType",
    "decode_project",
    "default_filename",
    "dumps_project",
    "encode_project",
    "load_project",
    "save_project",
    "default_registry",
    "node_type",
]
