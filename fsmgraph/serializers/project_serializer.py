"""
Project serializer: GraphStore state to and from the Project Document.

Encode keeps only the fields each node type declares (plus `label` and
`description`) and never fails as a whole: a field that cannot be turned
into JSON is dropped with a diagnostic. Decode rebuilds every node from
the registry definition, overlays the persisted data fields and assigns a
fresh runtime id. Node types that no longer exist are dropped with a
warning, as are malformed file entries, graph records and node records; a document
missing one of its three top-level sections is rejected before the store
is touched.
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..config import get_settings
from ..core.GraphStore import (
    AppFile,
    Graph,
    GraphStore,
    graph_kind_for_key,
    to_scope,
)
from ..core.Node import NodeInstance
from ..core.Types import EVENT_SCOPES, FILE_SCOPES, GraphKind, Scope
from ..noderegistry.NodeRegistry import COMMON_FIELDS, NodeRegistry
from .schema import REQUIRED_SECTIONS, FileRecord, GraphRecord, ProjectDocument

logger = getLogger(__name__)

Payload = Union[bytes, str, Mapping[str, Any]]


@dataclass(frozen=True)
class Diagnostic:
    """One non-fatal problem found while encoding or decoding."""
    message: str
    graph_key: Optional[str] = None
    type_id: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "graphKey": self.graph_key,
            "typeId": self.type_id,
            "field": self.field,
        }

    def __str__(self):
        return self.message


@dataclass
class EncodeResult:
    document: Dict[str, Any]
    warnings: List[Diagnostic] = field(default_factory=list)


@dataclass
class SaveResult:
    data: bytes
    filename: str
    warnings: List[Diagnostic] = field(default_factory=list)


@dataclass
class DecodeResult:
    success: bool
    message: Optional[str] = None
    graphs: Dict[str, Graph] = field(default_factory=dict)
    files: List[AppFile] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> 'DecodeResult':
        return cls(success=False, message=message)


# ── Encode ────────────────────────────────────────────────────────────────────

def _json_copy(value: Any) -> Any:
    # a JSON round trip is both the deep copy and the representability check
    return json.loads(json.dumps(value, allow_nan=False))


def _encode_node(node: NodeInstance, registry: NodeRegistry, key: str,
                 warnings: List[Diagnostic]) -> Dict[str, Any]:
    definition = registry.lookup(node.type_id)
    if definition is None:
        allowed = COMMON_FIELDS
        warnings.append(Diagnostic(
            f'Node type "{node.type_id}" in {key} is not registered; only its label was saved.',
            graph_key=key, type_id=node.type_id))
    else:
        allowed = definition.allowed_fields()

    record: Dict[str, Any] = {"id": node.type_id}
    for name, value in node.fields.items():
        if name not in allowed:
            continue
        try:
            record[name] = _json_copy(value)
        except (TypeError, ValueError) as exc:
            logger.warning("Dropping field %s of %s node in %s: %s", name, node.type_id, key, exc)
            warnings.append(Diagnostic(
                f'Field "{name}" of node "{node.label}" in {key} could not be saved: {exc}',
                graph_key=key, type_id=node.type_id, field=name))
    return record


def _encode_graph(graph: Graph, registry: NodeRegistry, warnings: List[Diagnostic]) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "nodes": [_encode_node(n, registry, graph.key, warnings) for n in graph.nodes],
    }
    if graph.parameters is not None:
        record["parameters"] = list(graph.parameters)
    if graph.argument_names is not None:
        record["argumentNames"] = list(graph.argument_names)
    if graph.scope is not None:
        record["scope"] = graph.scope.value
    return record


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_project(store: GraphStore) -> EncodeResult:
    settings = get_settings()
    warnings: List[Diagnostic] = []
    document = {
        "projectMetadata": {
            "savedAt": _iso_now(),
            "appName": settings.app_name,
            "appVersion": settings.app_version,
        },
        "files": [f.to_dict() for f in store.files],
        "graphs": {
            key: _encode_graph(graph, store.registry, warnings)
            for key, graph in store.graphs.items()
        },
    }
    return EncodeResult(document, warnings)


def dumps_project(store: GraphStore) -> bytes:
    result = encode_project(store)
    for warning in result.warnings:
        logger.warning("Save: %s", warning)
    return json.dumps(result.document, indent=2, ensure_ascii=False).encode("utf-8")


def default_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"0xfsm-project-{stamp.replace(':', '-').replace('.', '-')}.fsm.json"


def save_project(store: GraphStore) -> SaveResult:
    """Encode the store to bytes and mark it saved."""
    result = encode_project(store)
    data = json.dumps(result.document, indent=2, ensure_ascii=False).encode("utf-8")
    for warning in result.warnings:
        store.notifications.warn("Save Warning", warning.message)
    store.clearDirtyFlag()
    store.notifications.notify("Project Saved", "Project saved successfully.", "info")
    return SaveResult(data, default_filename(), result.warnings)


# ── Decode ────────────────────────────────────────────────────────────────────

def _decode_node(raw: Any, index: int, key: str, registry: NodeRegistry,
                 warnings: List[Diagnostic]) -> Optional[NodeInstance]:
    if not isinstance(raw, Mapping):
        logger.warning("Malformed node record %d in %s: %r", index, key, raw)
        warnings.append(Diagnostic(
            f"Node {index + 1} in {key} is not a node record and was removed.", graph_key=key))
        return None
    type_id = raw.get("id")
    label = raw.get("label") or "N/A"
    definition = registry.lookup(type_id) if isinstance(type_id, str) else None
    if definition is None:
        logger.warning("Could not find node definition for id %r in %s; skipping node %d",
                       type_id, key, index)
        warnings.append(Diagnostic(
            f'Node type "{type_id}" (label: {label}) is no longer available and was '
            f'removed from {key}.',
            graph_key=key, type_id=type_id if isinstance(type_id, str) else None))
        return None

    values = definition.defaults()
    allowed = definition.allowed_fields()
    for name, value in raw.items():
        if name == "id" or name not in allowed:
            continue
        reason = definition.check_field(name, value)
        if reason:
            warnings.append(Diagnostic(
                f"Ignored saved value in {key}: {reason}",
                graph_key=key, type_id=type_id, field=name))
            continue
        values[name] = copy.deepcopy(value)
    # the persisted record never supplies the identity
    return NodeInstance(definition.type_id, values)


def _decode_scope(key: str, kind: GraphKind, raw: Optional[str],
                  warnings: List[Diagnostic]) -> Optional[Scope]:
    if raw is None:
        return None
    try:
        scope = to_scope(raw)
    except ValueError as exc:
        warnings.append(Diagnostic(f"Ignored scope of {key}: {exc}", graph_key=key))
        return None
    allowed = FILE_SCOPES if kind == GraphKind.FILE else EVENT_SCOPES
    if kind != GraphKind.FUNCTION and scope not in allowed:
        warnings.append(Diagnostic(
            f"Ignored scope of {key}: {kind.value} graphs must be client or server", graph_key=key))
        return None
    return scope


def _decode_graph(key: str, record: GraphRecord, registry: NodeRegistry,
                  warnings: List[Diagnostic]) -> Graph:
    kind = graph_kind_for_key(key)
    nodes = []
    for index, raw in enumerate(record.nodes):
        node = _decode_node(raw, index, key, registry, warnings)
        if node is not None:
            nodes.append(node)
    return Graph(
        key=key,
        kind=kind,
        nodes=nodes,
        parameters=list(record.parameters or []) if kind == GraphKind.FUNCTION else None,
        argument_names=list(record.argumentNames or []) if kind == GraphKind.EVENT else None,
        scope=_decode_scope(key, kind, record.scope, warnings),
    )


def _file_for_key(key: str) -> Optional[AppFile]:
    prefix, _, name = key.partition("/")
    if not name:
        return None
    try:
        return AppFile(name, prefix)
    except ValueError:
        return None


def decode_project(data: Any, registry: NodeRegistry) -> DecodeResult:
    """
    Rebuild graphs and file declarations from a parsed Project Document.

    Does not touch any store; `load_project` applies the result.
    """
    if not isinstance(data, Mapping):
        return DecodeResult.failure("Invalid project file structure: expected a JSON object.")
    missing = [section for section in REQUIRED_SECTIONS if data.get(section) is None]
    if missing:
        return DecodeResult.failure(
            f"Invalid project file structure: missing {', '.join(missing)}.")
    try:
        document = ProjectDocument.model_validate(data)
    except ValidationError as exc:
        return DecodeResult.failure(f"Invalid project file structure: {exc}")

    warnings: List[Diagnostic] = []

    files: List[AppFile] = []
    for index, raw in enumerate(document.files):
        try:
            record = FileRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed file entry %d: %s", index, exc)
            warnings.append(Diagnostic(f"File entry {index + 1} is malformed and was ignored: {raw!r}"))
            continue
        declared = AppFile(record.name, record.type)
        if any(f.matches(declared) for f in files):
            warnings.append(Diagnostic(f"Duplicate file declaration {declared.key} ignored.",
                                       graph_key=declared.key))
            continue
        files.append(declared)

    graphs: Dict[str, Graph] = {}
    for key, raw in document.graphs.items():
        if raw is None:
            continue
        try:
            record = GraphRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed graph record %s: %s", key, exc)
            warnings.append(Diagnostic(f"Graph {key} is malformed and was dropped.", graph_key=key))
            continue
        graph = _decode_graph(key, record, registry, warnings)
        if graph.kind == GraphKind.FILE and not any(f.key == key for f in files):
            declared = _file_for_key(key)
            if declared is None:
                warnings.append(Diagnostic(
                    f"Graph {key} has no matching file declaration and was dropped.", graph_key=key))
                continue
            warnings.append(Diagnostic(
                f"Graph {key} had no file declaration; one was added.", graph_key=key))
            files.append(declared)
        if graph.kind == GraphKind.FILE and graph.scope is None:
            graph.scope = to_scope(key.split("/", 1)[0])
        graphs[key] = graph

    for declared in files:
        if declared.key not in graphs:
            warnings.append(Diagnostic(
                f"File {declared.key} had no saved graph; an empty one was created.",
                graph_key=declared.key))
            graphs[declared.key] = Graph(declared.key, GraphKind.FILE, scope=declared.type)

    return DecodeResult(success=True, graphs=graphs, files=files, warnings=warnings)


def _parse(payload: Payload) -> Any:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if isinstance(payload, str):
        return json.loads(payload)
    return payload


def load_project(store: GraphStore, payload: Payload) -> DecodeResult:
    """
    Decode `payload` and, on success, replace the store's state in one step.

    On failure the store (including its unsaved flag) is left untouched.
    """
    try:
        data = _parse(payload)
    except UnicodeDecodeError as exc:
        result = DecodeResult.failure(f"Project file is not valid UTF-8: {exc}")
    except json.JSONDecodeError as exc:
        result = DecodeResult.failure(f"Project file is not valid JSON: {exc}")
    else:
        result = decode_project(data, store.registry)

    if not result.success:
        logger.error("Error loading project: %s", result.message)
        store.notifications.notify("Load Error", result.message or "Failed to load project.", "error")
        return result

    store.replaceState(result.graphs, result.files)
    for warning in result.warnings:
        store.notifications.warn("Load Warning", warning.message)
    logger.info("Loaded project: %d graphs, %d files, %d warnings",
                len(result.graphs), len(result.files), len(result.warnings))
    store.notifications.notify("Project Loaded",
                               f"Loaded {len(result.graphs)} graphs and {len(result.files)} files.",
                               "success")
    return result
