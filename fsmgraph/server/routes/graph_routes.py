"""
Project REST routes. Mounted under /api by main.py.

Graph keys contain "/" (client/main), so they travel as the `key` query
parameter rather than as a path segment.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Response
from pydantic import BaseModel, Field

from ...core.GraphStore import AppFile, GraphStore
from ...core.Node import NodeInstance
from ...core.Types import GraphKind
from ...noderegistry.NodeRegistry import FieldValidationError
from ...serializers.project_serializer import load_project, save_project
from ..state import project_state

router = APIRouter()


def _store() -> GraphStore:
    return project_state.store


def _require_graph(key: str):
    graph = _store().getGraph(key)
    if graph is None:
        raise HTTPException(status_code=404, detail=f"Graph not found: {key}")
    return graph


# ── GET /project ──────────────────────────────────────────────────────────────

@router.get("/project")
async def get_project() -> Dict[str, Any]:
    store = _store()
    return {
        "files": [f.to_dict() for f in store.files],
        "fileKeys": store.getAllFileKeys(),
        "functions": store.getFunctionNames(),
        "events": store.getEventNames(),
        "isDirty": store.is_dirty,
    }


# ── GET /node-types ───────────────────────────────────────────────────────────

@router.get("/node-types")
async def list_node_types(kind: Optional[GraphKind] = Query(None)) -> List[Dict[str, Any]]:
    registry = project_state.registry
    definitions = registry.for_graph_kind(kind) if kind is not None else registry.definitions()
    return [
        {
            "id": d.type_id,
            "label": d.label,
            "description": d.description,
            "category": d.category,
            "allowedGraphTypes": sorted(k.value for k in d.allowed_graph_types),
            "defaults": d.defaults(),
        }
        for d in definitions
    ]


# ── Files ─────────────────────────────────────────────────────────────────────

class FileBody(BaseModel):
    name: str
    type: str


def _to_file(body: FileBody) -> AppFile:
    try:
        return AppFile(body.name, body.type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/files", status_code=201)
async def add_file(body: FileBody) -> Dict[str, Any]:
    file = _to_file(body)
    if not _store().addFile(file):
        raise HTTPException(status_code=409, detail=f'File "{file.name}.lua" ({file.type.value}) already exists.')
    return {"key": file.key, **file.to_dict()}


@router.delete("/files", status_code=204)
async def delete_file(name: str = Query(...), type: str = Query(...)) -> Response:
    file = _to_file(FileBody(name=name, type=type))
    _store().deleteFile(file)
    return Response(status_code=204)


# ── Functions / events ────────────────────────────────────────────────────────

class FunctionBody(BaseModel):
    name: str
    scope: str = "client"
    parameters: List[str] = Field(default_factory=list)


class EventBody(BaseModel):
    name: str
    scope: str = "client"
    argumentNames: List[str] = Field(default_factory=list)


@router.post("/functions", status_code=201)
async def add_function(body: FunctionBody) -> Dict[str, Any]:
    try:
        created = _store().addFunctionGraph(body.name, body.scope, body.parameters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not created:
        raise HTTPException(status_code=409, detail=f"Function '{body.name}' already exists")
    return {"key": f"func:{body.name}"}


@router.post("/events", status_code=201)
async def add_event(body: EventBody) -> Dict[str, Any]:
    try:
        created = _store().addEventGraph(body.name, body.scope, body.argumentNames)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not created:
        raise HTTPException(status_code=409, detail=f"Event '{body.name}' already exists")
    return {"key": f"event:{body.name}"}


class FunctionSettingsBody(BaseModel):
    scope: str
    parameters: List[str] = Field(default_factory=list)


class EventSettingsBody(BaseModel):
    scope: str
    argumentNames: List[str] = Field(default_factory=list)


@router.put("/functions/settings")
async def update_function_settings(body: FunctionSettingsBody, key: str = Query(...)) -> Dict[str, Any]:
    try:
        updated = _store().updateFunctionSettings(key, body.parameters, body.scope)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not updated:
        raise HTTPException(status_code=404, detail=f"Function graph not found: {key}")
    return _store().getGraph(key).to_dict()


@router.put("/events/settings")
async def update_event_settings(body: EventSettingsBody, key: str = Query(...)) -> Dict[str, Any]:
    try:
        updated = _store().updateEventSettings(key, body.argumentNames, body.scope)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not updated:
        raise HTTPException(status_code=404, detail=f"Event graph not found: {key}")
    return _store().getGraph(key).to_dict()


# ── Graphs ────────────────────────────────────────────────────────────────────

@router.get("/graph")
async def get_graph(key: str = Query(...)) -> Dict[str, Any]:
    return _require_graph(key).to_dict()


@router.delete("/graph", status_code=204)
async def delete_graph(key: str = Query(...)) -> Response:
    _require_graph(key)
    _store().deleteGraph(key)
    return Response(status_code=204)


# ── Nodes ─────────────────────────────────────────────────────────────────────

class NodeBody(BaseModel):
    type: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class ReorderBody(BaseModel):
    fromIndex: int
    toIndex: int


def _template(body: NodeBody) -> NodeInstance:
    try:
        return project_state.registry.create_instance(body.type, **body.fields)
    except FieldValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/graph/nodes", status_code=201)
async def add_node(body: NodeBody, key: str = Query(...)) -> Dict[str, Any]:
    graph = _require_graph(key)
    node = _store().addNodeToGraph(key, _template(body))
    if node is None:
        raise HTTPException(status_code=400,
                            detail=f"Node type '{body.type}' is not allowed in {graph.kind.value} graphs")
    return {"index": len(graph.nodes) - 1, "runtimeId": node.runtime_id, "id": node.type_id, **node.fields}


@router.put("/graph/nodes/{index}")
async def update_node(index: int, body: NodeBody, key: str = Query(...)) -> Dict[str, Any]:
    _require_graph(key)
    if not _store().updateNode(key, index, _template(body)):
        raise HTTPException(status_code=404, detail=f"No node at index {index}")
    return _store().getGraph(key).to_dict()


@router.delete("/graph/nodes/{index}")
async def delete_node(index: int, key: str = Query(...)) -> Dict[str, Any]:
    _require_graph(key)
    removed = _store().deleteNodeFromGraph(key, index)
    if removed is None:
        raise HTTPException(status_code=404, detail=f"No node at index {index}")
    return {"removed": removed.runtime_id, "label": removed.label}


@router.post("/graph/reorder")
async def reorder_nodes(body: ReorderBody, key: str = Query(...)) -> Dict[str, Any]:
    graph = _require_graph(key)
    if not _store().reorderNodes(key, body.fromIndex, body.toIndex):
        raise HTTPException(status_code=404,
                            detail=f"No node to move from {body.fromIndex} to {body.toIndex}")
    return graph.to_dict()


# ── Simulation ────────────────────────────────────────────────────────────────

class SimulateBody(BaseModel):
    variables: Dict[str, Any] = Field(default_factory=dict)


@router.post("/graph/simulate")
async def simulate_graph(body: Optional[SimulateBody] = None, key: str = Query(...)) -> Dict[str, Any]:
    graph = _require_graph(key)
    events: List[Dict[str, Any]] = []
    project_state.tracer.on_trace(events.append)
    try:
        report = project_state.executor.run(graph, body.variables if body else None)
    finally:
        project_state.tracer.remove_listener(events.append)
    return {**report.to_dict(), "trace": events}


# ── Save / load ───────────────────────────────────────────────────────────────

@router.get("/project/save")
async def save() -> Response:
    result = save_project(_store())
    return Response(
        content=result.data,
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Save-Warnings": str(len(result.warnings)),
        },
    )


@router.post("/project/load")
async def load(document: Any = Body(...)) -> Dict[str, Any]:
    result = load_project(_store(), document)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    return {
        "success": True,
        "graphs": list(result.graphs.keys()),
        "files": [f.to_dict() for f in result.files],
        "warnings": [w.to_dict() for w in result.warnings],
    }


@router.get("/notifications")
async def notifications() -> List[Dict[str, Any]]:
    return list(project_state.notifications.history)
