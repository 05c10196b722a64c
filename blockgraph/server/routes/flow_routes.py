"""
Flow REST routes.

All routes are mounted under /api by main.py.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from ...compiler.suggestions import bind_call_target, mapping_candidates
from ...core.Errors import (
    ContainmentError,
    GraphError,
    InvalidReferenceError,
    MalformedDocumentError,
    ProtectedNodeError,
    PropertyValidationError,
    RemoteServiceError,
)
from ...core.GraphPrimitives import FlowEdge, FlowNode
from ..state import EditorSession, get_session

router = APIRouter()


def _http_error(exc: GraphError) -> HTTPException:
    if isinstance(exc, InvalidReferenceError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ProtectedNodeError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, RemoteServiceError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, (MalformedDocumentError, PropertyValidationError, ContainmentError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _node_dict(session: EditorSession, node: FlowNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "pluginId": node.plugin_id,
        "label": node.label,
        "position": node.position.to_dict(),
        "absolutePosition": session.store.absolute_position(node.id).to_dict(),
        "parentNode": node.parent_id,
        "data": node.properties,
        "protected": session.store.is_protected(node.id),
        "container": session.store.is_container(node.id),
    }


def _edge_dict(edge: FlowEdge) -> Dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "data": {
            "connectionType": edge.connection_type.value,
            "variableMapping": edge.variable_mapping,
        },
    }


# ── GET /plugins ──────────────────────────────────────────────────────────────

@router.get("/plugins")
async def list_plugins(session: EditorSession = Depends(get_session)) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in session.registry.all()]


# ── GET /flow ─────────────────────────────────────────────────────────────────

@router.get("/flow")
async def get_flow(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    selected_node, selected_edge = session.store.selection
    return {
        "name": session.flow_name,
        "nodes": [_node_dict(session, n) for n in session.store.nodes],
        "edges": [_edge_dict(e) for e in session.store.edges],
        "selection": {"nodeId": selected_node, "edgeId": selected_edge},
    }


@router.get("/flow/ir")
async def get_flow_ir(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return session.compile_ir().to_dict()


# ── Nodes ─────────────────────────────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


class CreateNodeBody(BaseModel):
    pluginId: str
    position: Optional[PositionBody] = None
    data: Optional[Dict[str, Any]] = None
    label: Optional[str] = None


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        if body.position:
            # A block dropped onto a container belongs to it.
            node_id = session.store.drop_node(body.pluginId, body.position.model_dump(), body.data, body.label)
        else:
            node_id = session.store.create_node(body.pluginId, None, body.data, label=body.label)
        return _node_dict(session, session.store.get_node(node_id))
    except GraphError as exc:
        raise _http_error(exc)


@router.delete("/nodes/{node_id}", status_code=204)
async def delete_node(node_id: str, session: EditorSession = Depends(get_session)) -> Response:
    try:
        session.store.require_node(node_id)
    except GraphError as exc:
        raise _http_error(exc)
    if not session.delete_node(node_id):
        raise HTTPException(status_code=409, detail=f"Node '{node_id}' is protected")
    return Response(status_code=204)


@router.patch("/nodes/{node_id}")
async def update_node(
    node_id: str, body: Dict[str, Any], session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        session.store.update_node_properties(node_id, body)
        return _node_dict(session, session.store.get_node(node_id))
    except GraphError as exc:
        raise _http_error(exc)


@router.put("/nodes/{node_id}/position")
async def move_node(
    node_id: str, body: PositionBody, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        session.store.move_node(node_id, body.model_dump())
        return _node_dict(session, session.store.get_node(node_id))
    except GraphError as exc:
        raise _http_error(exc)


class ParentBody(BaseModel):
    parentId: Optional[str] = None
    position: Optional[PositionBody] = None


@router.put("/nodes/{node_id}/parent")
async def reparent_node(
    node_id: str, body: ParentBody, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        session.store.reparent(
            node_id,
            body.parentId,
            body.position.model_dump() if body.position else None,
        )
        return _node_dict(session, session.store.get_node(node_id))
    except GraphError as exc:
        raise _http_error(exc)


class CallTargetBody(BaseModel):
    function: str


@router.post("/nodes/{node_id}/call-target")
async def set_call_target(
    node_id: str, body: CallTargetBody, session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        bind_call_target(session.store, node_id, body.function)
        return _node_dict(session, session.store.get_node(node_id))
    except GraphError as exc:
        raise _http_error(exc)


# ── Edges ─────────────────────────────────────────────────────────────────────

class CreateEdgeBody(BaseModel):
    source: str
    target: str
    data: Optional[Dict[str, Any]] = None


@router.post("/edges", status_code=201)
async def create_edge(body: CreateEdgeBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        edge_id = session.store.create_edge(body.source, body.target, body.data)
        return _edge_dict(session.store.get_edge(edge_id))
    except GraphError as exc:
        raise _http_error(exc)


@router.delete("/edges/{edge_id}", status_code=204)
async def delete_edge(edge_id: str, session: EditorSession = Depends(get_session)) -> Response:
    try:
        session.store.delete_edge(edge_id)
        return Response(status_code=204)
    except GraphError as exc:
        raise _http_error(exc)


@router.patch("/edges/{edge_id}")
async def update_edge(
    edge_id: str, body: Dict[str, Any], session: EditorSession = Depends(get_session)
) -> Dict[str, Any]:
    try:
        session.store.update_edge_data(edge_id, body)
        return _edge_dict(session.store.get_edge(edge_id))
    except GraphError as exc:
        raise _http_error(exc)


@router.get("/edges/{edge_id}/suggestions")
async def edge_suggestions(edge_id: str, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        return mapping_candidates(session.store, edge_id)
    except GraphError as exc:
        raise _http_error(exc)


# ── Selection ─────────────────────────────────────────────────────────────────

class SelectionBody(BaseModel):
    nodeId: Optional[str] = None
    edgeId: Optional[str] = None


@router.put("/selection", status_code=204)
async def set_selection(body: SelectionBody, session: EditorSession = Depends(get_session)) -> Response:
    try:
        if body.nodeId:
            session.store.select_node(body.nodeId)
        elif body.edgeId:
            session.store.select_edge(body.edgeId)
        else:
            session.store.clear_selection()
        return Response(status_code=204)
    except GraphError as exc:
        raise _http_error(exc)


# ── Save / load ───────────────────────────────────────────────────────────────

class SaveBody(BaseModel):
    name: Optional[str] = None


@router.post("/flow/save")
async def save_flow(body: SaveBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    if body.name:
        session.flow_name = body.name
    return session.save()


@router.post("/flow/load")
async def load_flow(body: Dict[str, Any], session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        session.load_document(body)
    except GraphError as exc:
        raise _http_error(exc)
    return await get_flow(session)


# ── Remote service ────────────────────────────────────────────────────────────

@router.post("/flow/generate")
async def generate_code(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        code = await session.generate_code()
    except GraphError as exc:
        raise _http_error(exc)
    return {"code": code, "filename": f"{session.flow_name}.rs"}


@router.post("/flow/run")
async def run_flow(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    result = await session.run()
    return {
        "result": result.to_dict() if result else None,
        "terminal": list(session.terminal),
    }


# ── Logs ──────────────────────────────────────────────────────────────────────

@router.get("/logs")
async def get_logs(session: EditorSession = Depends(get_session)) -> Dict[str, List[str]]:
    return {"logs": list(session.logs), "terminal": list(session.terminal)}


@router.delete("/logs", status_code=204)
async def clear_logs(session: EditorSession = Depends(get_session)) -> Response:
    session.clear_logs()
    session.clear_terminal()
    return Response(status_code=204)
