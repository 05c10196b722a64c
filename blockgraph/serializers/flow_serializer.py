"""
Flow serializer — GraphSnapshot ⇄ FlowDocument.

``serialize`` records every node with its stored (relative) position and
``parentNode``, every edge with its connection data, and stamps the
metadata. ``deserialize`` validates a document and rebuilds a snapshot;
pass the result to ``GraphStore.load`` to swap the open graph atomically.

    deserialize(serialize(g))  ≡  g      (timestamps aside)
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from pydantic import ValidationError

from ..core.Errors import MalformedDocumentError
from ..core.GraphPrimitives import FlowEdge, FlowNode, GraphSnapshot
from ..core.GraphStore import RESERVED_PROPERTY_KEYS, GraphStore
from ..core.Types import ConnectionType, Position
from .schema import (
    FLOW_DOCUMENT_VERSION,
    FLOW_FILE_SUFFIX,
    FlowDocument,
    FlowEdgeModel,
    FlowNodeModel,
    check_references,
    resolve_plugin_id,
)

if TYPE_CHECKING:
    from ..registry.PluginRegistry import PluginRegistry

logger = getLogger(__name__)


def now_iso() -> str:
    """UTC timestamp in the ``2025-01-01T10:00:00.000Z`` form the editor writes."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Serialize ─────────────────────────────────────────────────────────────────

def _serialize_node(node: FlowNode) -> Dict[str, Any]:
    data: Dict[str, Any] = {"label": node.label, "pluginId": node.plugin_id}
    data.update(node.properties)
    return {
        "id": node.id,
        "pluginId": node.plugin_id,
        "position": node.position.to_dict(),
        "data": data,
        "parentNode": node.parent_id,
    }


def _serialize_edge(edge: FlowEdge) -> Dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "data": {
            "connectionType": edge.connection_type.value,
            "variableMapping": dict(edge.variable_mapping),
        },
    }


def serialize(
    snapshot: GraphSnapshot,
    name: Optional[str] = None,
    created: Optional[str] = None,
    now: Optional[str] = None,
) -> FlowDocument:
    """
    Build a FlowDocument from *snapshot*.

    Args:
        snapshot: The graph to persist.
        name:     Flow name; defaults to the snapshot's name, then ``my_flow``.
        created:  Creation timestamp to keep. Defaults to the one the
                  snapshot was loaded with, else *now*.
        now:      Timestamp used for ``modified`` (current UTC time if None).
    """
    stamp = now or now_iso()
    return FlowDocument.model_validate(
        {
            "version": FLOW_DOCUMENT_VERSION,
            "metadata": {
                "name": name or snapshot.name or "my_flow",
                "created": created or snapshot.created or stamp,
                "modified": stamp,
            },
            "nodes": [_serialize_node(n) for n in snapshot.nodes],
            "edges": [_serialize_edge(e) for e in snapshot.edges],
        }
    )


# ── Deserialize ───────────────────────────────────────────────────────────────

def _deserialize_node(model: FlowNodeModel, registry: Optional["PluginRegistry"] = None) -> FlowNode:
    plugin_id = resolve_plugin_id(model)
    properties = {k: v for k, v in model.data.items() if k not in RESERVED_PROPERTY_KEYS}

    # Same coercion as GraphStore writes; unknown plugins and keys stay opaque.
    schema = registry.get(plugin_id) if registry is not None else None
    for prop in schema.properties if schema else ():
        if prop.name not in properties:
            continue
        try:
            properties[prop.name] = prop.kind.coerce(properties[prop.name])
        except ValueError as exc:
            raise MalformedDocumentError(f"node '{model.id}': {plugin_id}.{prop.name}: {exc}") from None

    label = model.data.get("label")
    return FlowNode(
        id=model.id,
        plugin_id=plugin_id,
        position=Position(model.position.x, model.position.y),
        parent_id=model.parentNode,
        properties=properties,
        label=label if isinstance(label, str) else None,
    )


def _deserialize_edge(model: FlowEdgeModel) -> FlowEdge:
    data = model.data
    raw_type = (data.connectionType if data else None) or model.connectionType
    mapping = (data.variableMapping if data else None) or model.variableMapping or {}
    connection_type = ConnectionType.parse(raw_type)
    return FlowEdge(
        id=model.id,
        source=model.source,
        target=model.target,
        connection_type=connection_type,
        variable_mapping=dict(mapping) if connection_type == ConnectionType.FUNCTION_CALL else {},
    )


def parse_document(document: Union[FlowDocument, Dict[str, Any], str, bytes]) -> FlowDocument:
    """Shape-validate *document* (a model, a dict or JSON text)."""
    if isinstance(document, FlowDocument):
        return document
    try:
        if isinstance(document, (str, bytes)):
            return FlowDocument.model_validate_json(document)
        return FlowDocument.model_validate(document)
    except ValidationError as exc:
        raise MalformedDocumentError(f"invalid flow document: {exc}") from exc


def deserialize(
    document: Union[FlowDocument, Dict[str, Any], str, bytes],
    registry: Optional["PluginRegistry"] = None,
) -> GraphSnapshot:
    """
    Validate *document* and rebuild the graph it describes.

    Raises:
        MalformedDocumentError: If the document fails shape or reference
            validation. Nothing is returned in that case, so the caller's
            open graph is untouched.
    """
    doc = parse_document(document)
    check_references(doc, registry)

    return GraphSnapshot(
        nodes=[_deserialize_node(n, registry) for n in doc.nodes],
        edges=[_deserialize_edge(e) for e in doc.edges],
        name=doc.metadata.name,
        created=doc.metadata.created,
    )


# ── Files ─────────────────────────────────────────────────────────────────────

def flow_path(path: Union[str, Path], name: str) -> Path:
    """``<dir>/<name>.flow.json`` when *path* is a directory, else *path*."""
    path = Path(path)
    if path.is_dir():
        return path / f"{name}{FLOW_FILE_SUFFIX}"
    return path


def save_flow(store: GraphStore, path: Union[str, Path], name: str) -> Path:
    target = flow_path(path, name)
    document = serialize(store.snapshot(name), name)
    target.write_text(json.dumps(document.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    # Keep the creation stamp for the next save of this flow.
    store.created = document.metadata.created
    logger.info("Flow saved: %s", target)
    return target


def read_flow(path: Union[str, Path], registry: Optional["PluginRegistry"] = None) -> GraphSnapshot:
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise MalformedDocumentError(f"{path.name} is not valid JSON: {exc}") from exc
    return deserialize(data, registry)


def load_flow(store: GraphStore, path: Union[str, Path]) -> GraphSnapshot:
    snapshot = read_flow(path, store.registry)
    store.load(snapshot)
    logger.info("Flow loaded: %s", snapshot.name)
    return snapshot


__all__ = [
    "deserialize",
    "flow_path",
    "load_flow",
    "now_iso",
    "parse_document",
    "read_flow",
    "save_flow",
    "serialize",
]
