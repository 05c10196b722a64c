"""
FlowDocument — persisted ``*.flow.json`` format
================================================

    {
      "version": "1.0",
      "metadata": {
        "name":     "my_flow",
        "created":  "2025-01-01T10:00:00.000Z",
        "modified": "2025-01-01T10:05:00.000Z"
      },
      "nodes": [
        {
          "id":         "node_0",                   // unique (str, required)
          "pluginId":   "legacy-code",              // plugin type (str, optional for legacy files)
          "position":   { "x": 120, "y": 80 },      // relative to parentNode when set
          "data":       { "label": "Code", "code": "let x = 42;" },
          "parentNode": "node_3"                    // container id (str, optional)
        }
      ],
      "edges": [
        {
          "id":     "edge_0",
          "source": "node_0",
          "target": "node_1",
          "data":   { "connectionType": "function_call",
                      "variableMapping": { "a": "x" } }
        }
      ]
    }

Shape validation is done by the pydantic models below; cross-references
(unique ids, known endpoints, one-level parents, single entry point) by
``check_references``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..core.Errors import MalformedDocumentError

if TYPE_CHECKING:
    from ..registry.PluginRegistry import PluginRegistry

FLOW_DOCUMENT_VERSION = "1.0"
FLOW_FILE_SUFFIX = ".flow.json"

ConnectionTypeName = Literal["simple", "function_call"]


# ── Models ────────────────────────────────────────────────────────────────────

class PositionModel(BaseModel):
    x: float
    y: float


class FlowNodeModel(BaseModel):
    # Canvas libraries add their own keys (type, width, selected, ...).
    model_config = ConfigDict(extra="ignore")

    id: str
    pluginId: Optional[str] = None
    position: PositionModel
    data: Dict[str, Any] = Field(default_factory=dict)
    parentNode: Optional[str] = None


class EdgeDataModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    connectionType: Optional[ConnectionTypeName] = None
    variableMapping: Optional[Dict[str, str]] = None


class FlowEdgeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    source: str
    target: str
    # Older files carry these beside ``data`` instead of inside it.
    connectionType: Optional[ConnectionTypeName] = None
    variableMapping: Optional[Dict[str, str]] = None
    data: Optional[EdgeDataModel] = None


class MetadataModel(BaseModel):
    name: str
    created: str
    modified: str


class FlowDocument(BaseModel):
    version: str
    metadata: MetadataModel
    nodes: List[FlowNodeModel]
    edges: List[FlowEdgeModel]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with unset optional keys left out."""
        data = self.model_dump(mode="json")
        for node in data["nodes"]:
            if node.get("parentNode") is None:
                node.pop("parentNode", None)
            if node.get("pluginId") is None:
                node.pop("pluginId", None)
        for edge in data["edges"]:
            for key in ("connectionType", "variableMapping", "data"):
                if edge.get(key) is None:
                    edge.pop(key, None)
        return data


# ── Reference checks ─────────────────────────────────────────────────────────

LEGACY_PLUGIN_ID = "legacy_code"


def resolve_plugin_id(node: FlowNodeModel) -> str:
    """Plugin id of *node*, falling back to the ids older files kept in ``data``."""
    for candidate in (node.pluginId, node.data.get("pluginId"), node.data.get("nodeType")):
        if isinstance(candidate, str) and candidate:
            return candidate
    return LEGACY_PLUGIN_ID


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise MalformedDocumentError(message)


def check_references(document: FlowDocument, registry: Optional["PluginRegistry"] = None) -> None:
    """
    Validate the cross-references of a shape-valid document.

    Args:
        document: A parsed FlowDocument.
        registry: When given, parents must be container plugins, containers
                  stay top-level and at most one node may use an
                  entry-point plugin.

    Raises:
        MalformedDocumentError: On any violation.
    """
    node_ids: Set[str] = set()
    for i, node in enumerate(document.nodes):
        _require(node.id not in node_ids, f"nodes[{i}]: duplicate node id '{node.id}'")
        node_ids.add(node.id)

    parents = {n.id: n.parentNode for n in document.nodes}
    plugin_of = {n.id: resolve_plugin_id(n) for n in document.nodes}

    for i, node in enumerate(document.nodes):
        ctx = f"nodes[{i}]"
        if node.parentNode is None:
            continue
        _require(node.parentNode != node.id, f"{ctx}: node '{node.id}' is its own parent")
        _require(
            node.parentNode in node_ids,
            f"{ctx}: parentNode '{node.parentNode}' not found in nodes",
        )
        _require(
            parents[node.parentNode] is None,
            f"{ctx}: parent '{node.parentNode}' is itself nested",
        )
        if registry is not None:
            _require(
                registry.is_container(plugin_of[node.parentNode]),
                f"{ctx}: parent '{node.parentNode}' is not a container",
            )
            _require(
                not registry.is_container(plugin_of[node.id]),
                f"{ctx}: container '{node.id}' cannot be nested",
            )

    edge_ids: Set[str] = set()
    for i, edge in enumerate(document.edges):
        ctx = f"edges[{i}]"
        _require(edge.id not in edge_ids, f"{ctx}: duplicate edge id '{edge.id}'")
        edge_ids.add(edge.id)
        _require(edge.source in node_ids, f"{ctx}: source '{edge.source}' not found in nodes")
        _require(edge.target in node_ids, f"{ctx}: target '{edge.target}' not found in nodes")

    if registry is not None:
        entry_points = [n.id for n in document.nodes if registry.is_entry_point(plugin_of[n.id])]
        _require(
            len(entry_points) <= 1,
            f"more than one entry point: {', '.join(entry_points)}",
        )


__all__ = [
    "FLOW_DOCUMENT_VERSION",
    "FLOW_FILE_SUFFIX",
    "FlowDocument",
    "FlowEdgeModel",
    "FlowNodeModel",
    "check_references",
    "resolve_plugin_id",
]
