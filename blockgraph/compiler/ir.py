"""
Flow IR — the backend-agnostic description of a graph.

FlowIR is what gets posted to the code-generation service:

    GraphStore  →  [snapshot]  →  GraphSnapshot
                                      ↓
                                 [lowering]  →  FlowIR  →  POST /compile

Design goals:
  - No UI state: labels live in their own field, callbacks and identity
    fields never reach ``properties``.
  - Serialisable (dataclasses only, no live node references).
  - Language-agnostic: nothing here knows the generator targets Rust.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ── Node ─────────────────────────────────────────────────────────────────────

@dataclass
class IRNode:
    id: str
    plugin_type: str
    label: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "plugin_type": self.plugin_type,
            "label": self.label,
            "properties": self.properties,
            "parent_id": self.parent_id,
        }


# ── Connection ───────────────────────────────────────────────────────────────

@dataclass
class IRConnection:
    from_id: str
    to_id: str
    connection_type: str = "simple"            # "simple" | "function_call"
    variable_mapping: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "from": self.from_id,
            "to": self.to_id,
            "connection_type": self.connection_type,
        }
        if self.variable_mapping is not None:
            data["variable_mapping"] = self.variable_mapping
        return data


# ── Flow ─────────────────────────────────────────────────────────────────────

@dataclass
class FlowIR:
    nodes: List[IRNode] = field(default_factory=list)
    connections: List[IRConnection] = field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[IRNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_outgoing(self, node_id: str) -> List[IRConnection]:
        return [c for c in self.connections if c.from_id == node_id]

    def get_incoming(self, node_id: str) -> List[IRConnection]:
        return [c for c in self.connections if c.to_id == node_id]

    def children_of(self, node_id: str) -> List[IRNode]:
        return [n for n in self.nodes if n.parent_id == node_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": [c.to_dict() for c in self.connections],
        }
