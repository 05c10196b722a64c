from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .Types import ConnectionType, Position

_ID_SUFFIX = re.compile(r"_(\d+)$")


# ── Node ─────────────────────────────────────────────────────────────────────

@dataclass
class FlowNode:
    id: str
    plugin_id: str
    position: Position = field(default_factory=Position)
    parent_id: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None

    def copy(self) -> "FlowNode":
        return FlowNode(
            id=self.id,
            plugin_id=self.plugin_id,
            position=self.position,
            parent_id=self.parent_id,
            properties=copy.deepcopy(self.properties),
            label=self.label,
        )

    def __repr__(self):
        return f"FlowNode({self.id}:{self.plugin_id})"


# ── Edge ─────────────────────────────────────────────────────────────────────

@dataclass
class FlowEdge:
    id: str
    source: str
    target: str
    connection_type: ConnectionType = ConnectionType.SIMPLE
    variable_mapping: Dict[str, str] = field(default_factory=dict)

    def copy(self) -> "FlowEdge":
        return FlowEdge(
            id=self.id,
            source=self.source,
            target=self.target,
            connection_type=self.connection_type,
            variable_mapping=dict(self.variable_mapping),
        )

    def __repr__(self):
        return f"FlowEdge({self.source} -> {self.target})"


# ── Snapshot ─────────────────────────────────────────────────────────────────

@dataclass
class GraphSnapshot:
    """
    Detached copy of the store contents, in document order.

    ``created`` carries the creation timestamp of the document the graph was
    loaded from, so re-serialising keeps it.
    """
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)
    name: Optional[str] = None
    created: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_edge(self, edge_id: str) -> Optional[FlowEdge]:
        return next((e for e in self.edges if e.id == edge_id), None)


# ── Id generation ────────────────────────────────────────────────────────────

def id_suffix(identifier: str) -> Optional[int]:
    """Return the numeric suffix of ``node_12`` style ids, or None."""
    match = _ID_SUFFIX.search(identifier)
    return int(match.group(1)) if match else None


class IdGenerator:
    """Monotonic ``node_<n>`` / ``edge_<n>`` id source owned by a GraphStore."""

    def __init__(self, next_node: int = 0, next_edge: int = 0):
        self._next_node = next_node
        self._next_edge = next_edge

    @property
    def peek_node(self) -> int:
        return self._next_node

    @property
    def peek_edge(self) -> int:
        return self._next_edge

    def next_node_id(self) -> str:
        node_id = f"node_{self._next_node}"
        self._next_node += 1
        return node_id

    def next_edge_id(self) -> str:
        edge_id = f"edge_{self._next_edge}"
        self._next_edge += 1
        return edge_id

    def reseed(self, node_ids: Iterable[str], edge_ids: Iterable[str] = ()) -> None:
        # Counters only move forward so ids handed out earlier stay unique.
        self._next_node = max(self._next_node, _after_max(node_ids))
        self._next_edge = max(self._next_edge, _after_max(edge_ids))


def _after_max(ids: Iterable[str]) -> int:
    suffixes = [s for s in (id_suffix(i) for i in ids) if s is not None]
    return max(suffixes) + 1 if suffixes else 0
