"""
Lowering — projects a GraphSnapshot onto FlowIR.

The projection is purely structural. It does not check the program against
the target language; that is the code-generation service's job. The only
failure mode is a snapshot that breaks the graph invariants (duplicate ids,
dangling endpoints, unknown or nested parents and, given a registry, the
container and entry-point rules), which is a caller bug and raises
GraphIntegrityError.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from ..core.Errors import GraphIntegrityError
from ..core.GraphPrimitives import FlowEdge, FlowNode, GraphSnapshot
from ..core.Types import ConnectionType
from .ir import FlowIR, IRConnection, IRNode

if TYPE_CHECKING:
    from ..core.GraphStore import GraphStore
    from ..registry.PluginRegistry import PluginRegistry

LEGACY_PLUGIN_TYPE = "legacy_code"

# Keys that describe the block on the canvas rather than the program.
UI_ONLY_KEYS = frozenset({"label", "id", "pluginId", "nodeType", "onDelete"})


def _plugin_type(node: FlowNode) -> str:
    if node.plugin_id:
        return node.plugin_id
    legacy = node.properties.get("nodeType")
    return legacy if isinstance(legacy, str) and legacy else LEGACY_PLUGIN_TYPE


def _program_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: copy.deepcopy(value)
        for key, value in properties.items()
        if key not in UI_ONLY_KEYS and not callable(value)
    }


def _lower_node(node: FlowNode) -> IRNode:
    return IRNode(
        id=node.id,
        plugin_type=_plugin_type(node),
        label=node.label,
        properties=_program_properties(node.properties),
        parent_id=node.parent_id,
    )


def _lower_edge(edge: FlowEdge) -> IRConnection:
    connection_type = edge.connection_type or ConnectionType.SIMPLE
    mapping = None
    if connection_type == ConnectionType.FUNCTION_CALL:
        mapping = dict(edge.variable_mapping)
    return IRConnection(
        from_id=edge.source,
        to_id=edge.target,
        connection_type=connection_type.value,
        variable_mapping=mapping,
    )


def _check_integrity(
    nodes: List[FlowNode],
    edges: List[FlowEdge],
    registry: Optional["PluginRegistry"] = None,
) -> None:
    by_id: Dict[str, FlowNode] = {}
    for node in nodes:
        if node.id in by_id:
            raise GraphIntegrityError(f"duplicate node id '{node.id}'")
        by_id[node.id] = node

    for node in nodes:
        if node.parent_id is None:
            continue
        if node.parent_id == node.id:
            raise GraphIntegrityError(f"node '{node.id}' is its own parent")
        parent = by_id.get(node.parent_id)
        if parent is None:
            raise GraphIntegrityError(f"node '{node.id}' has unknown parent '{node.parent_id}'")
        # One level only, which also rules out parent cycles.
        if parent.parent_id is not None:
            raise GraphIntegrityError(f"node '{node.id}' sits in nested parent '{parent.id}'")
        if registry is not None:
            if not registry.is_container(parent.plugin_id):
                raise GraphIntegrityError(f"parent '{parent.id}' of '{node.id}' is not a container")
            if registry.is_container(node.plugin_id):
                raise GraphIntegrityError(f"container '{node.id}' is nested in '{parent.id}'")

    for edge in edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in by_id:
                raise GraphIntegrityError(f"edge '{edge.id}' references unknown node '{endpoint}'")

    if registry is not None:
        entry_points = [n.id for n in nodes if registry.is_entry_point(n.plugin_id)]
        if len(entry_points) > 1:
            raise GraphIntegrityError(f"more than one entry point: {', '.join(entry_points)}")


def compile_graph(
    graph: Union[GraphSnapshot, "GraphStore"],
    registry: Optional["PluginRegistry"] = None,
) -> FlowIR:
    """
    Lower *graph* to FlowIR.

    Args:
        graph:    A GraphSnapshot, or a GraphStore (its snapshot is taken).
        registry: Enables the plugin-aware checks (container parents, a
                  single entry point). Defaults to the store's registry when
                  *graph* is a GraphStore.

    Returns:
        FlowIR with one IRNode per node and one IRConnection per edge, in
        document order.

    Raises:
        GraphIntegrityError: On duplicate ids, unknown, self or nested
            parents, dangling edges and, with a registry, non-container
            parents, nested containers or several entry points.
    """
    if isinstance(graph, GraphSnapshot):
        snapshot = graph
    else:
        snapshot = graph.snapshot()
        registry = registry if registry is not None else graph.registry
    _check_integrity(snapshot.nodes, snapshot.edges, registry)

    return FlowIR(
        nodes=[_lower_node(n) for n in snapshot.nodes],
        connections=[_lower_edge(e) for e in snapshot.edges],
    )


__all__ = ["compile_graph", "LEGACY_PLUGIN_TYPE", "UI_ONLY_KEYS"]
