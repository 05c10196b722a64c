"""
GraphStore — the authoritative set of blocks and connections.

Every mutation goes through a method on this class. Each method validates
first and only then writes, so a call that raises leaves the store exactly
as it found it. Successful mutations are announced on ``store.events``.
"""
from __future__ import annotations

import copy
from collections import OrderedDict
from logging import getLogger
from typing import Any, Dict, List, Optional, Tuple

from .ContainmentResolver import ContainmentResolver
from .Errors import (
    ContainmentError,
    DuplicateEntryPointError,
    InvalidReferenceError,
    ProtectedNodeError,
    PropertyValidationError,
)
from .EventBus import EventBus
from .GraphPrimitives import FlowEdge, FlowNode, GraphSnapshot, IdGenerator
from .Types import ConnectionType, Position
from ..registry.PluginRegistry import PluginRegistry

logger = getLogger(__name__)

# Contained blocks are drawn one layer above their container.
CHILD_Z_INDEX = 1

# Node record fields of a saved flow; they cannot double as property names.
RESERVED_PROPERTY_KEYS = frozenset({"label", "pluginId", "onDelete"})


class GraphStore:
    def __init__(self, registry: PluginRegistry, ids: Optional[IdGenerator] = None):
        self.registry = registry
        self.ids = ids if ids is not None else IdGenerator()
        self.events = EventBus()
        self.resolver = ContainmentResolver(self)

        self._nodes: "OrderedDict[str, FlowNode]" = OrderedDict()
        self._edges: "OrderedDict[str, FlowEdge]" = OrderedDict()
        self._selection: Tuple[Optional[str], Optional[str]] = (None, None)

        # Creation timestamp of the document the graph was loaded from.
        self.created: Optional[str] = None

    # ── Queries ────────────────────────────────────────────────────────────

    @property
    def nodes(self) -> List[FlowNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[FlowEdge]:
        return list(self._edges.values())

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return self._nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[FlowEdge]:
        return self._edges.get(edge_id)

    def require_node(self, node_id: str) -> FlowNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise InvalidReferenceError(f"Node with id '{node_id}' does not exist")
        return node

    def require_edge(self, edge_id: str) -> FlowEdge:
        edge = self._edges.get(edge_id)
        if edge is None:
            raise InvalidReferenceError(f"Edge with id '{edge_id}' does not exist")
        return edge

    def is_container(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and self.registry.is_container(node.plugin_id)

    def is_protected(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is not None and self.registry.is_entry_point(node.plugin_id)

    def protected_node(self) -> Optional[FlowNode]:
        return next((n for n in self._nodes.values() if self.is_protected(n.id)), None)

    def children_of(self, node_id: str) -> List[FlowNode]:
        return [n for n in self._nodes.values() if n.parent_id == node_id]

    def edges_of(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self._edges.values() if node_id in (e.source, e.target)]

    def absolute_position(self, node_id: str) -> Position:
        return self.resolver.absolute_position(node_id)

    # ── Nodes ──────────────────────────────────────────────────────────────

    def create_node(
        self,
        plugin_id: str,
        position: Any = None,
        initial_props: Optional[Dict[str, Any]] = None,
        label: Optional[str] = None,
    ) -> str:
        schema = self.registry.require(plugin_id)
        if schema.entry_point and self.protected_node() is not None:
            raise DuplicateEntryPointError(
                f"An entry point '{self.protected_node().id}' already exists"
            )

        props = dict(initial_props or {})
        if "label" in props:
            label = props.pop("label")
        properties = schema.defaults()
        properties.update(self._validated(plugin_id, props))

        node = FlowNode(
            id=self.ids.next_node_id(),
            plugin_id=plugin_id,
            position=Position.from_value(position),
            properties=properties,
            label=label if label is not None else schema.name,
        )
        self._nodes[node.id] = node
        logger.debug("created node %s (%s)", node.id, plugin_id)
        self.events.fire({"type": "NODE_CREATED", "nodeId": node.id, "pluginId": plugin_id})
        return node.id

    def delete_node(self, node_id: str) -> None:
        node = self.require_node(node_id)
        if self.is_protected(node_id):
            logger.warning("refusing to delete protected node %s", node_id)
            raise ProtectedNodeError(f"Node '{node_id}' is the program entry point and cannot be deleted")

        # Children of a deleted container keep their place on the canvas.
        for child in self.children_of(node_id):
            child.position = child.position + self.absolute_position(node_id)
            child.parent_id = None

        removed = [e.id for e in self.edges_of(node_id)]
        for edge_id in removed:
            del self._edges[edge_id]
        del self._nodes[node.id]

        selected_node, selected_edge = self._selection
        if selected_node == node_id or selected_edge in removed:
            self.clear_selection()

        logger.debug("deleted node %s and %d edge(s)", node_id, len(removed))
        self.events.fire({"type": "NODE_DELETED", "nodeId": node_id, "edgeIds": removed})

    def update_node_properties(self, node_id: str, patch: Dict[str, Any]) -> None:
        node = self.require_node(node_id)
        patch = dict(patch)
        label = patch.pop("label", node.label)
        validated = self._validated(node.plugin_id, patch)

        node.properties.update(validated)
        node.label = label
        self.events.fire({"type": "NODE_UPDATED", "nodeId": node_id, "keys": sorted(validated)})

    def move_node(self, node_id: str, position: Any) -> bool:
        """Drag end: store *position* in the node's current frame, then resolve containment."""
        node = self.require_node(node_id)
        target = Position.from_value(position)
        self._hit_test(node_id, self.resolver.to_absolute(target, node.parent_id))

        node.position = target
        self.events.fire({"type": "NODE_MOVED", "nodeId": node_id, "position": node.position.to_dict()})
        return self.resolver.resolve(node_id)

    def drop_node(
        self,
        plugin_id: str,
        position: Any,
        initial_props: Optional[Dict[str, Any]] = None,
        label: Optional[str] = None,
    ) -> str:
        """Palette drop: create the node at the canvas *position* and adopt it into the container under it."""
        self._hit_test(None, Position.from_value(position))
        node_id = self.create_node(plugin_id, position, initial_props, label)
        self.resolver.resolve(node_id)
        return node_id

    def _hit_test(self, node_id: Optional[str], absolute: Position) -> None:
        # Reads every container box, so a broken one fails before any write.
        if node_id is None or not self.is_container(node_id):
            self.resolver.container_at(absolute, exclude=node_id)

    def reparent(
        self,
        node_id: str,
        new_parent_id: Optional[str],
        new_relative_position: Any = None,
    ) -> None:
        node = self.require_node(node_id)
        if new_parent_id is not None:
            self.require_node(new_parent_id)
            if new_parent_id == node_id:
                raise ContainmentError(f"Node '{node_id}' cannot contain itself")
            if not self.is_container(new_parent_id):
                raise ContainmentError(f"Node '{new_parent_id}' is not a container")
            if self.get_node(new_parent_id).parent_id is not None:
                raise ContainmentError(f"Container '{new_parent_id}' is itself nested")
            if self.is_container(node_id):
                raise ContainmentError(f"Container '{node_id}' cannot be nested")

        if new_relative_position is not None:
            position = Position.from_value(new_relative_position)
        else:
            absolute = self.absolute_position(node_id)
            if new_parent_id is None:
                position = absolute
            else:
                position = self.resolver.to_relative(absolute, new_parent_id)

        old_parent = node.parent_id
        node.parent_id = new_parent_id
        node.position = position
        self.events.fire(
            {
                "type": "NODE_REPARENTED",
                "nodeId": node_id,
                "parentId": new_parent_id,
                "previousParentId": old_parent,
                "position": position.to_dict(),
                "zIndex": CHILD_Z_INDEX if new_parent_id is not None else 0,
            }
        )

    # ── Edges ──────────────────────────────────────────────────────────────

    def create_edge(
        self,
        source: str,
        target: str,
        initial_data: Optional[Dict[str, Any]] = None,
    ) -> str:
        for endpoint in (source, target):
            if endpoint not in self._nodes:
                logger.warning("rejected edge %s -> %s: unknown node '%s'", source, target, endpoint)
                raise InvalidReferenceError(f"Edge endpoint '{endpoint}' does not exist")

        for existing in self._edges.values():
            if existing.source == source and existing.target == target:
                logger.debug("edge %s -> %s already exists as %s", source, target, existing.id)
                return existing.id

        connection_type, mapping = self._edge_data(ConnectionType.SIMPLE, {}, initial_data or {})
        edge = FlowEdge(
            id=self.ids.next_edge_id(),
            source=source,
            target=target,
            connection_type=connection_type,
            variable_mapping=mapping,
        )
        self._edges[edge.id] = edge
        self.events.fire({"type": "EDGE_CREATED", "edgeId": edge.id, "source": source, "target": target})
        return edge.id

    def delete_edge(self, edge_id: str) -> None:
        self.require_edge(edge_id)
        del self._edges[edge_id]
        if self._selection[1] == edge_id:
            self.clear_selection()
        self.events.fire({"type": "EDGE_DELETED", "edgeId": edge_id})

    def update_edge_data(self, edge_id: str, patch: Dict[str, Any]) -> None:
        edge = self.require_edge(edge_id)
        connection_type, mapping = self._edge_data(edge.connection_type, edge.variable_mapping, patch)
        edge.connection_type = connection_type
        edge.variable_mapping = mapping
        self.events.fire({"type": "EDGE_UPDATED", "edgeId": edge_id, "connectionType": connection_type.value})

    # ── Selection ──────────────────────────────────────────────────────────

    @property
    def selection(self) -> Tuple[Optional[str], Optional[str]]:
        """(selected node id, selected edge id); at most one is set."""
        return self._selection

    def select_node(self, node_id: str) -> None:
        self.require_node(node_id)
        self._set_selection((node_id, None))

    def select_edge(self, edge_id: str) -> None:
        self.require_edge(edge_id)
        self._set_selection((None, edge_id))

    def clear_selection(self) -> None:
        self._set_selection((None, None))

    def _set_selection(self, selection: Tuple[Optional[str], Optional[str]]) -> None:
        if selection == self._selection:
            return
        self._selection = selection
        self.events.fire({"type": "SELECTION_CHANGED", "nodeId": selection[0], "edgeId": selection[1]})

    # ── Snapshot / load ────────────────────────────────────────────────────

    def snapshot(self, name: Optional[str] = None) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=[n.copy() for n in self._nodes.values()],
            edges=[e.copy() for e in self._edges.values()],
            name=name,
            created=self.created,
        )

    def load(self, snapshot: GraphSnapshot) -> None:
        """Replace the whole graph with *snapshot* (no merge)."""
        nodes = OrderedDict((n.id, n.copy()) for n in snapshot.nodes)
        edges = OrderedDict((e.id, e.copy()) for e in snapshot.edges)

        self._nodes = nodes
        self._edges = edges
        self.created = snapshot.created
        self.ids.reseed(nodes.keys(), edges.keys())
        self._selection = (None, None)

        logger.info("loaded graph with %d node(s) and %d edge(s)", len(nodes), len(edges))
        self.events.fire({"type": "GRAPH_LOADED", "nodeCount": len(nodes), "edgeCount": len(edges)})

    # ── Validation helpers ─────────────────────────────────────────────────

    def _validated(self, plugin_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        schema = self.registry.get(plugin_id)
        result: Dict[str, Any] = {}
        for key, value in patch.items():
            if key in RESERVED_PROPERTY_KEYS:
                raise PropertyValidationError(f"{plugin_id}.{key}: reserved name")
            prop = schema.get_property(key) if schema else None
            if prop is None:
                # Not in the schema: stored as given.
                result[key] = copy.deepcopy(value)
                continue
            try:
                result[key] = prop.kind.coerce(value)
            except ValueError as exc:
                raise PropertyValidationError(f"{plugin_id}.{key}: {exc}") from None
        return result

    @staticmethod
    def _edge_data(
        current_type: ConnectionType,
        current_mapping: Dict[str, str],
        patch: Dict[str, Any],
    ) -> Tuple[ConnectionType, Dict[str, str]]:
        raw_type = patch.get("connectionType", patch.get("connection_type", current_type))
        raw_mapping = patch.get("variableMapping", patch.get("variable_mapping"))
        try:
            connection_type = ConnectionType.parse(raw_type)
        except ValueError as exc:
            raise PropertyValidationError(str(exc)) from None

        if raw_mapping is not None and not isinstance(raw_mapping, dict):
            raise PropertyValidationError("variableMapping must be an object")

        if connection_type == ConnectionType.SIMPLE:
            mapping: Dict[str, str] = {}
        elif raw_mapping is not None:
            mapping = {str(k): str(v) for k, v in raw_mapping.items()}
        elif connection_type != current_type:
            mapping = {}
        else:
            mapping = dict(current_mapping)
        return connection_type, mapping
