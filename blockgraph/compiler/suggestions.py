"""
Best-effort helpers for wiring function calls in the editor.

Nothing in here feeds the IR compiler. The variable scan is a regex over the
source text of a block and only ever produces *suggestions* for the
connection panel; the user can always fall back to a literal value.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..core.Errors import InvalidReferenceError
from ..core.GraphPrimitives import FlowNode

if TYPE_CHECKING:
    from ..core.GraphStore import GraphStore

FUNCTION_DEFINITION = "function-definition"
CALL_FUNCTION = "call-function"

# Placeholder the UI stores while the user is typing a literal argument.
LITERAL_SENTINEL = "__custom__"

_LET_BINDING = re.compile(r"let\s+(mut\s+)?(\w+)")


def suggest_variables(node: Optional[FlowNode]) -> List[str]:
    """Names bound with ``let`` / ``let mut`` in the node's code, first occurrence order."""
    if node is None:
        return []
    code = node.properties.get("code")
    if not isinstance(code, str):
        return []
    names: List[str] = []
    for match in _LET_BINDING.finditer(code):
        name = match.group(2)
        if name not in names:
            names.append(name)
    return names


def function_definitions(store: "GraphStore") -> List[FlowNode]:
    return [n for n in store.nodes if n.plugin_id == FUNCTION_DEFINITION]


def bind_call_target(store: "GraphStore", node_id: str, function_name: str) -> None:
    """
    Point a call-function block at *function_name* and copy that
    definition's argument list onto it.
    """
    node = store.require_node(node_id)
    if node.plugin_id != CALL_FUNCTION:
        raise InvalidReferenceError(f"Node '{node_id}' is not a {CALL_FUNCTION} block")

    definition = next(
        (d for d in function_definitions(store) if d.properties.get("function_name") == function_name),
        None,
    )
    if definition is None:
        raise InvalidReferenceError(f"No function named '{function_name}'")

    store.update_node_properties(
        node_id,
        {
            "target_function": function_name,
            "arguments": list(definition.properties.get("arguments", [])),
        },
    )


def mapping_candidates(store: "GraphStore", edge_id: str) -> Dict[str, Any]:
    edge = store.require_edge(edge_id)
    source = store.get_node(edge.source)
    target = store.get_node(edge.target)
    arguments = target.properties.get("arguments", []) if target else []
    return {
        "arguments": arguments if isinstance(arguments, list) else [],
        "variables": suggest_variables(source),
        "literal": LITERAL_SENTINEL,
        "targetIsCall": bool(target and target.plugin_id == CALL_FUNCTION),
    }


__all__ = [
    "LITERAL_SENTINEL",
    "bind_call_target",
    "function_definitions",
    "mapping_candidates",
    "suggest_variables",
]
