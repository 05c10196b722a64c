"""Visual block-editor core: graph store, containment, IR lowering and flow files."""

__all__ = [
    "ConnectionType",
    "ContainmentResolver",
    "FlowDocument",
    "FlowIR",
    "GraphSnapshot",
    "GraphStore",
    "PluginRegistry",
    "Position",
    "PropertyKind",
    "compile_graph",
    "deserialize",
    "serialize",
]

from .compiler import FlowIR, compile_graph
from .core.ContainmentResolver import ContainmentResolver
from .core.GraphPrimitives import GraphSnapshot
from .core.GraphStore import GraphStore
from .core.Types import ConnectionType, Position, PropertyKind
from .registry import PluginRegistry
from .serializers import FlowDocument, deserialize, serialize
