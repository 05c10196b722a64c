"""
Flow IR compiler
================
Lowers a GraphSnapshot into the FlowIR posted to the code-generation
service.

Public API
----------
    from blockgraph.compiler import compile_graph

    ir = compile_graph(store.snapshot())
    payload = ir.to_dict()     # {"nodes": [...], "connections": [...]}
"""

from .ir import FlowIR, IRConnection, IRNode
from .lowering import compile_graph

__all__ = ["FlowIR", "IRConnection", "IRNode", "compile_graph"]
