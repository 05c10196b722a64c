"""Graph model: value types, errors, the store and the containment resolver.

Submodules are imported directly, e.g. ``blockgraph.core.GraphStore``.
"""
