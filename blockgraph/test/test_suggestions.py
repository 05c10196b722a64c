import pytest

from blockgraph.compiler.suggestions import (
    LITERAL_SENTINEL,
    bind_call_target,
    function_definitions,
    mapping_candidates,
    suggest_variables,
)
from blockgraph.core.Errors import InvalidReferenceError
from blockgraph.core.GraphPrimitives import FlowNode
from blockgraph.core.GraphStore import GraphStore
from blockgraph.registry.PluginRegistry import PluginRegistry


class TestSuggestVariables:

    def test_let_bindings(self):
        node = FlowNode(id="n", plugin_id="legacy-code",
                        properties={"code": "let x = 1;\nlet mut total = x + 2;\nlet x = 3;"})
        assert suggest_variables(node) == ["x", "total"]

    def test_no_code(self):
        assert suggest_variables(FlowNode(id="n", plugin_id="debug")) == []
        assert suggest_variables(None) == []

    def test_non_text_code(self):
        assert suggest_variables(FlowNode(id="n", plugin_id="x", properties={"code": 42})) == []


class TestCallWiring:

    def setup_method(self):
        self.store = GraphStore(PluginRegistry.builtin())
        self.fn = self.store.create_node("function-definition", None, {
            "function_name": "add",
            "arguments": [{"name": "a", "type": "i32"}, {"name": "b", "type": "i32"}],
        })
        self.code = self.store.create_node("legacy-code", {"x": 600, "y": 0}, {"code": "let a = 1; let mut b = 2;"})
        self.call = self.store.create_node("call-function", {"x": 900, "y": 0})

    def test_function_definitions(self):
        assert [n.id for n in function_definitions(self.store)] == [self.fn]

    def test_bind_call_target_copies_arguments(self):
        bind_call_target(self.store, self.call, "add")

        props = self.store.get_node(self.call).properties
        assert props["target_function"] == "add"
        assert props["arguments"] == [{"name": "a", "type": "i32"}, {"name": "b", "type": "i32"}]

        # The call keeps its own copy.
        props["arguments"].pop()
        assert len(self.store.get_node(self.fn).properties["arguments"]) == 2

    def test_bind_unknown_function(self):
        with pytest.raises(InvalidReferenceError):
            bind_call_target(self.store, self.call, "missing")
        assert self.store.get_node(self.call).properties["target_function"] == ""

    def test_bind_on_wrong_block(self):
        with pytest.raises(InvalidReferenceError):
            bind_call_target(self.store, self.code, "add")

    def test_mapping_candidates(self):
        bind_call_target(self.store, self.call, "add")
        edge = self.store.create_edge(self.code, self.call, {"connectionType": "function_call"})

        candidates = mapping_candidates(self.store, edge)

        assert [a["name"] for a in candidates["arguments"]] == ["a", "b"]
        assert candidates["variables"] == ["a", "b"]
        assert candidates["literal"] == LITERAL_SENTINEL
        assert candidates["targetIsCall"] is True

    def test_mapping_candidates_for_plain_target(self):
        other = self.store.create_node("debug")
        edge = self.store.create_edge(self.code, other)

        candidates = mapping_candidates(self.store, edge)
        assert candidates["arguments"] == []
        assert candidates["targetIsCall"] is False
