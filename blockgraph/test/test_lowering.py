import pytest

from blockgraph.compiler.lowering import LEGACY_PLUGIN_TYPE, compile_graph
from blockgraph.core.Errors import GraphIntegrityError
from blockgraph.core.GraphPrimitives import FlowEdge, FlowNode, GraphSnapshot
from blockgraph.core.GraphStore import GraphStore
from blockgraph.core.Types import ConnectionType, Position
from blockgraph.registry.PluginRegistry import PluginRegistry


def _add_op_registry() -> PluginRegistry:
    registry = PluginRegistry.builtin()
    registry.register(
        {
            "id": "add-op",
            "name": "Add",
            "properties": [
                {"name": "a", "type": "number", "label": "A", "default": 1},
                {"name": "b", "type": "number", "label": "B", "default": 2},
            ],
        }
    )
    return registry


class TestEndToEnd:

    def setup_method(self):
        self.snapshot = GraphSnapshot(
            nodes=[
                FlowNode(id="main", plugin_id="main", position=Position(0, 0),
                         properties={"width": 400, "height": 300}, label="Main"),
                FlowNode(id="start", plugin_id="start-node", position=Position(20, 20),
                         parent_id="main", label="Start"),
                FlowNode(id="add", plugin_id="add-op", position=Position(600, 40),
                         properties={"a": 1, "b": 2}, label="Add"),
            ],
            edges=[FlowEdge(id="edge_0", source="start", target="add")],
        )

    def test_ir_nodes(self):
        ir = compile_graph(self.snapshot)

        assert [n.id for n in ir.nodes] == ["main", "start", "add"]
        assert ir.get_node("start").parent_id == "main"
        assert ir.get_node("add").parent_id is None
        assert ir.get_node("main").parent_id is None
        assert ir.get_node("add").plugin_type == "add-op"
        assert ir.get_node("add").properties == {"a": 1, "b": 2}

    def test_ir_connections(self):
        ir = compile_graph(self.snapshot)

        assert len(ir.connections) == 1
        conn = ir.connections[0]
        assert (conn.from_id, conn.to_id) == ("start", "add")
        assert conn.connection_type == "simple"
        assert conn.variable_mapping is None

    def test_ir_wire_shape(self):
        data = compile_graph(self.snapshot).to_dict()

        assert data["connections"] == [{"from": "start", "to": "add", "connection_type": "simple"}]
        start = next(n for n in data["nodes"] if n["id"] == "start")
        assert start == {
            "id": "start",
            "plugin_type": "start-node",
            "label": "Start",
            "properties": {},
            "parent_id": "main",
        }

    def test_same_graph_built_through_the_store(self):
        store = GraphStore(_add_op_registry())
        main = store.create_node("main", {"x": 0, "y": 0})
        start = store.create_node("start-node", {"x": 20, "y": 20})
        add = store.create_node("add-op", {"x": 600, "y": 40})
        store.resolver.resolve(start)
        store.resolver.resolve(add)
        store.create_edge(start, add)

        ir = compile_graph(store)

        assert ir.get_node(start).parent_id == main
        assert ir.get_node(add).parent_id is None
        assert [c.to_dict() for c in ir.connections] == [
            {"from": start, "to": add, "connection_type": "simple"}
        ]


class TestLowering:

    def test_ui_only_keys_are_stripped(self):
        snapshot = GraphSnapshot(
            nodes=[
                FlowNode(
                    id="n1",
                    plugin_id="legacy-code",
                    properties={
                        "code": "let x = 1;",
                        "label": "stale",
                        "pluginId": "legacy-code",
                        "nodeType": "legacy_code",
                        "id": "n1",
                        "onDelete": lambda: None,
                        "callback": print,
                    },
                    label="Code",
                )
            ]
        )
        node = compile_graph(snapshot).nodes[0]
        assert node.properties == {"code": "let x = 1;"}
        assert node.label == "Code"

    def test_missing_plugin_id_falls_back(self):
        snapshot = GraphSnapshot(
            nodes=[
                FlowNode(id="a", plugin_id="", properties={"nodeType": "debug"}),
                FlowNode(id="b", plugin_id=""),
            ]
        )
        ir = compile_graph(snapshot)
        assert ir.get_node("a").plugin_type == "debug"
        assert ir.get_node("b").plugin_type == LEGACY_PLUGIN_TYPE

    def test_mapping_only_on_function_call(self):
        snapshot = GraphSnapshot(
            nodes=[FlowNode(id="a", plugin_id="legacy-code"), FlowNode(id="b", plugin_id="call-function")],
            edges=[
                FlowEdge(id="e1", source="a", target="b",
                         connection_type=ConnectionType.FUNCTION_CALL, variable_mapping={"n": "x"}),
                FlowEdge(id="e2", source="b", target="a", variable_mapping={"stale": "y"}),
            ],
        )
        call, simple = compile_graph(snapshot).connections

        assert call.connection_type == "function_call"
        assert call.variable_mapping == {"n": "x"}
        assert simple.connection_type == "simple"
        assert simple.variable_mapping is None

    def test_properties_are_copied(self):
        node = FlowNode(id="a", plugin_id="function-definition",
                        properties={"arguments": [{"name": "n", "type": "i32"}]})
        ir = compile_graph(GraphSnapshot(nodes=[node]))
        ir.nodes[0].properties["arguments"].append({"name": "m", "type": "u8"})
        assert len(node.properties["arguments"]) == 1

    def test_children_of(self):
        snapshot = GraphSnapshot(
            nodes=[
                FlowNode(id="fn", plugin_id="function-definition"),
                FlowNode(id="a", plugin_id="legacy-code", parent_id="fn"),
                FlowNode(id="b", plugin_id="legacy-code"),
            ]
        )
        ir = compile_graph(snapshot)
        assert [n.id for n in ir.children_of("fn")] == ["a"]

    @pytest.mark.parametrize(
        "snapshot",
        [
            GraphSnapshot(nodes=[FlowNode(id="a", plugin_id="debug"), FlowNode(id="a", plugin_id="debug")]),
            GraphSnapshot(nodes=[FlowNode(id="a", plugin_id="debug", parent_id="ghost")]),
            GraphSnapshot(nodes=[FlowNode(id="a", plugin_id="debug", parent_id="a")]),
            GraphSnapshot(
                nodes=[
                    FlowNode(id="a", plugin_id="function-definition"),
                    FlowNode(id="b", plugin_id="function-definition", parent_id="a"),
                    FlowNode(id="c", plugin_id="debug", parent_id="b"),
                ]
            ),
            GraphSnapshot(
                nodes=[
                    FlowNode(id="a", plugin_id="debug", parent_id="b"),
                    FlowNode(id="b", plugin_id="debug", parent_id="a"),
                ]
            ),
            GraphSnapshot(
                nodes=[FlowNode(id="a", plugin_id="debug")],
                edges=[FlowEdge(id="e", source="a", target="ghost")],
            ),
        ],
        ids=["duplicate-id", "unknown-parent", "self-parent", "nested-parent", "parent-cycle", "dangling-edge"],
    )
    def test_integrity_violations(self, snapshot):
        with pytest.raises(GraphIntegrityError):
            compile_graph(snapshot)

    def test_empty_graph(self):
        assert compile_graph(GraphSnapshot()).to_dict() == {"nodes": [], "connections": []}


class TestPluginAwareIntegrity:

    def setup_method(self):
        self.registry = PluginRegistry.builtin()

    @pytest.mark.parametrize(
        "nodes",
        [
            [FlowNode(id="m1", plugin_id="main"), FlowNode(id="m2", plugin_id="main")],
            [FlowNode(id="m", plugin_id="main"), FlowNode(id="f", plugin_id="function-definition", parent_id="m")],
            [FlowNode(id="a", plugin_id="debug"), FlowNode(id="b", plugin_id="debug", parent_id="a")],
        ],
        ids=["two-entry-points", "nested-container", "non-container-parent"],
    )
    def test_violations(self, nodes):
        snapshot = GraphSnapshot(nodes=nodes)

        # Without a registry only the structural rules apply.
        compile_graph(snapshot)
        with pytest.raises(GraphIntegrityError):
            compile_graph(snapshot, self.registry)

    def test_store_registry_is_used(self):
        store = GraphStore(self.registry)
        store.load(GraphSnapshot(nodes=[FlowNode(id="m1", plugin_id="main"), FlowNode(id="m2", plugin_id="main")]))

        with pytest.raises(GraphIntegrityError):
            compile_graph(store)
