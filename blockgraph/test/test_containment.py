import pytest

from blockgraph.core.Errors import InvalidReferenceError
from blockgraph.core.GraphPrimitives import FlowNode, GraphSnapshot
from blockgraph.core.GraphStore import GraphStore
from blockgraph.core.Types import Position
from blockgraph.registry.PluginRegistry import PluginRegistry


class TestCoordinateFrames:

    def setup_method(self):
        self.store = GraphStore(PluginRegistry.builtin())
        self.fn = self.store.create_node("function-definition", {"x": 100, "y": 50})
        self.resolver = self.store.resolver

    def test_absolute_to_relative(self):
        assert self.resolver.to_relative(Position(120, 80), self.fn) == Position(20, 30)

    def test_relative_to_absolute(self):
        assert self.resolver.to_absolute(Position(20, 30), self.fn) == Position(120, 80)

    def test_top_level_frame_is_canvas(self):
        assert self.resolver.to_absolute(Position(7, 9), None) == Position(7, 9)

    def test_absolute_position_of_child(self):
        child = self.store.create_node("debug", {"x": 120, "y": 80})
        self.store.reparent(child, self.fn)
        assert self.store.get_node(child).position == Position(20, 30)
        assert self.store.absolute_position(child) == Position(120, 80)

    def test_bounds_come_from_properties(self):
        self.store.update_node_properties(self.fn, {"width": 50, "height": 40})
        origin, width, height = self.resolver.bounds(self.fn)
        assert origin == Position(100, 50)
        assert (width, height) == (50.0, 40.0)

    def test_contains_is_half_open(self):
        assert self.resolver.contains(self.fn, Position(100, 50))
        assert self.resolver.contains(self.fn, Position(499, 349))
        assert not self.resolver.contains(self.fn, Position(500, 100))
        assert not self.resolver.contains(self.fn, Position(150, 350))

    def test_parent_cycle_is_reported(self):
        self.store.load(
            GraphSnapshot(
                nodes=[
                    FlowNode(id="a", plugin_id="debug", parent_id="b"),
                    FlowNode(id="b", plugin_id="debug", parent_id="a"),
                ]
            )
        )
        with pytest.raises(InvalidReferenceError):
            self.store.absolute_position("a")


class TestContainmentResolver:

    def setup_method(self):
        self.store = GraphStore(PluginRegistry.builtin())
        self.events = []
        self.store.events.subscribe(self.events.append)

    def _reparent_events(self):
        return [e for e in self.events if e["type"] == "NODE_REPARENTED"]

    def test_drop_into_container(self):
        fn = self.store.create_node("function-definition", {"x": 100, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 0, "y": 0})

        changed = self.store.move_node(block, {"x": 120, "y": 80})

        node = self.store.get_node(block)
        assert changed is True
        assert node.parent_id == fn
        assert node.position == Position(20, 30)

    def test_resolve_is_idempotent(self):
        fn = self.store.create_node("function-definition", {"x": 100, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 0, "y": 0})
        self.store.move_node(block, {"x": 120, "y": 80})
        before = self.store.get_node(block).copy()

        assert self.store.resolver.resolve(block) is False
        assert self.store.get_node(block) == before
        assert len(self._reparent_events()) == 1
        assert before.parent_id == fn

    def test_move_within_container_keeps_parent(self):
        fn = self.store.create_node("function-definition", {"x": 100, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 120, "y": 80})
        self.store.resolver.resolve(block)

        # Relative coordinates once the block is inside.
        assert self.store.move_node(block, {"x": 40, "y": 60}) is False
        assert self.store.get_node(block).parent_id == fn
        assert self.store.absolute_position(block) == Position(140, 110)

    def test_drag_out_of_container(self):
        fn = self.store.create_node("function-definition", {"x": 100, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 120, "y": 80})
        self.store.resolver.resolve(block)

        # Relative (500, 0) is absolute (600, 50): outside the 400px wide box.
        assert self.store.move_node(block, {"x": 500, "y": 0}) is True

        node = self.store.get_node(block)
        assert node.parent_id is None
        assert node.position == Position(600, 50)
        assert self._reparent_events()[-1]["previousParentId"] == fn

    def test_move_from_one_container_to_another(self):
        first = self.store.create_node("function-definition", {"x": 0, "y": 0})
        second = self.store.create_node("function-definition", {"x": 1000, "y": 0})
        block = self.store.create_node("legacy-code", {"x": 10, "y": 10})
        self.store.resolver.resolve(block)
        assert self.store.get_node(block).parent_id == first

        self.store.move_node(block, {"x": 1010, "y": 20})

        node = self.store.get_node(block)
        assert node.parent_id == second
        assert node.position == Position(10, 20)

    def test_first_container_in_document_order_wins(self):
        first = self.store.create_node("function-definition", {"x": 0, "y": 0})
        self.store.create_node("function-definition", {"x": 50, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 60, "y": 60})

        self.store.resolver.resolve(block)
        assert self.store.get_node(block).parent_id == first

    def test_containers_are_never_nested(self):
        self.store.create_node("main", {"x": 0, "y": 0})
        fn = self.store.create_node("function-definition", {"x": 10, "y": 10})

        assert self.store.resolver.resolve(fn) is False
        assert self.store.get_node(fn).parent_id is None

    def test_outside_every_container_is_noop(self):
        self.store.create_node("function-definition", {"x": 100, "y": 50})
        block = self.store.create_node("legacy-code", {"x": 0, "y": 0})

        assert self.store.resolver.resolve(block) is False
        assert self.store.get_node(block).parent_id is None
        assert self._reparent_events() == []

    def test_resolve_unknown_node(self):
        with pytest.raises(InvalidReferenceError):
            self.store.resolver.resolve("node_42")
