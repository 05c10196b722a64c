import json

import pytest

from blockgraph.core.Errors import InvalidReferenceError
from blockgraph.core.Types import FunctionArgument, PropertyKind
from blockgraph.registry.PluginRegistry import PluginRegistry, PluginSchema


class TestPluginRegistry:

    def setup_method(self):
        self.registry = PluginRegistry.builtin()

    def test_builtin_plugins(self):
        ids = {p.id for p in self.registry}
        assert ids == {"call-function", "debug", "function-definition", "legacy-code", "main", "start-node"}
        assert len(self.registry) == 6

    def test_container_and_entry_point_flags(self):
        assert self.registry.is_container("main")
        assert self.registry.is_entry_point("main")
        assert self.registry.is_container("function-definition")
        assert not self.registry.is_entry_point("function-definition")
        assert not self.registry.is_container("legacy-code")
        assert not self.registry.is_container("unknown")

    def test_templates_are_loaded(self):
        assert self.registry.get("legacy-code").template.strip() == "{{code}}"
        assert self.registry.get("start-node").template is None

    def test_property_kinds(self):
        kinds = self.registry.property_kinds("function-definition")
        assert kinds["function_name"] == PropertyKind.TEXT
        assert kinds["arguments"] == PropertyKind.ARGUMENTS
        assert kinds["width"] == PropertyKind.NUMBER

    def test_require_unknown(self):
        assert "nope" not in self.registry
        assert self.registry.get("nope") is None
        with pytest.raises(InvalidReferenceError):
            self.registry.require("nope")

    def test_register_duplicate(self):
        with pytest.raises(ValueError):
            self.registry.register({"id": "debug", "name": "Again"})

    def test_register_schema(self):
        schema = self.registry.register(PluginSchema(id="noop", name="No-op"))
        assert self.registry.require("noop") is schema
        assert schema.defaults() == {}

    def test_unknown_property_type(self):
        with pytest.raises(ValueError):
            PluginSchema.from_dict({"id": "x", "name": "X", "properties": [{"name": "p", "type": "colour"}]})

    def test_schema_to_dict(self):
        data = self.registry.get("legacy-code").to_dict()
        assert data["id"] == "legacy-code"
        assert data["properties"][0]["type"] == "code"
        assert data["properties"][0]["multiline"] is True


class TestPluginDirectory:

    def _write_plugin(self, root, name, manifest, template=None):
        folder = root / name
        folder.mkdir()
        (folder / "plugin.json").write_text(
            manifest if isinstance(manifest, str) else json.dumps(manifest), encoding="utf-8"
        )
        if template is not None:
            (folder / "template.rs").write_text(template, encoding="utf-8")

    def test_broken_plugins_are_skipped(self, tmp_path):
        self._write_plugin(tmp_path, "good", {"id": "good", "name": "Good"}, "// good")
        self._write_plugin(tmp_path, "bad-json", "{oops")
        self._write_plugin(tmp_path, "no-name", {"id": "no-name"})

        registry = PluginRegistry()
        loaded = registry.load_directory(tmp_path)

        assert [p.id for p in loaded] == ["good"]
        assert registry.get("good").template == "// good"

    def test_missing_directory(self, tmp_path):
        registry = PluginRegistry()
        assert registry.load_directory(tmp_path / "absent") == []
        assert len(registry) == 0


class TestPropertyKind:

    @pytest.mark.parametrize(
        "kind, value",
        [
            (PropertyKind.TEXT, "hello"),
            (PropertyKind.CODE, "let x = 1;"),
            (PropertyKind.NUMBER, 3),
            (PropertyKind.NUMBER, 2.5),
            (PropertyKind.BOOLEAN, False),
            (PropertyKind.ARGUMENTS, [{"name": "a", "type": "i32"}]),
        ],
    )
    def test_valid_values(self, kind, value):
        assert PropertyKind.validate(value, kind)

    @pytest.mark.parametrize(
        "kind, value",
        [
            (PropertyKind.TEXT, 3),
            (PropertyKind.NUMBER, True),
            (PropertyKind.BOOLEAN, "true"),
            (PropertyKind.ARGUMENTS, ["a"]),
            (PropertyKind.ARGUMENTS, [{"name": 1, "type": "i32"}]),
        ],
    )
    def test_invalid_values(self, kind, value):
        assert not PropertyKind.validate(value, kind)
        with pytest.raises(ValueError):
            kind.coerce(value)

    def test_coerce_numbers(self):
        assert PropertyKind.NUMBER.coerce("12") == 12
        assert PropertyKind.NUMBER.coerce("12.0") == 12.0
        assert isinstance(PropertyKind.NUMBER.coerce("12.0"), float)

    def test_coerce_arguments(self):
        value = [FunctionArgument("a", "i32"), {"name": "b"}]
        assert PropertyKind.ARGUMENTS.coerce(value) == [
            {"name": "a", "type": "i32"},
            {"name": "b", "type": ""},
        ]
