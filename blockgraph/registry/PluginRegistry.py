"""
PluginRegistry — read-only catalog of block types.

Each plugin lives in its own directory:

    plugins/
      legacy-code/
        plugin.json     { id, name, category, icon, description, properties: [...] }
        template.rs     optional code template handed to the generator

A property entry is ``{name, type, label, default, required, multiline?}``
where ``type`` is one of the PropertyKind values. Two optional flags extend
the schema: ``container`` (the block owns child blocks inside a bounding
box) and ``entry_point`` (singleton program entry, never deletable).
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from ..core.Errors import InvalidReferenceError
from ..core.Types import PropertyKind

logger = getLogger(__name__)

BUILTIN_PLUGIN_DIR = Path(__file__).resolve().parent.parent / "plugins"

# Canvas size of a freshly dropped container when its schema gives none.
DEFAULT_CONTAINER_WIDTH = 400
DEFAULT_CONTAINER_HEIGHT = 300


@dataclass
class PluginProperty:
    name: str
    kind: PropertyKind
    label: str = ""
    default: Any = None
    required: bool = False
    multiline: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginProperty":
        try:
            kind = PropertyKind(data["type"])
        except ValueError:
            raise ValueError(f"property '{data.get('name')}': unknown type '{data['type']}'") from None
        return cls(
            name=data["name"],
            kind=kind,
            label=data.get("label", data["name"]),
            default=data.get("default"),
            required=bool(data.get("required", False)),
            multiline=bool(data.get("multiline", False)),
        )

    def default_value(self) -> Any:
        # Defaults are shared by every node of the plugin; hand out copies.
        return copy.deepcopy(self.default)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "type": self.kind.value,
            "label": self.label,
            "default": self.default,
            "required": self.required,
        }
        if self.multiline:
            data["multiline"] = True
        return data


@dataclass
class PluginSchema:
    id: str
    name: str
    category: str = ""
    icon: str = ""
    description: str = ""
    properties: List[PluginProperty] = field(default_factory=list)
    container: bool = False
    entry_point: bool = False
    template: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginSchema":
        for key in ("id", "name"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"plugin schema: missing required field '{key}'")
        return cls(
            id=data["id"],
            name=data["name"],
            category=data.get("category", ""),
            icon=data.get("icon", ""),
            description=data.get("description", ""),
            properties=[PluginProperty.from_dict(p) for p in data.get("properties", [])],
            container=bool(data.get("container", False)),
            entry_point=bool(data.get("entry_point", False)),
            template=data.get("template"),
        )

    def get_property(self, name: str) -> Optional[PluginProperty]:
        return next((p for p in self.properties if p.name == name), None)

    def defaults(self) -> Dict[str, Any]:
        return {p.name: p.default_value() for p in self.properties}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "icon": self.icon,
            "description": self.description,
            "properties": [p.to_dict() for p in self.properties],
            "container": self.container,
            "entry_point": self.entry_point,
            "template": self.template,
        }


class PluginRegistry:
    def __init__(self) -> None:
        self._plugins: Dict[str, PluginSchema] = {}

    @classmethod
    def builtin(cls) -> "PluginRegistry":
        """Registry pre-loaded with the plugins bundled with the package."""
        registry = cls()
        registry.load_directory(BUILTIN_PLUGIN_DIR)
        return registry

    # ── Registration ───────────────────────────────────────────────────────

    def register(self, schema: Union[PluginSchema, Dict[str, Any]]) -> PluginSchema:
        if isinstance(schema, dict):
            schema = PluginSchema.from_dict(schema)
        if schema.id in self._plugins:
            raise ValueError(f"Plugin '{schema.id}' is already registered.")
        self._plugins[schema.id] = schema
        logger.debug("registered plugin %s", schema.id)
        return schema

    def load_directory(self, directory: Union[str, Path]) -> List[PluginSchema]:
        """
        Register every ``<directory>/<id>/plugin.json`` found.

        A plugin that cannot be read is skipped with a warning so one broken
        block does not hide the rest of the palette.
        """
        directory = Path(directory)
        loaded: List[PluginSchema] = []
        if not directory.is_dir():
            logger.warning("plugin directory %s does not exist", directory)
            return loaded

        for manifest in sorted(directory.glob("*/plugin.json")):
            try:
                with manifest.open(encoding="utf-8") as fh:
                    data = json.load(fh)
                template_path = manifest.parent / "template.rs"
                if template_path.is_file():
                    data["template"] = template_path.read_text(encoding="utf-8")
                loaded.append(self.register(data))
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.warning("Failed to load plugin %s: %s", manifest.parent.name, exc)
        return loaded

    # ── Queries ────────────────────────────────────────────────────────────

    def get(self, plugin_id: str) -> Optional[PluginSchema]:
        return self._plugins.get(plugin_id)

    def require(self, plugin_id: str) -> PluginSchema:
        schema = self._plugins.get(plugin_id)
        if schema is None:
            raise InvalidReferenceError(f"Unknown plugin '{plugin_id}'")
        return schema

    def all(self) -> List[PluginSchema]:
        return list(self._plugins.values())

    def property_kinds(self, plugin_id: str) -> Dict[str, PropertyKind]:
        return {p.name: p.kind for p in self.require(plugin_id).properties}

    def is_container(self, plugin_id: str) -> bool:
        schema = self._plugins.get(plugin_id)
        return bool(schema and schema.container)

    def is_entry_point(self, plugin_id: str) -> bool:
        schema = self._plugins.get(plugin_id)
        return bool(schema and schema.entry_point)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __iter__(self) -> Iterator[PluginSchema]:
        return iter(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)
