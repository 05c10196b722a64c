from .PluginRegistry import PluginProperty, PluginRegistry, PluginSchema

__all__ = ["PluginProperty", "PluginRegistry", "PluginSchema"]
