"""Sync plugins - registry, config-schema validation and built-in plugins."""

from .json_plugin import JSONPluginConfig, JSONSyncPlugin
from .registry import PluginRegistry
from .schema import apply_defaults, validate_against_schema

__all__ = [
    "JSONPluginConfig",
    "JSONSyncPlugin",
    "PluginRegistry",
    "apply_defaults",
    "validate_against_schema",
]
