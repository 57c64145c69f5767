"""
Plugin Registry.

Owns the installed sync plugins keyed by name. Each plugin is initialized
exactly once when registered and cleaned up exactly once at shutdown.
"""

from __future__ import annotations

import logging
import threading

from ...api.exceptions import (
    DuplicateNameError,
    ErrorCollector,
    InitializationError,
    NotFoundError,
    ValidationError,
)
from ..domain.entities import PluginInfo
from ..domain.ports import ISyncPlugin

logger = logging.getLogger(__name__)

PLUGIN_LOGGER_PREFIX = "fleet.sync.plugins"


class PluginRegistry:
    """Registry of installed export/import plugins.

    Usage:
        registry = PluginRegistry()
        registry.register(JSONSyncPlugin(inventory))

        plugin = registry.get("json")     # handle captured under the lock
        result = await plugin.export(...) # invoked after the lock is released

        registry.shutdown()

    The lock only guards the name -> plugin mapping. Callers never hold it
    while awaiting plugin I/O.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._plugins: dict[str, ISyncPlugin] = {}
        self._closed = False

    def register(self, plugin: ISyncPlugin) -> PluginInfo:
        """Initialize and install a plugin.

        Raises:
            ValidationError: If the plugin reports an empty name
            DuplicateNameError: If a plugin with the same name is installed
            InitializationError: If ``plugin.initialize`` raises; the plugin
                is not added
        """
        info = plugin.info()
        if not info.name:
            raise ValidationError("Plugin name is required", field="name")

        with self._lock:
            if info.name in self._plugins:
                raise DuplicateNameError(info.name)

            try:
                plugin.initialize(logging.getLogger(f"{PLUGIN_LOGGER_PREFIX}.{info.name}"))
            except Exception as e:
                logger.error(f"Plugin {info.name} failed to initialize: {e}")
                raise InitializationError(info.name, cause=e)

            self._plugins[info.name] = plugin
            self._closed = False

        logger.info(f"Registered sync plugin {info.name} v{info.version}")
        return info

    def get(self, name: str) -> ISyncPlugin:
        with self._lock:
            plugin = self._plugins.get(name)
        if plugin is None:
            raise NotFoundError("Plugin", name)
        return plugin

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._plugins

    def list(self) -> list[PluginInfo]:
        """Info snapshots in registration order."""
        with self._lock:
            plugins = list(self._plugins.values())
        return [p.info() for p in plugins]

    def count(self) -> int:
        with self._lock:
            return len(self._plugins)

    def unregister(self, name: str) -> None:
        """Remove a single plugin, running its cleanup."""
        with self._lock:
            plugin = self._plugins.pop(name, None)
        if plugin is None:
            raise NotFoundError("Plugin", name)

        try:
            plugin.cleanup()
        except Exception as e:
            logger.warning(f"Cleanup of plugin {name} failed: {e}")
        logger.info(f"Unregistered sync plugin {name}")

    def shutdown(self) -> list[str]:
        """Clean up every plugin and empty the registry.

        Individual cleanup failures are collected, not raised. A second call
        is a no-op.

        Returns:
            Error messages from plugins whose cleanup failed
        """
        with self._lock:
            if self._closed:
                return []
            plugins = list(self._plugins.items())
            self._plugins.clear()
            self._closed = True

        collector = ErrorCollector()
        for name, plugin in plugins:
            try:
                plugin.cleanup()
            except Exception as e:
                collector.add(e, context={"plugin": name})

        errors = collector.messages()
        for message in errors:
            logger.warning(f"Plugin cleanup failed: {message}")
        logger.info(f"Plugin registry shut down ({len(plugins)} plugins, {len(errors)} errors)")
        return errors
