"""Plugin registry for tracking loaded plugins and their lifecycle.

Stores loaded plugins by id together with their instance and state. The
hook, tool and steering registries hold the plugins' contributions; this
registry only knows which plugins exist.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .base import BasePlugin
from .manifest import PluginManifest

logger = logging.getLogger(__name__)


class PluginState(str, Enum):
    """Plugin lifecycle state."""

    REGISTERED = "registered"
    INITIALIZED = "initialized"
    ACTIVE = "active"
    CLEARED = "cleared"
    FAILED = "failed"


@dataclass
class LoadedPlugin:
    """A plugin whose manifest and entry class have been loaded."""

    manifest: PluginManifest
    plugin_class: type[BasePlugin]
    plugin_path: Path | None = None
    config: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True

    @property
    def id(self) -> str:
        """Plugin id."""
        return self.manifest.id

    @property
    def version(self) -> str:
        return self.manifest.version

    def create_instance(self) -> BasePlugin:
        """Instantiate the plugin entry class with its resolved config."""
        return self.plugin_class(manifest=self.manifest, config=dict(self.config))


@dataclass
class PluginRecord:
    """A registered plugin and where it is in its lifecycle."""

    loaded: LoadedPlugin
    state: PluginState = PluginState.REGISTERED
    instance: BasePlugin | None = None
    error: str | None = None

    @property
    def id(self) -> str:
        return self.loaded.id


class PluginRegistry:
    """Registry for loaded plugins, keyed by plugin id."""

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._plugins: dict[str, PluginRecord] = {}

    def register(self, plugin: LoadedPlugin) -> PluginRecord:
        """Register a loaded plugin.

        Args:
            plugin: Plugin to register

        Returns:
            The new record, in REGISTERED state

        Raises:
            ValueError: If plugin with same id already registered
        """
        if plugin.id in self._plugins:
            raise ValueError(f"Plugin '{plugin.id}' is already registered")

        record = PluginRecord(loaded=plugin)
        self._plugins[plugin.id] = record
        logger.info("Registered plugin: %s (version: %s)", plugin.id, plugin.version)
        return record

    def unregister(self, plugin_id: str) -> bool:
        """Unregister a plugin by id.

        Returns:
            True if plugin was removed, False if not found
        """
        if self._plugins.pop(plugin_id, None) is None:
            return False
        logger.info("Unregistered plugin: %s", plugin_id)
        return True

    def get(self, plugin_id: str) -> PluginRecord | None:
        return self._plugins.get(plugin_id)

    def list_all(self) -> list[PluginRecord]:
        return list(self._plugins.values())

    def list_by_state(self, state: PluginState) -> list[PluginRecord]:
        return [r for r in self._plugins.values() if r.state == state]

    def __contains__(self, plugin_id: str) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
