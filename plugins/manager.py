"""Plugin manager.

Owns plugin lifecycle (registered -> initialized -> active -> cleared) and is
the only component that writes plugin contributions into the hook, tool and
steering registries.

Loading and unloading plugins must not overlap request handling: callers
load plugins at startup (or during a maintenance window) and only then
start executing hooks, tools and steering lookups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from core.errors import PluginDisabledError, PluginLoadFailedError
from steering.base import SteeringDocument, SteeringVariable
from tools.base import ToolPermission, ToolRegistration

from .hooks import HookCondition, HookRegistration
from .loader import PluginLoader
from .registry import LoadedPlugin, PluginRecord, PluginRegistry, PluginState

if TYPE_CHECKING:
    from steering.registry import SteeringRegistry
    from tools.registry import ToolRegistry

    from .base import BasePlugin
    from .hooks import HookRegistry
    from .manifest import SteeringDeclaration

logger = logging.getLogger(__name__)


@dataclass
class PluginContributions:
    """Everything one plugin adds to the three registries."""

    hooks: list[HookRegistration] = field(default_factory=list)
    tools: list[ToolRegistration] = field(default_factory=list)
    steering: list[SteeringDocument] = field(default_factory=list)

    def summary(self) -> str:
        return f"{len(self.hooks)} hook(s), {len(self.tools)} tool(s), {len(self.steering)} steering document(s)"


class PluginManager:
    """Discovers plugins and wires their contributions into the registries."""

    def __init__(
        self,
        hooks: HookRegistry,
        tools: ToolRegistry,
        steering: SteeringRegistry,
        loader: PluginLoader | None = None,
    ) -> None:
        self.hooks = hooks
        self.tools = tools
        self.steering = steering
        self.loader = loader or PluginLoader()
        self.plugins = PluginRegistry()
        self.load_errors: dict[str, str] = {}
        self._initialized = False

    def initialize(self) -> list[str]:
        """Discover, load and activate every plugin.

        A plugin that fails to load or register is logged and skipped; the
        others are unaffected. Calling this again is a no-op.

        Returns:
            Ids of active plugins
        """
        if self._initialized:
            return self.get_active_plugins()

        plugin_paths = self.loader.discover_plugins()
        logger.info("Discovered %d plugins", len(plugin_paths))

        for plugin_path in plugin_paths:
            try:
                loaded = self.loader.load_plugin(plugin_path)
            except PluginDisabledError as e:
                logger.info("Skipping plugin %s: %s", plugin_path.name, e)
                continue
            except PluginLoadFailedError as e:
                logger.error("Failed to load plugin %s: %s", plugin_path.name, e)
                self.load_errors[plugin_path.name] = str(e)
                continue
            except Exception as e:
                logger.error("Unexpected error loading plugin %s: %s", plugin_path.name, e)
                self.load_errors[plugin_path.name] = str(e)
                continue

            if not loaded.enabled and not self._explicitly_enabled(loaded.id):
                logger.info("Plugin %s is disabled by default, skipping", loaded.id)
                continue

            self.register_plugin(loaded)

        self._initialized = True
        active = self.get_active_plugins()
        logger.info("Plugin manager initialized: %d active, %d failed", len(active), len(self.load_errors))
        return active

    def _explicitly_enabled(self, plugin_id: str) -> bool:
        return self.loader.enabled_plugins is not None and plugin_id in self.loader.enabled_plugins

    def register_plugin(self, loaded: LoadedPlugin) -> bool:
        """Initialize a loaded plugin and register its contributions.

        If any step fails, whatever the plugin already registered is removed,
        tools it took over go back to their previous owners and the plugin is
        left in FAILED state.

        Returns:
            True if the plugin is now active
        """
        if loaded.id in self.plugins:
            logger.warning("Plugin %s already registered, replacing", loaded.id)
            self.unload(loaded.id)

        record = self.plugins.register(loaded)
        displaced: list[ToolRegistration] = []

        try:
            instance = loaded.create_instance()
            record.instance = instance
            instance.initialize()
            record.state = PluginState.INITIALIZED

            contributions = self._build_contributions(loaded, instance)
            for hook in contributions.hooks:
                self.hooks.register(loaded.id, hook)
            for tool in contributions.tools:
                existing = self.tools.get_tool(tool.name)
                if existing is not None and existing.plugin_id != loaded.id:
                    displaced.append(existing)
                self.tools.register(loaded.id, tool)
            for document in contributions.steering:
                self.steering.register_steering_document(loaded.id, document)

            instance.activate()
        except Exception as e:
            logger.error("Failed to register plugin %s: %s", loaded.id, e)
            self._remove_contributions(loaded.id)
            self._restore_tools(displaced)
            record.state = PluginState.FAILED
            record.error = str(e)
            self.load_errors[loaded.id] = str(e)
            return False

        record.state = PluginState.ACTIVE
        self.load_errors.pop(loaded.id, None)
        logger.info("Activated plugin %s v%s: %s", loaded.id, loaded.version, contributions.summary())
        return True

    def _restore_tools(self, displaced: list[ToolRegistration]) -> None:
        """Give tools taken over by a failed plugin back to their previous owners."""
        for tool in displaced:
            logger.info("Restoring tool %s to plugin %s", tool.name, tool.plugin_id)
            self.tools.register(tool.plugin_id, tool)

    def _build_contributions(self, loaded: LoadedPlugin, instance: BasePlugin) -> PluginContributions:
        manifest = loaded.manifest
        contributions = PluginContributions()

        for decl in manifest.hooks:
            contributions.hooks.append(
                HookRegistration(
                    name=decl.name,
                    type=decl.type,
                    phase=decl.phase or decl.name,
                    handler=instance.get_handler(decl.handler),
                    priority=decl.priority,
                    conditions=[HookCondition(c.field, c.operator, c.value) for c in decl.conditions],
                    description=decl.description,
                )
            )

        for decl in manifest.tools:
            contributions.tools.append(
                ToolRegistration(
                    name=decl.name,
                    description=decl.description,
                    handler=instance.get_handler(decl.handler),
                    category=decl.category,
                    input_schema=decl.input_schema,
                    output_schema=decl.output_schema,
                    permissions=[ToolPermission(p.type, p.resource, list(p.actions)) for p in decl.permissions],
                )
            )
        contributions.tools.extend(tool.to_registration() for tool in instance.provide_tools())

        for decl in manifest.steering:
            contributions.steering.append(
                SteeringDocument(
                    name=decl.name,
                    template=self._read_template(loaded.plugin_path, decl),
                    type=decl.type,
                    mode=decl.mode,
                    priority=decl.priority,
                    patterns=list(decl.patterns),
                    variables=[
                        SteeringVariable(
                            name=v.name,
                            type=v.type,
                            description=v.description,
                            required=v.required,
                            default=v.default,
                        )
                        for v in decl.variables
                    ],
                    description=decl.description,
                )
            )

        return contributions

    @staticmethod
    def _read_template(plugin_path: Path | None, decl: SteeringDeclaration) -> str:
        """Return the template text; ./relative paths are read from the plugin directory."""
        template = decl.template
        if plugin_path is not None and template.startswith(("./", "../")):
            template_file = (plugin_path / template).resolve()
            if not template_file.is_file():
                raise FileNotFoundError(f"Steering template not found: {template_file}")
            return template_file.read_text(encoding="utf-8")
        return template

    def _collect_contributions(self, plugin_id: str) -> PluginContributions:
        return PluginContributions(
            hooks=self.hooks.get_hooks_by_plugin(plugin_id),
            tools=self.tools.get_tools_by_plugin(plugin_id),
            steering=self.steering.get_steering_documents_by_plugin(plugin_id),
        )

    def _remove_contributions(self, plugin_id: str) -> PluginContributions:
        collected = self._collect_contributions(plugin_id)
        self.hooks.clear_hooks(plugin_id)
        self.tools.clear_tools(plugin_id)
        self.steering.clear_steering_documents(plugin_id)
        return collected

    def clear_plugin(self, plugin_id: str) -> PluginContributions:
        """Remove all of a plugin's hooks, tools and steering documents.

        Removals are collected first and applied together, so the plugin is
        never left half-registered.

        Returns:
            What was removed
        """
        removed = self._remove_contributions(plugin_id)
        logger.info("Cleared plugin %s: removed %s", plugin_id, removed.summary())

        record = self.plugins.get(plugin_id)
        if record is not None:
            record.state = PluginState.CLEARED
        return removed

    def unload(self, plugin_id: str) -> bool:
        """Deactivate a plugin, clear its contributions and forget it.

        Returns:
            False if the plugin is not registered
        """
        record = self.plugins.get(plugin_id)
        if record is None:
            logger.warning("Plugin %s not registered, nothing to unload", plugin_id)
            return False

        if record.instance is not None and record.state == PluginState.ACTIVE:
            try:
                record.instance.deactivate()
            except Exception as e:
                logger.error("Plugin %s failed to deactivate: %s", plugin_id, e)

        self.clear_plugin(plugin_id)

        if record.instance is not None:
            try:
                record.instance.dispose()
            except Exception as e:
                logger.error("Plugin %s failed to dispose: %s", plugin_id, e)

        self.plugins.unregister(plugin_id)
        return True

    def reload(self, plugin_id: str) -> bool:
        """Unload a plugin and load it again from its directory.

        Returns:
            True if the plugin is active again
        """
        record = self.plugins.get(plugin_id)
        if record is None or record.loaded.plugin_path is None:
            logger.warning("Plugin %s cannot be reloaded: not loaded from a directory", plugin_id)
            return False

        plugin_path = record.loaded.plugin_path
        self.unload(plugin_id)

        try:
            loaded = self.loader.load_plugin(plugin_path)
        except PluginDisabledError as e:
            logger.info("Not reloading plugin %s: %s", plugin_id, e)
            return False
        except PluginLoadFailedError as e:
            logger.error("Failed to reload plugin %s: %s", plugin_id, e)
            self.load_errors[plugin_id] = str(e)
            return False

        return self.register_plugin(loaded)

    def shutdown(self) -> None:
        """Unload every plugin, most recently registered first."""
        for record in reversed(self.plugins.list_all()):
            self.unload(record.id)
        self._initialized = False

    def get_plugin(self, plugin_id: str) -> PluginRecord | None:
        return self.plugins.get(plugin_id)

    def list_plugins(self) -> list[PluginRecord]:
        return self.plugins.list_all()

    def get_active_plugins(self) -> list[str]:
        return [r.id for r in self.plugins.list_by_state(PluginState.ACTIVE)]
