"""Plugin loader for discovering and loading plugins.

Scans plugin directories, validates manifests, and loads plugin classes.
"""

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from core.errors import PluginDisabledError, PluginLoadFailedError

from .base import BasePlugin
from .manifest import PluginManifest
from .registry import LoadedPlugin

logger = logging.getLogger(__name__)


class PluginLoader:
    """Loads plugins from filesystem.

    Scans directories for plugin.yaml files, validates them,
    and loads the associated plugin classes.
    """

    MANIFEST_FILE = "plugin.yaml"

    def __init__(
        self,
        plugin_dirs: list[Path] | None = None,
        enabled_plugins: list[str] | None = None,
        disabled_plugins: list[str] | None = None,
        plugin_config: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        """Initialize plugin loader.

        Args:
            plugin_dirs: Directories to scan for plugins
            enabled_plugins: Whitelist of plugins to enable (None = all)
            disabled_plugins: Blacklist of plugins to disable
            plugin_config: Per-plugin configuration overrides
        """
        self.plugin_dirs = [Path(d) for d in plugin_dirs] if plugin_dirs else []
        self.enabled_plugins = set(enabled_plugins) if enabled_plugins else None
        self.disabled_plugins = set(disabled_plugins) if disabled_plugins else set()
        self.plugin_config = plugin_config or {}

    def discover_plugins(self) -> list[Path]:
        """Discover all plugin directories.

        Returns:
            List of paths to plugin directories (containing plugin.yaml),
            in directory order then name order
        """
        discovered = []

        for plugin_dir in self.plugin_dirs:
            if not plugin_dir.exists():
                logger.debug("Plugin directory does not exist: %s", plugin_dir)
                continue

            # Each subdirectory with plugin.yaml is a plugin
            for subdir in sorted(plugin_dir.iterdir()):
                if subdir.is_dir() and (subdir / self.MANIFEST_FILE).exists():
                    discovered.append(subdir)
                    logger.debug("Discovered plugin: %s", subdir.name)

        return discovered

    def load_manifest(self, plugin_path: Path) -> PluginManifest:
        """Load and validate plugin manifest.

        Args:
            plugin_path: Path to plugin directory

        Returns:
            Validated PluginManifest

        Raises:
            PluginLoadFailedError: If manifest is missing or invalid
        """
        manifest_path = plugin_path / self.MANIFEST_FILE

        try:
            with open(manifest_path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise PluginLoadFailedError(f"Manifest not found: {manifest_path}", plugin_path=str(plugin_path))
        except yaml.YAMLError as e:
            raise PluginLoadFailedError(f"Invalid YAML in manifest: {e}", plugin_path=str(plugin_path))

        if not isinstance(data, dict):
            raise PluginLoadFailedError(f"Manifest must be a mapping: {manifest_path}", plugin_path=str(plugin_path))

        try:
            return PluginManifest(**data)
        except ValidationError as e:
            raise PluginLoadFailedError(f"Invalid manifest {manifest_path}: {e}", plugin_path=str(plugin_path))

    def load_plugin_class(self, plugin_path: Path, class_path: str) -> type[BasePlugin]:
        """Load plugin class from plugin directory.

        Args:
            plugin_path: Path to plugin directory
            class_path: Class path (e.g., 'plugin.MyPlugin')

        Returns:
            Plugin class

        Raises:
            PluginLoadFailedError: If class cannot be loaded
        """
        module_name, class_name = class_path.rsplit(".", 1)
        module_file = plugin_path / f"{module_name.replace('.', '/')}.py"

        if not module_file.exists():
            raise PluginLoadFailedError(f"Plugin module not found: {module_file}", plugin_path=str(plugin_path))

        # Unique module name so same-named modules in different plugins don't collide
        unique_module_name = f"_sdd_plugins.{plugin_path.name}.{module_name}"

        try:
            spec = importlib.util.spec_from_file_location(unique_module_name, module_file)
            if spec is None or spec.loader is None:
                raise PluginLoadFailedError(f"Cannot load module spec: {module_file}", plugin_path=str(plugin_path))

            module = importlib.util.module_from_spec(spec)
            sys.modules[unique_module_name] = module
            spec.loader.exec_module(module)
        except PluginLoadFailedError:
            raise
        except Exception as e:
            sys.modules.pop(unique_module_name, None)
            raise PluginLoadFailedError(f"Failed to import {module_file}: {e}", plugin_path=str(plugin_path)) from e

        plugin_class = getattr(module, class_name, None)
        if plugin_class is None:
            raise PluginLoadFailedError(f"Class '{class_name}' not found in {module_file}", plugin_path=str(plugin_path))

        if not isinstance(plugin_class, type) or not issubclass(plugin_class, BasePlugin):
            raise PluginLoadFailedError(f"Class '{class_name}' must extend BasePlugin", plugin_path=str(plugin_path))

        return plugin_class

    def is_enabled(self, plugin_id: str) -> bool:
        if self.enabled_plugins is not None and plugin_id not in self.enabled_plugins:
            return False
        return plugin_id not in self.disabled_plugins

    def load_plugin(self, plugin_path: Path) -> LoadedPlugin:
        """Load a single plugin.

        Args:
            plugin_path: Path to plugin directory

        Returns:
            LoadedPlugin instance

        Raises:
            PluginDisabledError: If plugin is disabled by config
            PluginLoadFailedError: If plugin cannot be loaded
        """
        plugin_path = Path(plugin_path)
        manifest = self.load_manifest(plugin_path)

        if not self.is_enabled(manifest.id):
            raise PluginDisabledError(f"Plugin '{manifest.id}' is disabled", plugin_id=manifest.id)

        if manifest.entry:
            plugin_class = self.load_plugin_class(plugin_path, manifest.entry)
        else:
            plugin_class = BasePlugin

        # Plugin-specific config, with manifest defaults filled in
        config = dict(self.plugin_config.get(manifest.id, {}))
        for field_name, field_def in manifest.config.items():
            if field_name not in config and field_def.default is not None:
                config[field_name] = field_def.default

        missing = [n for n, f in manifest.config.items() if f.required and n not in config]
        if missing:
            raise PluginLoadFailedError(
                f"Plugin '{manifest.id}' is missing required config: {', '.join(missing)}",
                plugin_id=manifest.id,
            )

        return LoadedPlugin(
            manifest=manifest,
            plugin_class=plugin_class,
            plugin_path=plugin_path,
            config=config,
            enabled=manifest.enabled_by_default,
        )

    @staticmethod
    def get_default_plugin_dirs() -> list[Path]:
        """Get default plugin directories.

        Returns:
            List of default plugin directories:
            - ~/.sdd-workflow/plugins (global)
            - ./.plugins (local to project)
        """
        return [
            Path.home() / ".sdd-workflow" / "plugins",
            Path.cwd() / ".plugins",
        ]
