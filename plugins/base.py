"""Base class for plugin entry classes."""

import logging
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from tools.base import BaseTool

    from .manifest import PluginManifest


class BasePlugin:
    """Base class for plugins.

    A plugin's manifest names handler methods on this class; the plugin
    manager resolves them after ``initialize`` and registers them with the
    hook and tool registries. Lifecycle callbacks are no-ops by default.

    Example:
        class QualityGatePlugin(BasePlugin):
            def check_requirements(self, context):
                return {"valid": bool(context.data.get("requirements"))}
    """

    def __init__(self, manifest: "PluginManifest", config: dict[str, Any] | None = None) -> None:
        self.manifest = manifest
        self.config = config or {}
        self.logger = logging.getLogger(f"plugins.{manifest.id}")

    @property
    def plugin_id(self) -> str:
        return self.manifest.id

    def initialize(self) -> None:
        """Prepare resources. Raising here marks the plugin as failed."""

    def activate(self) -> None:
        """Called once all contributions are registered."""

    def deactivate(self) -> None:
        """Called before contributions are removed on unload."""

    def dispose(self) -> None:
        """Release resources after unload."""

    def provide_tools(self) -> list["BaseTool"]:
        """Class-based tools to register in addition to manifest tools."""
        return []

    def get_handler(self, name: str) -> Callable[..., Any]:
        """Resolve a handler method declared in the manifest.

        Raises:
            AttributeError: If the plugin has no callable with that name
        """
        handler = getattr(self, name, None)
        if not callable(handler):
            raise AttributeError(f"Plugin {self.plugin_id} has no handler method '{name}'")
        return handler

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.plugin_id!r}, version={self.manifest.version!r})"
