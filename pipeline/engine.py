"""Assemble the workflow engine from configuration.

Every call builds fresh registries, so tests and embedding applications can
run several isolated engines in one process.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from orchestrator.state_machine import DocumentGenerator, WorkflowStateMachine
from orchestrator.store import WorkflowStore
from plugins.hooks import HookRegistry
from plugins.loader import PluginLoader
from plugins.manager import PluginManager
from schemas.workflow_state import Phase
from steering.registry import SteeringRegistry
from tools.registry import ToolRegistry

from .config import Config, get_config

logger = logging.getLogger(__name__)


@dataclass
class WorkflowEngine:
    """The wired-up engine: registries, plugin manager and state machine."""

    config: Config
    hooks: HookRegistry
    tools: ToolRegistry
    steering: SteeringRegistry
    plugins: PluginManager
    workflow: WorkflowStateMachine

    def start(self) -> list[str]:
        """Load plugins. Must finish before requests are served.

        Returns:
            Ids of active plugins
        """
        if not self.config.plugins.enabled:
            logger.info("Plugin system disabled")
            return []
        return self.plugins.initialize()

    def stop(self) -> None:
        """Unload all plugins. Call only once requests have drained."""
        self.plugins.shutdown()


def build_engine(
    config: Config | None = None,
    plugin_dirs: list[Path] | None = None,
    generators: dict[Phase, DocumentGenerator] | None = None,
) -> WorkflowEngine:
    """Create an engine from configuration.

    Args:
        config: Configuration (default: global config)
        plugin_dirs: Plugin directories (default: derived from config)
        generators: Document generators by phase

    Returns:
        WorkflowEngine with plugins not yet loaded; call ``start()``
    """
    config = config or get_config()

    hooks = HookRegistry(handler_timeout=config.hooks.handler_timeout or None)
    tools = ToolRegistry(handler_timeout=config.tools.handler_timeout or None)
    steering = SteeringRegistry()

    loader = PluginLoader(
        plugin_dirs=plugin_dirs if plugin_dirs is not None else config.plugin_dirs(),
        enabled_plugins=config.plugins.enabled_plugins or None,
        disabled_plugins=config.plugins.disabled_plugins,
        plugin_config=config.plugins.plugin_config,
    )
    manager = PluginManager(hooks, tools, steering, loader=loader)

    store = WorkflowStore(Path(config.workflow.state_dir).expanduser())
    workflow = WorkflowStateMachine(store, hooks, generators=generators)

    return WorkflowEngine(
        config=config,
        hooks=hooks,
        tools=tools,
        steering=steering,
        plugins=manager,
        workflow=workflow,
    )
