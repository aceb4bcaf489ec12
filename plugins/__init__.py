"""Plugin system for extending the workflow engine.

Plugins contribute hooks (run around phase transitions), tools (callable
operations) and steering documents (guidance templates).

Plugin Structure:
    ~/.sdd-workflow/plugins/
    └── quality_gate/
        ├── plugin.yaml        # Manifest with metadata and contributions
        ├── plugin.py          # Class extending BasePlugin with handler methods
        └── steering/          # Optional template files

Example plugin.yaml:
    id: quality-gate
    version: 1.0.0
    description: Block design until requirements are complete
    entry: plugin.QualityGatePlugin

    hooks:
      - name: pre-design
        type: validator
        handler: check_requirements
        priority: 150

    tools:
      - name: count-requirements
        description: Count requirement items in a document
        handler: count_requirements
        category: quality
        input_schema:
          type: object
          required: [text]
          properties:
            text: {type: string}

    steering:
      - name: python-style
        type: technical
        mode: conditional
        patterns: ["*.py"]
        template: ./steering/python.md
"""

from .base import BasePlugin
from .hooks import (
    ConditionOperator,
    HookCondition,
    HookExecutionContext,
    HookPhase,
    HookRegistration,
    HookRegistry,
    HookResult,
    HookType,
)
from .loader import PluginLoader
from .manager import PluginContributions, PluginManager
from .manifest import PluginManifest
from .registry import LoadedPlugin, PluginRecord, PluginRegistry, PluginState

__all__ = [
    "BasePlugin",
    "ConditionOperator",
    "HookCondition",
    "HookExecutionContext",
    "HookPhase",
    "HookRegistration",
    "HookRegistry",
    "HookResult",
    "HookType",
    "LoadedPlugin",
    "PluginContributions",
    "PluginLoader",
    "PluginManager",
    "PluginManifest",
    "PluginRecord",
    "PluginRegistry",
    "PluginState",
]
