"""Tools contributed by plugins.

Provides:
- Tool registrations with JSON-schema validated input
- A registry that executes tools and tracks per-tool statistics
- BaseTool for plugins that prefer class-based tools
"""

from .base import (
    BaseTool,
    PermissionType,
    ToolCategory,
    ToolExecutionContext,
    ToolPermission,
    ToolRegistration,
    ToolResult,
    ToolStatus,
)
from .registry import ToolRegistry, ToolStats

__all__ = [
    "BaseTool",
    "PermissionType",
    "ToolCategory",
    "ToolExecutionContext",
    "ToolPermission",
    "ToolRegistration",
    "ToolRegistry",
    "ToolResult",
    "ToolStats",
    "ToolStatus",
]
