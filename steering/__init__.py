"""Steering documents contributed by plugins.

Steering documents carry project guidance (coding standards, product
context, review checklists) that callers attach to their work. Each
document declares when it applies:

- always: included in every resolution
- conditional: included when a regex pattern matches the current file
- manual: only reachable through explicit lookup
"""

from steering.base import (
    SteeringContext,
    SteeringDocument,
    SteeringDocumentType,
    SteeringMode,
    SteeringResult,
    SteeringVariable,
)
from steering.registry import SteeringRegistry, matches_patterns, render_template

__all__ = [
    "SteeringContext",
    "SteeringDocument",
    "SteeringDocumentType",
    "SteeringMode",
    "SteeringResult",
    "SteeringVariable",
    "SteeringRegistry",
    "matches_patterns",
    "render_template",
]
