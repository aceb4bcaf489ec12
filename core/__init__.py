"""Primitives shared by every layer of the workflow engine.

Nothing in here imports from the other packages, so registries, the
plugin manager and the state machine can all depend on it.
"""

from core.errors import (
    AlreadyInitializedError,
    HookHandlerFailedError,
    InvalidRollbackTargetError,
    InvalidTransitionError,
    NotInitializedError,
    PersistenceError,
    PhaseMismatchError,
    PluginDisabledError,
    PluginLoadFailedError,
    SchemaViolationError,
    SteeringRenderFailedError,
    ToolNotFoundError,
    WorkflowEngineError,
)
from core.timeouts import call_with_timeout

__all__ = [
    "WorkflowEngineError",
    "AlreadyInitializedError",
    "NotInitializedError",
    "PhaseMismatchError",
    "InvalidTransitionError",
    "InvalidRollbackTargetError",
    "PersistenceError",
    "ToolNotFoundError",
    "SchemaViolationError",
    "PluginLoadFailedError",
    "PluginDisabledError",
    "HookHandlerFailedError",
    "SteeringRenderFailedError",
    "call_with_timeout",
]
