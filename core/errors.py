"""Error kinds raised by the workflow engine.

Every error carries a stable ``code`` so a transport layer can map it to a
wire-level error without inspecting the message.
"""

from typing import Any


class WorkflowEngineError(Exception):
    """Base class for engine errors."""

    code = "WORKFLOW_ENGINE_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# State machine (caller misuse, never retried)


class AlreadyInitializedError(WorkflowEngineError):
    code = "ALREADY_INITIALIZED"


class NotInitializedError(WorkflowEngineError):
    code = "NOT_INITIALIZED"


class PhaseMismatchError(WorkflowEngineError):
    code = "PHASE_MISMATCH"


class InvalidTransitionError(WorkflowEngineError):
    code = "INVALID_TRANSITION"


class InvalidRollbackTargetError(WorkflowEngineError):
    code = "INVALID_ROLLBACK_TARGET"


class PersistenceError(WorkflowEngineError):
    """The state was mutated in memory but could not be written."""

    code = "PERSISTENCE_FAILED"


# Tools


class ToolNotFoundError(WorkflowEngineError):
    code = "TOOL_NOT_FOUND"


class SchemaViolationError(WorkflowEngineError):
    code = "SCHEMA_VIOLATION"


# Plugin units (isolated, logged, non-fatal to their container)


class PluginLoadFailedError(WorkflowEngineError):
    code = "PLUGIN_LOAD_FAILED"


class PluginDisabledError(PluginLoadFailedError):
    code = "PLUGIN_DISABLED"


class HookHandlerFailedError(WorkflowEngineError):
    code = "HOOK_HANDLER_FAILED"


class SteeringRenderFailedError(WorkflowEngineError):
    code = "STEERING_RENDER_FAILED"
