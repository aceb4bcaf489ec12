"""Schemas module for persisted workflow state.

Provides Pydantic models for:
- Phases and approval statuses
- Per-phase approval records
- Transition audit entries
- Workflow state, metrics and integrity reports
"""

from .workflow_state import (
    ApprovalStatus,
    IntegrityReport,
    Phase,
    PhaseRecord,
    TransitionAction,
    TransitionRecord,
    WorkflowMetrics,
    WorkflowState,
    WorkflowStatus,
    next_phase,
)

__all__ = [
    # Phases
    "Phase",
    "next_phase",
    # Approval
    "ApprovalStatus",
    "PhaseRecord",
    # Workflow
    "WorkflowState",
    "WorkflowStatus",
    "TransitionAction",
    "TransitionRecord",
    # Derived views
    "WorkflowMetrics",
    "IntegrityReport",
]
