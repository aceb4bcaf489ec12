"""Orchestrator module for the SDD workflow engine.

State machine-based phase orchestration with:
- Explicit phase transitions (init -> requirements -> design -> tasks -> implementation)
- Approval gates and rejection feedback
- Rollback to earlier phases
- Pre/post transition hooks
- State persistence per project
"""

from .state_machine import DocumentGenerator, WorkflowStateMachine
from .store import WorkflowStore, atomic_write_text

__all__ = [
    "DocumentGenerator",
    "WorkflowStateMachine",
    "WorkflowStore",
    "atomic_write_text",
]
