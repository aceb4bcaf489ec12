"""Workflow state schema.

Persisted representation of a project's progress through the five
approval-gated phases.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Phase(str, Enum):
    """Workflow phases, in order."""

    INIT = "init"
    REQUIREMENTS = "requirements"
    DESIGN = "design"
    TASKS = "tasks"
    IMPLEMENTATION = "implementation"

    @classmethod
    def order(cls) -> list["Phase"]:
        """Return all phases in workflow order."""
        return list(cls)

    @property
    def position(self) -> int:
        return Phase.order().index(self)

    def precedes(self, other: "Phase") -> bool:
        return self.position < other.position


def next_phase(phase: Phase) -> Phase | None:
    """Return the phase after ``phase``, or None for the last phase."""
    phases = Phase.order()
    idx = phases.index(phase)
    return phases[idx + 1] if idx + 1 < len(phases) else None


class ApprovalStatus(str, Enum):
    """Per-phase approval status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowStatus(str, Enum):
    """Overall workflow status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TransitionAction(str, Enum):
    """Kinds of recorded workflow mutations."""

    INITIALIZE = "initialize"
    APPROVE = "approve"
    REJECT = "reject"
    PROGRESS = "progress"
    ROLLBACK = "rollback"


class PhaseRecord(BaseModel):
    """Approval record for a single phase."""

    phase: Phase = Field(..., description="Phase this record belongs to")
    status: ApprovalStatus = Field(ApprovalStatus.PENDING, description="Approval status")
    feedback: str | None = Field(None, description="Reviewer feedback (set on rejection)")

    started_at: datetime | None = Field(None, description="When work on the phase started")
    approved_at: datetime | None = Field(None, description="When the phase was approved")
    rejected_at: datetime | None = Field(None, description="When the phase was last rejected")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last status change")


class TransitionRecord(BaseModel):
    """Audit entry for one workflow mutation."""

    timestamp: datetime = Field(default_factory=datetime.now)
    action: TransitionAction
    from_phase: Phase
    to_phase: Phase
    triggered_by: str = Field("user", description="Who or what triggered the change")
    reason: str | None = Field(None, description="Feedback or rollback reason")


class WorkflowState(BaseModel):
    """Complete workflow state for one project.

    Identity is the project path. The record is created once, replaced after
    every mutation and never deleted.
    """

    project_path: str = Field(..., description="Project root; identifies the workflow")
    current_phase: Phase = Field(Phase.INIT, description="Phase currently being worked on")
    phases: dict[Phase, PhaseRecord] = Field(
        default_factory=dict,
        description="Approval record per phase",
    )
    state: WorkflowStatus = Field(WorkflowStatus.IN_PROGRESS, description="Overall status")

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    history: list[TransitionRecord] = Field(
        default_factory=list,
        description="Audit trail of mutations, oldest first",
    )

    @classmethod
    def new(cls, project_path: str) -> "WorkflowState":
        """Create a fresh state at INIT with every other phase pending."""
        now = datetime.now()
        phases = {phase: PhaseRecord(phase=phase, updated_at=now) for phase in Phase.order()}
        phases[Phase.INIT].status = ApprovalStatus.IN_PROGRESS
        phases[Phase.INIT].started_at = now
        return cls(
            project_path=project_path,
            current_phase=Phase.INIT,
            phases=phases,
            created_at=now,
            updated_at=now,
        )

    def record(self, phase: Phase) -> PhaseRecord:
        """Get the approval record for ``phase``, creating it if missing."""
        if phase not in self.phases:
            self.phases[phase] = PhaseRecord(phase=phase)
        return self.phases[phase]

    def status_of(self, phase: Phase) -> ApprovalStatus:
        return self.record(phase).status

    def set_status(self, phase: Phase, status: ApprovalStatus) -> PhaseRecord:
        """Set the status of ``phase`` and stamp the change."""
        now = datetime.now()
        rec = self.record(phase)
        rec.status = status
        rec.updated_at = now
        self.updated_at = now
        return rec

    def approved_phases(self) -> list[Phase]:
        return [p for p in Phase.order() if self.status_of(p) == ApprovalStatus.APPROVED]


class WorkflowMetrics(BaseModel):
    """Progress summary derived from the approval map."""

    current_phase: Phase
    phases_completed: int
    total_phases: int
    completion_percentage: float
    next_phase: Phase | None = None
    can_progress: bool = False
    is_complete: bool = False
    blockers: list[str] = Field(default_factory=list)


class IntegrityReport(BaseModel):
    """Result of checking a state against the workflow invariants."""

    valid: bool
    violations: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
