"""Approval-gated workflow state machine.

A project moves through INIT -> REQUIREMENTS -> DESIGN -> TASKS ->
IMPLEMENTATION. Each phase must be approved before the next can start;
rollback is the only way back.

Every operation takes a WorkflowState, returns the new state and persists
it. The input state is never modified, so a failed operation leaves the
caller's copy untouched.
"""

import logging
from datetime import datetime
from typing import Any, Callable

from core.errors import (
    AlreadyInitializedError,
    InvalidRollbackTargetError,
    InvalidTransitionError,
    PhaseMismatchError,
)
from plugins.hooks import HookExecutionContext, HookPhase, HookRegistry, HookResult
from schemas.workflow_state import (
    ApprovalStatus,
    IntegrityReport,
    Phase,
    TransitionAction,
    TransitionRecord,
    WorkflowMetrics,
    WorkflowState,
    WorkflowStatus,
    next_phase,
)

from .store import WorkflowStore

logger = logging.getLogger(__name__)

# Produces phase deliverables (documents, task lists) when a phase starts.
# Receives the state being entered and the pre-hook payload.
DocumentGenerator = Callable[[WorkflowState, dict[str, Any]], "dict[str, Any] | None"]

APPROVABLE = {ApprovalStatus.IN_PROGRESS, ApprovalStatus.REJECTED}

NEXT_STEPS: dict[Phase, tuple[list[str], list[str]]] = {
    # phase: (steps while awaiting approval, steps once approved)
    Phase.INIT: (
        ["Describe the project and approve the init phase"],
        ["Progress to requirements to generate the requirements document"],
    ),
    Phase.REQUIREMENTS: (
        ["Review and approve the requirements document", "Progress to design after requirements approval"],
        ["Progress to design to generate the technical design"],
    ),
    Phase.DESIGN: (
        ["Review and approve the design document", "Progress to tasks after design approval"],
        ["Progress to tasks to generate implementation tasks"],
    ),
    Phase.TASKS: (
        ["Review and approve the task breakdown", "Begin implementation after tasks approval"],
        ["Progress to implementation and follow the task breakdown"],
    ),
    Phase.IMPLEMENTATION: (
        [
            "Continue implementation following the approved tasks",
            "Run quality checks as work lands",
            "Approve implementation when all tasks are done",
        ],
        ["Workflow complete"],
    ),
}


class WorkflowStateMachine:
    """State machine for the phase approval workflow.

    Manages:
    - Legal phase transitions and approval gates
    - Pre/post hooks around transitions
    - Document generation on phase entry
    - State persistence after every mutation
    """

    def __init__(
        self,
        store: WorkflowStore,
        hooks: HookRegistry,
        generators: dict[Phase, DocumentGenerator] | None = None,
    ) -> None:
        """Initialize state machine.

        Args:
            store: Persistence for workflow records
            hooks: Registry whose pre-/post-<phase> hooks fire on transitions
            generators: Deliverable generators by phase
        """
        self.store = store
        self.hooks = hooks
        self.generators: dict[Phase, DocumentGenerator] = dict(generators or {})

    def register_generator(self, phase: Phase, generator: DocumentGenerator) -> None:
        if phase in self.generators:
            logger.warning("Replacing document generator for %s", phase.value)
        self.generators[phase] = generator

    # Lifecycle

    def initialize(self, project_path: str) -> WorkflowState:
        """Create a workflow at INIT for a project.

        Raises:
            AlreadyInitializedError: If the project already has a workflow
            PersistenceError: If the new state cannot be written
        """
        if self.store.exists(project_path):
            raise AlreadyInitializedError(
                f"Workflow already initialized for {project_path}",
                project_path=project_path,
            )

        state = WorkflowState.new(project_path)
        self._record(state, TransitionAction.INITIALIZE, Phase.INIT, Phase.INIT, "system")
        self.store.save(state)
        logger.info("Initialized workflow for %s", project_path)
        return state

    def load(self, project_path: str) -> WorkflowState:
        """Load the persisted state for a project.

        Raises:
            NotInitializedError: If the project has no workflow
        """
        return self.store.load(project_path)

    # Approval

    def approve_phase(self, state: WorkflowState, phase: Phase, actor: str = "user") -> WorkflowState:
        """Approve the current phase.

        Approving IMPLEMENTATION completes the workflow. A rejected phase can
        be approved once its feedback is addressed.

        Raises:
            PhaseMismatchError: If ``phase`` is not the current phase or is not
                awaiting approval
        """
        phase = Phase(phase)
        self._require_current(state, phase, "approve")
        status = state.status_of(phase)
        if status not in APPROVABLE:
            raise PhaseMismatchError(
                f"Cannot approve {phase.value}: status is {status.value}",
                phase=phase.value,
                status=status.value,
            )

        new = state.model_copy(deep=True)
        record = new.set_status(phase, ApprovalStatus.APPROVED)
        record.approved_at = record.updated_at
        record.feedback = None
        if phase == Phase.IMPLEMENTATION:
            new.state = WorkflowStatus.COMPLETED

        self._record(new, TransitionAction.APPROVE, phase, phase, actor)
        self.store.save(new)
        logger.info("Approved %s for %s", phase.value, new.project_path)
        return new

    def reject_phase(self, state: WorkflowState, phase: Phase, feedback: str, actor: str = "user") -> WorkflowState:
        """Reject the current phase with feedback. Never advances.

        Raises:
            PhaseMismatchError: If ``phase`` is not the current phase
        """
        phase = Phase(phase)
        self._require_current(state, phase, "reject")

        new = state.model_copy(deep=True)
        record = new.set_status(phase, ApprovalStatus.REJECTED)
        record.rejected_at = record.updated_at
        record.approved_at = None
        record.feedback = feedback
        new.state = WorkflowStatus.IN_PROGRESS

        self._record(new, TransitionAction.REJECT, phase, phase, actor, reason=feedback)
        self.store.save(new)
        logger.info("Rejected %s for %s: %s", phase.value, new.project_path, feedback)
        return new

    def _require_current(self, state: WorkflowState, phase: Phase, action: str) -> None:
        if phase != state.current_phase:
            raise PhaseMismatchError(
                f"Cannot {action} {phase.value}: current phase is {state.current_phase.value}",
                phase=phase.value,
                current_phase=state.current_phase.value,
            )

    # Transitions

    def check_transition(self, state: WorkflowState, target: Phase) -> str | None:
        """Explain why ``target`` cannot be entered, or None if it can."""
        target = Phase(target)
        expected = next_phase(state.current_phase)
        if expected is None:
            return f"{state.current_phase.value} is the final phase"
        if target != expected:
            return f"{target.value} is not the next phase after {state.current_phase.value} (expected {expected.value})"
        status = state.status_of(state.current_phase)
        if status != ApprovalStatus.APPROVED:
            return f"{state.current_phase.value} must be approved before progressing (status: {status.value})"
        return None

    def can_progress(self, state: WorkflowState, target: Phase) -> bool:
        return self.check_transition(state, target) is None

    def progress_to_phase(self, state: WorkflowState, target: Phase, actor: str = "user") -> WorkflowState:
        """Move to the next phase.

        Fires ``pre-<target>`` before anything changes; a pre-hook payload with
        ``valid: False`` vetoes the move. Enters the phase, runs its document
        generator, fires ``post-<target>`` and persists.

        Raises:
            InvalidTransitionError: If ``target`` is not the immediate successor
                of an approved current phase, or a pre-hook vetoed it
            PersistenceError: If the new state cannot be written
        """
        target = Phase(target)
        reason = self.check_transition(state, target)
        if reason:
            raise InvalidTransitionError(
                f"Cannot progress to {target.value}: {reason}",
                from_phase=state.current_phase.value,
                to_phase=target.value,
            )

        source = state.current_phase
        payload = {
            "project_path": state.project_path,
            "from_phase": source.value,
            "to_phase": target.value,
            "actor": actor,
        }

        pre = self._fire(HookPhase.pre(target), payload)
        pre_data = pre.data or {}
        if pre_data.get("valid") is False:
            errors = pre_data.get("errors") or []
            raise InvalidTransitionError(
                f"Transition to {target.value} rejected by pre-{target.value} hooks"
                + (f": {'; '.join(str(e) for e in errors)}" if errors else ""),
                from_phase=source.value,
                to_phase=target.value,
                errors=errors,
            )

        new = state.model_copy(deep=True)
        new.current_phase = target
        record = new.set_status(target, ApprovalStatus.IN_PROGRESS)
        record.started_at = record.updated_at
        record.feedback = None

        deliverables = self._generate(new, target, pre_data)

        self._fire(HookPhase.post(target), {**pre_data, **payload, "deliverables": deliverables})
        self._record(new, TransitionAction.PROGRESS, source, target, actor)
        self.store.save(new)
        logger.info("Progressed %s from %s to %s", new.project_path, source.value, target.value)
        return new

    def rollback_to_phase(
        self,
        state: WorkflowState,
        target: Phase,
        reason: str,
        actor: str = "user",
    ) -> WorkflowState:
        """Return to an earlier phase.

        ``target`` goes back to IN_PROGRESS; every later phase up to and
        including the old current phase goes back to PENDING.

        Raises:
            InvalidRollbackTargetError: If ``target`` does not precede the
                current phase
        """
        target = Phase(target)
        source = state.current_phase
        if not target.precedes(source):
            raise InvalidRollbackTargetError(
                f"Cannot roll back to {target.value}: it does not precede {source.value}",
                from_phase=source.value,
                to_phase=target.value,
            )

        new = state.model_copy(deep=True)
        new.current_phase = target
        new.state = WorkflowStatus.IN_PROGRESS

        record = new.set_status(target, ApprovalStatus.IN_PROGRESS)
        record.approved_at = None
        record.feedback = None
        record.started_at = record.updated_at

        for phase in Phase.order()[target.position + 1 : source.position + 1]:
            reset = new.set_status(phase, ApprovalStatus.PENDING)
            reset.started_at = None
            reset.approved_at = None
            reset.feedback = None

        self._record(new, TransitionAction.ROLLBACK, source, target, actor, reason=reason)
        self.store.save(new)
        logger.info("Rolled back %s from %s to %s: %s", new.project_path, source.value, target.value, reason)
        return new

    # Hooks and generators

    def _fire(self, hook_phase: HookPhase, data: dict[str, Any]) -> HookResult:
        result = self.hooks.execute(
            hook_phase.value,
            HookExecutionContext(hook_name=hook_phase.value, phase=hook_phase, data=data),
        )
        if not result.success:
            logger.warning(
                "%d hook(s) failed during %s: %s",
                result.metadata.get("error_count", 0),
                hook_phase.value,
                result.error,
            )
        return result

    def _generate(self, state: WorkflowState, phase: Phase, data: dict[str, Any]) -> dict[str, Any] | None:
        """Run the phase's generator. Failures are logged, not raised."""
        generator = self.generators.get(phase)
        if generator is None:
            return None
        try:
            return generator(state, data)
        except Exception as e:
            logger.error("Document generation failed for %s (%s): %s", phase.value, state.project_path, e)
            self._fire(
                HookPhase.ON_ERROR,
                {"project_path": state.project_path, "phase": phase.value, "error": str(e)},
            )
            return {"error": str(e)}

    def _record(
        self,
        state: WorkflowState,
        action: TransitionAction,
        from_phase: Phase,
        to_phase: Phase,
        actor: str,
        reason: str | None = None,
    ) -> None:
        now = datetime.now()
        state.updated_at = now
        state.history.append(
            TransitionRecord(
                timestamp=now,
                action=action,
                from_phase=from_phase,
                to_phase=to_phase,
                triggered_by=actor,
                reason=reason,
            )
        )

    # Derived views

    def get_workflow_metrics(self, state: WorkflowState) -> WorkflowMetrics:
        """Progress summary derived only from the approval map."""
        phases = Phase.order()
        completed = len(state.approved_phases())
        upcoming = next_phase(state.current_phase)
        current_status = state.status_of(state.current_phase)

        blockers = []
        if current_status == ApprovalStatus.REJECTED:
            feedback = state.record(state.current_phase).feedback
            blockers.append(f"{state.current_phase.value} was rejected" + (f": {feedback}" if feedback else ""))
        elif current_status != ApprovalStatus.APPROVED:
            blockers.append(f"{state.current_phase.value} awaits approval")

        return WorkflowMetrics(
            current_phase=state.current_phase,
            phases_completed=completed,
            total_phases=len(phases),
            completion_percentage=round(completed / len(phases) * 100, 1),
            next_phase=upcoming,
            can_progress=upcoming is not None and current_status == ApprovalStatus.APPROVED,
            is_complete=state.status_of(Phase.IMPLEMENTATION) == ApprovalStatus.APPROVED,
            blockers=blockers,
        )

    def validate_integrity(self, state: WorkflowState) -> IntegrityReport:
        """Check a state against the workflow invariants."""
        violations = []
        recommendations = []
        current = state.current_phase

        for phase in Phase.order():
            status = state.status_of(phase)
            if phase.precedes(current) and status != ApprovalStatus.APPROVED:
                violations.append(f"{phase.value} precedes {current.value} but is {status.value}")
            if current.precedes(phase) and status != ApprovalStatus.PENDING:
                violations.append(f"{phase.value} follows {current.value} but is {status.value}")

        if state.status_of(current) == ApprovalStatus.PENDING:
            violations.append(f"current phase {current.value} has not been started")

        implementation_done = state.status_of(Phase.IMPLEMENTATION) == ApprovalStatus.APPROVED
        if implementation_done != (state.state == WorkflowStatus.COMPLETED):
            violations.append(
                f"workflow is {state.state.value} but implementation is {state.status_of(Phase.IMPLEMENTATION).value}"
            )

        status = state.status_of(current)
        if status == ApprovalStatus.IN_PROGRESS:
            recommendations.append(f"{current.value} is ready for review and approval")
        elif status == ApprovalStatus.REJECTED:
            recommendations.append(f"Address feedback on {current.value} and approve it again")
        elif status == ApprovalStatus.APPROVED and next_phase(current) is not None:
            recommendations.append(f"Progress to {next_phase(current).value}")

        return IntegrityReport(valid=not violations, violations=violations, recommendations=recommendations)

    def get_next_steps(self, state: WorkflowState) -> list[str]:
        """Human-readable guidance for the current phase."""
        pending, approved = NEXT_STEPS[state.current_phase]
        status = state.status_of(state.current_phase)
        if status == ApprovalStatus.APPROVED:
            return list(approved)
        steps = list(pending)
        if status == ApprovalStatus.REJECTED:
            feedback = state.record(state.current_phase).feedback
            steps.insert(0, f"Address rejection feedback: {feedback}" if feedback else "Address rejection feedback")
        return steps

    def get_audit_trail(self, state: WorkflowState) -> list[TransitionRecord]:
        return list(state.history)
