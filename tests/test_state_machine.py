"""Tests for the approval workflow state machine."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from core.errors import (
    AlreadyInitializedError,
    InvalidRollbackTargetError,
    InvalidTransitionError,
    NotInitializedError,
    PersistenceError,
    PhaseMismatchError,
)
from orchestrator.state_machine import WorkflowStateMachine
from plugins.hooks import HookPhase, HookRegistration, HookRegistry, HookType
from schemas.workflow_state import ApprovalStatus, Phase, TransitionAction, WorkflowStatus


def _walk_to(machine: WorkflowStateMachine, project: str, phase: Phase):
    """Initialize and approve/progress until ``phase`` is current and in progress."""
    state = machine.initialize(project)
    for current in Phase.order():
        if current == phase:
            return state
        state = machine.approve_phase(state, current)
        state = machine.progress_to_phase(state, Phase.order()[current.position + 1])
    return state


def _hook(name: str, handler, type=HookType.VALIDATOR) -> HookRegistration:
    return HookRegistration(name=name, type=type, phase=name, handler=handler, priority=100)


# ------------------------------------------------------------------
# Initialization
# ------------------------------------------------------------------


class TestInitialize:
    def test_new_workflow_starts_at_init(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)

        assert state.current_phase == Phase.INIT
        assert state.status_of(Phase.INIT) == ApprovalStatus.IN_PROGRESS
        assert all(state.status_of(p) == ApprovalStatus.PENDING for p in Phase.order()[1:])
        assert state.state == WorkflowStatus.IN_PROGRESS
        assert [h.action for h in state.history] == [TransitionAction.INITIALIZE]

    def test_initialize_twice(self, machine: WorkflowStateMachine, project: str) -> None:
        machine.initialize(project)
        with pytest.raises(AlreadyInitializedError):
            machine.initialize(project)

    def test_load_round_trip(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        assert machine.load(project) == state

    def test_load_unknown_project(self, machine: WorkflowStateMachine, tmp_path) -> None:
        with pytest.raises(NotInitializedError):
            machine.load(str(tmp_path / "unknown"))


# ------------------------------------------------------------------
# Approval
# ------------------------------------------------------------------


class TestApproval:
    def test_init_to_requirements(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        state = machine.approve_phase(state, Phase.INIT)
        assert state.status_of(Phase.INIT) == ApprovalStatus.APPROVED
        assert state.record(Phase.INIT).approved_at is not None

        state = machine.progress_to_phase(state, Phase.REQUIREMENTS)

        assert state.current_phase == Phase.REQUIREMENTS
        assert state.status_of(Phase.REQUIREMENTS) == ApprovalStatus.IN_PROGRESS
        assert machine.load(project).current_phase == Phase.REQUIREMENTS

    def test_approve_wrong_phase(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        with pytest.raises(PhaseMismatchError):
            machine.approve_phase(state, Phase.DESIGN)

    def test_approve_twice(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)
        with pytest.raises(PhaseMismatchError, match="status is approved"):
            machine.approve_phase(state, Phase.INIT)

    def test_reject_then_reapprove(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.REQUIREMENTS)

        state = machine.reject_phase(state, Phase.REQUIREMENTS, "missing NFRs")
        assert state.status_of(Phase.REQUIREMENTS) == ApprovalStatus.REJECTED
        assert state.record(Phase.REQUIREMENTS).feedback == "missing NFRs"
        assert state.current_phase == Phase.REQUIREMENTS
        assert not machine.can_progress(state, Phase.DESIGN)

        state = machine.approve_phase(state, Phase.REQUIREMENTS)
        assert state.status_of(Phase.REQUIREMENTS) == ApprovalStatus.APPROVED
        assert state.record(Phase.REQUIREMENTS).feedback is None

    def test_reject_wrong_phase(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        with pytest.raises(PhaseMismatchError):
            machine.reject_phase(state, Phase.TASKS, "nope")

    def test_approving_implementation_completes(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.IMPLEMENTATION)
        state = machine.approve_phase(state, Phase.IMPLEMENTATION)

        assert state.state == WorkflowStatus.COMPLETED
        metrics = machine.get_workflow_metrics(state)
        assert metrics.is_complete
        assert metrics.completion_percentage == 100.0
        assert metrics.next_phase is None

    def test_input_state_not_mutated(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        before = state.model_copy(deep=True)

        machine.approve_phase(state, Phase.INIT)

        assert state == before


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------


class TestTransitions:
    def test_progress_requires_approval(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        with pytest.raises(InvalidTransitionError, match="must be approved"):
            machine.progress_to_phase(state, Phase.REQUIREMENTS)

    def test_no_skipping(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)
        with pytest.raises(InvalidTransitionError, match="not the next phase"):
            machine.progress_to_phase(state, Phase.DESIGN)

    def test_no_progress_past_final_phase(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.IMPLEMENTATION)
        state = machine.approve_phase(state, Phase.IMPLEMENTATION)
        assert machine.check_transition(state, Phase.INIT) == "implementation is the final phase"

    def test_pre_hook_veto(self, hooks: HookRegistry, machine: WorkflowStateMachine, project: str) -> None:
        hooks.register("gate", _hook("pre-requirements", lambda ctx: {"valid": False, "errors": ["no scope"]}))
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)

        with pytest.raises(InvalidTransitionError, match="no scope"):
            machine.progress_to_phase(state, Phase.REQUIREMENTS)

        assert machine.load(project).current_phase == Phase.INIT

    def test_failing_hook_does_not_block(self, hooks: HookRegistry, machine: WorkflowStateMachine, project: str) -> None:
        def boom(ctx):
            raise RuntimeError("plugin bug")

        hooks.register("buggy", _hook("pre-requirements", boom))
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)

        state = machine.progress_to_phase(state, Phase.REQUIREMENTS)

        assert state.current_phase == Phase.REQUIREMENTS

    def test_hook_order_and_payload(self, hooks: HookRegistry, machine: WorkflowStateMachine, project: str) -> None:
        seen: list[tuple[str, dict]] = []
        hooks.register("obs", _hook("pre-requirements", lambda ctx: seen.append(("pre", dict(ctx.data))), HookType.OBSERVER))
        hooks.register("obs", _hook("post-requirements", lambda ctx: seen.append(("post", dict(ctx.data))), HookType.OBSERVER))
        machine.register_generator(Phase.REQUIREMENTS, lambda state, data: {"document": "requirements.md"})

        state = machine.approve_phase(machine.initialize(project), Phase.INIT)
        machine.progress_to_phase(state, Phase.REQUIREMENTS, actor="alice")

        assert [stage for stage, _ in seen] == ["pre", "post"]
        pre = seen[0][1]
        assert pre["from_phase"] == "init"
        assert pre["to_phase"] == "requirements"
        assert pre["actor"] == "alice"
        assert seen[1][1]["deliverables"] == {"document": "requirements.md"}

    def test_generator_failure_is_contained(self, hooks: HookRegistry, machine: WorkflowStateMachine, project: str) -> None:
        errors: list[dict] = []
        hooks.register("watch", _hook(HookPhase.ON_ERROR.value, lambda ctx: errors.append(dict(ctx.data)), HookType.OBSERVER))

        def generator(state, data):
            raise RuntimeError("template missing")

        machine.register_generator(Phase.REQUIREMENTS, generator)
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)

        state = machine.progress_to_phase(state, Phase.REQUIREMENTS)

        assert state.current_phase == Phase.REQUIREMENTS
        assert errors == [{"project_path": project, "phase": "requirements", "error": "template missing"}]

    def test_persistence_failure(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.approve_phase(machine.initialize(project), Phase.INIT)

        with patch("orchestrator.store.atomic_write_text", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                machine.progress_to_phase(state, Phase.REQUIREMENTS)

        assert machine.load(project).current_phase == Phase.INIT


# ------------------------------------------------------------------
# Rollback
# ------------------------------------------------------------------


class TestRollback:
    def test_rollback_resets_later_phases(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.TASKS)

        state = machine.rollback_to_phase(state, Phase.REQUIREMENTS, "scope changed")

        assert state.current_phase == Phase.REQUIREMENTS
        assert state.status_of(Phase.INIT) == ApprovalStatus.APPROVED
        assert state.status_of(Phase.REQUIREMENTS) == ApprovalStatus.IN_PROGRESS
        assert state.status_of(Phase.DESIGN) == ApprovalStatus.PENDING
        assert state.status_of(Phase.TASKS) == ApprovalStatus.PENDING
        assert state.history[-1].action == TransitionAction.ROLLBACK
        assert state.history[-1].reason == "scope changed"
        assert machine.validate_integrity(state).valid

    def test_rollback_then_forward_again(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.DESIGN)
        state = machine.rollback_to_phase(state, Phase.REQUIREMENTS, "redo")

        state = machine.approve_phase(state, Phase.REQUIREMENTS)
        state = machine.progress_to_phase(state, Phase.DESIGN)

        assert state.current_phase == Phase.DESIGN
        assert state.status_of(Phase.DESIGN) == ApprovalStatus.IN_PROGRESS

    def test_rollback_from_completed_workflow(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.IMPLEMENTATION)
        state = machine.approve_phase(state, Phase.IMPLEMENTATION)

        state = machine.rollback_to_phase(state, Phase.DESIGN, "bug in design")

        assert state.state == WorkflowStatus.IN_PROGRESS
        assert state.status_of(Phase.IMPLEMENTATION) == ApprovalStatus.PENDING
        assert machine.validate_integrity(state).valid

    @pytest.mark.parametrize("target", [Phase.REQUIREMENTS, Phase.TASKS])
    def test_rollback_target_must_precede(self, machine: WorkflowStateMachine, project: str, target: Phase) -> None:
        state = _walk_to(machine, project, Phase.REQUIREMENTS)
        with pytest.raises(InvalidRollbackTargetError):
            machine.rollback_to_phase(state, target, "nope")


# ------------------------------------------------------------------
# Derived views
# ------------------------------------------------------------------


class TestDerivedViews:
    def test_metrics(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.DESIGN)

        metrics = machine.get_workflow_metrics(state)

        assert metrics.current_phase == Phase.DESIGN
        assert metrics.phases_completed == 2
        assert metrics.total_phases == 5
        assert metrics.completion_percentage == 40.0
        assert metrics.next_phase == Phase.TASKS
        assert not metrics.can_progress
        assert metrics.blockers == ["design awaits approval"]

    def test_integrity_detects_corruption(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.initialize(project)
        state.phases[Phase.DESIGN].status = ApprovalStatus.APPROVED

        report = machine.validate_integrity(state)

        assert not report.valid
        assert "design follows init but is approved" in report.violations

    def test_next_steps_mention_rejection_feedback(self, machine: WorkflowStateMachine, project: str) -> None:
        state = machine.reject_phase(machine.initialize(project), Phase.INIT, "add a summary")

        steps = machine.get_next_steps(state)

        assert steps[0] == "Address rejection feedback: add a summary"

    def test_audit_trail(self, machine: WorkflowStateMachine, project: str) -> None:
        state = _walk_to(machine, project, Phase.REQUIREMENTS)

        actions = [entry.action for entry in machine.get_audit_trail(state)]

        assert actions == [TransitionAction.INITIALIZE, TransitionAction.APPROVE, TransitionAction.PROGRESS]
