"""sdd CLI.

Main command-line interface for driving project workflows.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from cli.sdd.engine import get_engine
from cli.sdd.output import (
    console,
    print_error,
    print_info,
    print_json,
    print_success,
    print_warning,
    print_workflow,
)
from core.errors import WorkflowEngineError
from pipeline.config import get_config, setup_logging
from schemas.workflow_state import Phase

app = typer.Typer(
    name="sdd",
    help="Spec-driven development workflow: phases, approvals and plugins.",
    no_args_is_help=True,
)

# Register sub-apps
from cli.commands.plugins import plugins_app
from cli.commands.steering import steering_app
from cli.commands.tools import tools_app

app.add_typer(plugins_app, name="plugins")
app.add_typer(tools_app, name="tools")
app.add_typer(steering_app, name="steering")


def _project_key(project: Path) -> str:
    return str(project.expanduser().resolve())


def _parse_phase(value: str) -> Phase:
    try:
        return Phase(value.lower())
    except ValueError:
        names = ", ".join(p.value for p in Phase.order())
        print_error(f"Unknown phase '{value}'. Use one of: {names}")
        raise typer.Exit(1)


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging("DEBUG" if verbose else get_config().logging.log_level)


@app.command()
def init(
    project: Path = typer.Argument(Path("."), help="Project directory"),
) -> None:
    """Start a workflow for a project at the init phase.

    Example:
        sdd init ./my-service
    """
    engine = get_engine()
    try:
        state = engine.workflow.initialize(_project_key(project))
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Initialized workflow for {state.project_path}")
    for step in engine.workflow.get_next_steps(state):
        print_info(step)


@app.command()
def status(
    project: Path = typer.Argument(Path("."), help="Project directory"),
    as_json: bool = typer.Option(False, "--json", help="Print raw state as JSON"),
) -> None:
    """Show phase statuses and progress."""
    engine = get_engine(load_plugins=False)
    try:
        state = engine.workflow.load(_project_key(project))
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    if as_json:
        print_json(state.model_dump(mode="json"))
        return

    print_workflow(state, engine.workflow.get_workflow_metrics(state))


@app.command()
def approve(
    phase: str = typer.Argument(..., help="Phase to approve (must be current)"),
    project: Path = typer.Option(Path("."), "--project", "-p", help="Project directory"),
) -> None:
    """Approve the current phase.

    Example:
        sdd approve requirements -p ./my-service
    """
    target = _parse_phase(phase)
    engine = get_engine()
    try:
        state = engine.workflow.load(_project_key(project))
        state = engine.workflow.approve_phase(state, target)
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Approved {target.value}")
    for step in engine.workflow.get_next_steps(state):
        print_info(step)


@app.command()
def reject(
    phase: str = typer.Argument(..., help="Phase to reject (must be current)"),
    feedback: str = typer.Option(..., "--feedback", "-f", help="What needs to change"),
    project: Path = typer.Option(Path("."), "--project", "-p", help="Project directory"),
) -> None:
    """Reject the current phase with feedback."""
    target = _parse_phase(phase)
    engine = get_engine()
    try:
        state = engine.workflow.load(_project_key(project))
        engine.workflow.reject_phase(state, target, feedback)
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Rejected {target.value}: {feedback}")


@app.command()
def progress(
    phase: str = typer.Argument(..., help="Phase to enter (must be the next phase)"),
    project: Path = typer.Option(Path("."), "--project", "-p", help="Project directory"),
) -> None:
    """Progress to the next phase once the current one is approved.

    Example:
        sdd progress design -p ./my-service
    """
    target = _parse_phase(phase)
    engine = get_engine()
    try:
        state = engine.workflow.load(_project_key(project))
        state = engine.workflow.progress_to_phase(state, target)
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Now in {state.current_phase.value}")
    for step in engine.workflow.get_next_steps(state):
        print_info(step)


@app.command()
def rollback(
    phase: str = typer.Argument(..., help="Earlier phase to return to"),
    reason: str = typer.Option(..., "--reason", "-r", help="Why the rollback is needed"),
    project: Path = typer.Option(Path("."), "--project", "-p", help="Project directory"),
) -> None:
    """Return to an earlier phase; later phases go back to pending."""
    target = _parse_phase(phase)
    engine = get_engine()
    try:
        state = engine.workflow.load(_project_key(project))
        state = engine.workflow.rollback_to_phase(state, target, reason)
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    print_success(f"Rolled back to {state.current_phase.value}")


@app.command()
def check(
    project: Path = typer.Argument(Path("."), help="Project directory"),
) -> None:
    """Validate a workflow record against the phase invariants."""
    engine = get_engine(load_plugins=False)
    try:
        state = engine.workflow.load(_project_key(project))
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    report = engine.workflow.validate_integrity(state)
    for violation in report.violations:
        print_error(violation)
    for recommendation in report.recommendations:
        print_info(recommendation)

    if not report.valid:
        raise typer.Exit(1)
    print_success("Workflow state is consistent")


@app.command()
def history(
    project: Path = typer.Argument(Path("."), help="Project directory"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show only the last N entries"),
) -> None:
    """Show the audit trail of a workflow."""
    engine = get_engine(load_plugins=False)
    try:
        state = engine.workflow.load(_project_key(project))
    except WorkflowEngineError as e:
        print_error(e.message)
        raise typer.Exit(1)

    entries = engine.workflow.get_audit_trail(state)
    if limit:
        entries = entries[-limit:]

    table = Table(title="Workflow History")
    table.add_column("When")
    table.add_column("Action", style="cyan")
    table.add_column("From")
    table.add_column("To")
    table.add_column("By")
    table.add_column("Reason")
    for entry in entries:
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.action.value,
            entry.from_phase.value,
            entry.to_phase.value,
            entry.triggered_by,
            entry.reason or "",
        )
    console.print(table)


@app.command()
def projects() -> None:
    """List projects with a stored workflow."""
    engine = get_engine(load_plugins=False)
    paths = engine.workflow.store.list_projects()
    if not paths:
        print_warning(f"No workflows found in {engine.workflow.store.state_dir}")
        return

    table = Table(title="Workflows")
    table.add_column("Project", style="cyan")
    table.add_column("Phase")
    table.add_column("Progress", justify="right")
    for path in paths:
        try:
            state = engine.workflow.load(path)
        except WorkflowEngineError as e:
            print_error(e.message)
            continue
        metrics = engine.workflow.get_workflow_metrics(state)
        table.add_row(path, state.current_phase.value, f"{metrics.completion_percentage:.0f}%")
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
