"""Rich output helpers for the sdd CLI."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from schemas.workflow_state import ApprovalStatus, Phase, WorkflowMetrics, WorkflowState

console = Console()
error_console = Console(stderr=True)

STATUS_STYLES = {
    ApprovalStatus.PENDING: "dim",
    ApprovalStatus.IN_PROGRESS: "yellow",
    ApprovalStatus.APPROVED: "green",
    ApprovalStatus.REJECTED: "red",
}


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {message}")


def print_json(data: Any) -> None:
    """Print formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def print_workflow(state: WorkflowState, metrics: WorkflowMetrics) -> None:
    """Print the phase table and progress for a workflow."""
    table = Table(title=f"Workflow: {state.project_path}")
    table.add_column("Phase", style="cyan")
    table.add_column("Status")
    table.add_column("Updated")
    table.add_column("Feedback")

    for phase in Phase.order():
        record = state.record(phase)
        style = STATUS_STYLES[record.status]
        marker = "▶ " if phase == state.current_phase else "  "
        table.add_row(
            f"{marker}{phase.value}",
            f"[{style}]{record.status.value}[/{style}]",
            record.updated_at.strftime("%Y-%m-%d %H:%M"),
            record.feedback or "",
        )

    console.print(table)
    console.print(
        f"Progress: {metrics.phases_completed}/{metrics.total_phases} "
        f"({metrics.completion_percentage:.0f}%)  State: [bold]{state.state.value}[/bold]"
    )
    for blocker in metrics.blockers:
        print_warning(blocker)
