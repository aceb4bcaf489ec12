"""Steering CLI commands.

Preview which steering documents apply to a file.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from cli.sdd.engine import get_engine
from steering.base import SteeringContext

console = Console()

steering_app = typer.Typer(
    name="steering",
    help="Resolve plugin steering documents.",
)


def _parse_vars(values: list[str]) -> dict[str, str]:
    variables = {}
    for item in values:
        if "=" not in item:
            console.print(f"[red]Variables must be KEY=VALUE, got: {item}[/red]")
            raise typer.Exit(1)
        key, value = item.split("=", 1)
        variables[key.strip()] = value
    return variables


@steering_app.command("show")
def show(
    current_file: Optional[str] = typer.Option(None, "--file", "-f", help="File being worked on"),
    var: list[str] = typer.Option([], "--var", help="Template variable as KEY=VALUE (repeatable)"),
) -> None:
    """Render the steering documents that apply to a file.

    Examples:
        sdd steering show
        sdd steering show --file src/api/users.py --var team=payments
    """
    engine = get_engine()
    context = SteeringContext(current_file=current_file, variables=_parse_vars(var))
    results = engine.steering.get_applicable_steering_documents(context)

    if not results:
        console.print("[yellow]No steering documents apply[/yellow]")
        return

    for result in results:
        title = f"{result.document_id} [{result.type.value}, priority {result.priority}]"
        if result.conflicts_with:
            title += f" (overlaps: {', '.join(result.conflicts_with)})"
        console.print(Panel(Markdown(result.content), title=title, title_align="left"))
