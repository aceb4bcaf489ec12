"""Tool CLI commands.

List and run tools contributed by plugins.
"""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cli.sdd.engine import get_engine
from core.errors import WorkflowEngineError
from tools.base import ToolCategory, ToolExecutionContext

console = Console()

tools_app = typer.Typer(
    name="tools",
    help="List and run plugin tools.",
)


@tools_app.command("list")
def list_tools(
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Filter by category (sdd, quality, template, ...)",
    ),
) -> None:
    """List registered tools.

    Examples:
        sdd tools list
        sdd tools list --category quality
    """
    engine = get_engine()

    if category:
        try:
            tools = engine.tools.get_tools_by_category(ToolCategory(category))
        except ValueError:
            names = ", ".join(c.value for c in ToolCategory)
            console.print(f"[red]Invalid category: {category}. Use one of: {names}[/red]")
            raise typer.Exit(1)
    else:
        tools = sorted(engine.tools.get_all_tools().values(), key=lambda t: t.name)

    if not tools:
        console.print("[yellow]No tools registered[/yellow]")
        return

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Plugin")
    table.add_column("Description")

    for tool in tools:
        table.add_row(tool.name, tool.category.value, tool.plugin_id, tool.description)

    console.print(table)


@tools_app.command("run")
def run(
    name: str = typer.Argument(..., help="Tool name"),
    input_json: str = typer.Option("{}", "--input", "-i", help="Tool input as a JSON object"),
) -> None:
    """Run a tool with JSON input.

    Example:
        sdd tools run count-requirements -i '{"text": "..."}'
    """
    try:
        payload = json.loads(input_json)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON input: {e}[/red]")
        raise typer.Exit(1)

    engine = get_engine()
    try:
        result = engine.tools.execute(name, payload, ToolExecutionContext(user="cli"))
    except WorkflowEngineError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]{result.status.value}: {result.error}[/red]")
        raise typer.Exit(1)

    console.print_json(json.dumps(result.output, default=str))
