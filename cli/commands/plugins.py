"""Plugin CLI commands.

Inspect plugins discovered in the configured plugin directories.
"""

import typer
from rich.console import Console
from rich.table import Table

from cli.sdd.engine import get_engine
from plugins.registry import PluginState

console = Console()

plugins_app = typer.Typer(
    name="plugins",
    help="Inspect loaded plugins.",
)

STATE_STYLES = {
    PluginState.ACTIVE: "green",
    PluginState.FAILED: "red",
    PluginState.CLEARED: "dim",
}


@plugins_app.command("list")
def list_plugins() -> None:
    """List discovered plugins and their lifecycle state.

    Examples:
        sdd plugins list
    """
    engine = get_engine()
    records = engine.plugins.list_plugins()

    if not records and not engine.plugins.load_errors:
        console.print("[yellow]No plugins found[/yellow]")
        dirs = ", ".join(str(d) for d in engine.plugins.loader.plugin_dirs)
        console.print(f"[dim]Searched: {dirs}[/dim]")
        return

    table = Table(title="Plugins")
    table.add_column("Id", style="cyan")
    table.add_column("Version")
    table.add_column("State")
    table.add_column("Hooks", justify="right")
    table.add_column("Tools", justify="right")
    table.add_column("Steering", justify="right")

    for record in sorted(records, key=lambda r: r.id):
        style = STATE_STYLES.get(record.state, "yellow")
        table.add_row(
            record.id,
            record.loaded.version,
            f"[{style}]{record.state.value}[/{style}]",
            str(len(engine.hooks.get_hooks_by_plugin(record.id))),
            str(len(engine.tools.get_tools_by_plugin(record.id))),
            str(len(engine.steering.get_steering_documents_by_plugin(record.id))),
        )

    console.print(table)

    for name, error in sorted(engine.plugins.load_errors.items()):
        console.print(f"[red]✗[/red] {name}: {error}")


@plugins_app.command("show")
def show(
    plugin_id: str = typer.Argument(..., help="Plugin id"),
) -> None:
    """Show a plugin's manifest and contributions.

    Example:
        sdd plugins show quality-gate
    """
    engine = get_engine()
    record = engine.plugins.get_plugin(plugin_id)

    if record is None:
        console.print(f"[red]Plugin '{plugin_id}' is not loaded[/red]")
        raise typer.Exit(1)

    manifest = record.loaded.manifest
    console.print(f"\n[bold cyan]{manifest.name}[/bold cyan] v{manifest.version} ({manifest.id})")
    if manifest.author:
        console.print(f"[dim]by {manifest.author}[/dim]")
    if manifest.description:
        console.print(f"\n{manifest.description}")
    console.print(f"\nState: {record.state.value}")
    if record.error:
        console.print(f"[red]Error: {record.error}[/red]")

    hooks = engine.hooks.get_hooks_by_plugin(plugin_id)
    if hooks:
        console.print("\n[bold]Hooks[/bold]")
        for hook in hooks:
            console.print(f"  {hook.name} ({hook.type.value}, priority {hook.priority})")

    tools = engine.tools.get_tools_by_plugin(plugin_id)
    if tools:
        console.print("\n[bold]Tools[/bold]")
        for tool in tools:
            console.print(f"  {tool.name} [{tool.category.value}] - {tool.description}")

    documents = engine.steering.get_steering_documents_by_plugin(plugin_id)
    if documents:
        console.print("\n[bold]Steering documents[/bold]")
        for document in documents:
            console.print(f"  {document.name} ({document.mode.value}, priority {document.priority})")
