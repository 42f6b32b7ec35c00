"""CLI entry point for omnirelay.

A small debugging front end for the client: check the connection, list
tasks and projects, search, run ad-hoc scripts and watch the connection.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..automation.bridge import ScriptRef
from ..automation.errors import AutomationError
from ..automation.loader import ScriptLoadError
from ..client.client import OmniFocusClient
from ..client.types import SearchOptions
from ..connection.status import ConnectionStatus, ConnectionStatusChanged
from ..core.bus import EventPayload
from ..core.config import Config, ConfigError, ConfigManager
from ..runtime.logging import LogMode, bootstrap_logging
from ..util.error import format_error, format_unknown_error

T = TypeVar("T")

app = typer.Typer(
    name="omnirelay",
    help="omnirelay - OmniFocus automation client",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


def create_client(config: Config) -> OmniFocusClient:
    return OmniFocusClient(config)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"omnirelay {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """omnirelay - OmniFocus automation client."""


def _execute(
    action: Callable[[OmniFocusClient], Awaitable[T]],
    *,
    mode: LogMode = "cli",
) -> T:
    async def runner() -> T:
        config = await ConfigManager.get()
        bootstrap_logging(config, mode=mode)
        client = create_client(config)
        return await action(client)

    try:
        return asyncio.run(runner())
    except (AutomationError, ScriptLoadError, ConfigError) as e:
        console.print(f"[red]Error:[/red] {escape(format_error(e) or format_unknown_error(e))}")
        raise typer.Exit(1)


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _print_status(status: ConnectionStatus) -> None:
    marker = "[green]connected[/green]" if status.connected else "[red]disconnected[/red]"
    console.print(f"{marker}  app running: {status.app_running}  "
                  f"permissions: {status.permissions_granted}")
    console.print(f"[dim]checked {status.last_checked.isoformat()}[/dim]")
    if status.error:
        console.print(f"[yellow]{escape(status.error)}[/yellow]")


def _print_items(title: str, items: List[Any], columns: List[str]) -> None:
    if not items:
        console.print(f"[yellow]No {title.lower()} found[/yellow]")
        return
    table = Table(title=f"{title} ({len(items)})")
    for column in columns:
        table.add_column(column)
    for item in items:
        row = item if isinstance(item, dict) else {"name": item}
        table.add_row(*("" if row.get(c) is None else escape(str(row.get(c))) for c in columns))
    console.print(table)


@app.command()
def status(
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
):
    """Probe the application and show the connection status."""
    result = _execute(lambda client: client.probe())
    if json_output:
        _print_json(result.model_dump(mode="json", by_alias=True))
        return
    _print_status(result)
    if not result.connected:
        raise typer.Exit(1)


@app.command()
def tasks(
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
):
    """List all tasks."""
    items = _execute(lambda client: client.get_all_tasks())
    if json_output:
        _print_json(items)
        return
    _print_items("Tasks", items, ["id", "name", "flagged", "dueDate"])


@app.command()
def task(task_id: str = typer.Argument(..., help="Task identifier")):
    """Show one task."""
    item = _execute(lambda client: client.get_task_by_id(task_id))
    if item is None:
        console.print(f"[yellow]Task not found:[/yellow] {escape(task_id)}")
        raise typer.Exit(1)
    _print_json(item)


@app.command()
def projects(
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
):
    """List all projects."""
    items = _execute(lambda client: client.get_all_projects())
    if json_output:
        _print_json(items)
        return
    _print_items("Projects", items, ["id", "name", "status", "taskCount"])


@app.command()
def search(
    query: Optional[str] = typer.Argument(None, help="Text to match in task names and notes"),
    project: Optional[str] = typer.Option(None, "--project", help="Project identifier"),
    flagged: Optional[bool] = typer.Option(None, "--flagged/--not-flagged", help="Flag filter"),
    completed: Optional[bool] = typer.Option(
        None, "--completed/--remaining", help="Completion filter"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    offset: Optional[int] = typer.Option(None, "--offset", min=0, help="Page offset"),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
):
    """Search tasks."""
    options = SearchOptions(
        query=query,
        project_id=project,
        flagged=flagged,
        completed=completed,
        limit=limit,
        offset=offset,
    )
    page = _execute(lambda client: client.search_tasks(options))
    if json_output:
        _print_json(page.model_dump(mode="json", by_alias=True))
        return
    _print_items("Tasks", page.items, ["id", "name", "flagged", "dueDate"])
    if page.pagination.has_more:
        console.print(f"[dim]{page.pagination.returned} of {page.pagination.total} shown[/dim]")


@app.command()
def run(
    script: str = typer.Argument(..., help="Bundled script name, or inline text with --inline"),
    inline: bool = typer.Option(False, "--inline", help="Treat SCRIPT as script text"),
    param: Optional[List[str]] = typer.Option(
        None, "--param", "-p", help="Parameter as name=JSON (plain text if not JSON)"
    ),
):
    """Run a script and print its result."""
    params = {}
    for item in param or []:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            console.print(f"[red]Error:[/red] invalid parameter {escape(repr(item))}, expected name=value")
            raise typer.Exit(2)
        try:
            params[name] = json.loads(raw)
        except ValueError:
            params[name] = raw

    ref = ScriptRef.inline(script) if inline else ScriptRef.named(script)
    result = _execute(lambda client: client.run_script(ref, params))
    if result is None:
        return
    if isinstance(result, (dict, list)):
        _print_json(result)
    else:
        console.print(escape(str(result)))


@app.command()
def watch(
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", min=0.1, help="Seconds between probes"
    ),
    count: Optional[int] = typer.Option(
        None, "--count", "-n", min=1, help="Stop after this many probes"
    ),
):
    """Probe repeatedly and report connection changes until interrupted."""

    def on_change(event: EventPayload) -> None:
        props = event.properties
        state = "[green]connected[/green]" if props["connected"] else "[red]disconnected[/red]"
        detail = f" ({escape(props['error'])})" if props.get("error") else ""
        console.print(f"status changed: {state}{detail}")

    async def action(client: OmniFocusClient) -> None:
        period = interval or client.config.monitor.interval
        unsubscribe = client.bus.subscribe(ConnectionStatusChanged, on_change)
        probes = 0
        try:
            async with client:
                while count is None or probes < count:
                    _print_status(await client.probe())
                    probes += 1
                    if count is None or probes < count:
                        await asyncio.sleep(period)
        finally:
            unsubscribe()

    try:
        _execute(action, mode="watch")
    except KeyboardInterrupt:
        console.print("[dim]stopped[/dim]")


if __name__ == "__main__":
    app()
