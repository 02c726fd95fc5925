"""Command implementations for CLI."""

import asyncio
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from berth.agent.config import ConfigManager
from berth.agent.engine import StateEngine
from berth.agent.store import StateStore
from berth.errors import SpecValidationError
from berth.providers import ProviderRegistry
from berth.translate.request import translate


console = Console()

T = TypeVar("T")


class EngineSession:
    """Loads configuration and recorded state for one CLI invocation."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir or os.environ.get("BERTH_CONFIG_DIR", "./configs"))

    def load_config(self) -> ConfigManager:
        """Load configuration without touching the runtime."""
        config_manager = ConfigManager(self.config_dir)
        asyncio.run(config_manager.load())
        return config_manager

    def run(self, func: Callable[[StateEngine], Awaitable[T]]) -> T:
        """Run ``func`` against a fully wired engine."""
        return asyncio.run(self._run(func))

    async def _run(self, func: Callable[[StateEngine], Awaitable[T]]) -> T:
        config_manager = ConfigManager(self.config_dir)
        await config_manager.load()
        config = config_manager.config

        registry = ProviderRegistry()
        await registry.initialize(config)

        store = StateStore(config_manager.state_file)
        await store.load()

        try:
            return await func(StateEngine(config_manager, registry, store))
        finally:
            await registry.close()


def _run_action(
    session: EngineSession,
    description: str,
    func: Callable[[StateEngine], Awaitable[T]],
    quiet: bool = False,
) -> T:
    """Helper to run an engine action with a progress spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=quiet,
    ) as progress:
        task = progress.add_task(description, total=None)

        result = session.run(func)

        progress.update(task, completed=True)

    return result


def apply_containers(
    session: EngineSession,
    name: Optional[str],
    all_containers: bool,
    quiet: bool = False,
):
    """Apply one or all containers."""
    if all_containers:
        results: Dict[str, Optional[str]] = _run_action(
            session,
            description="Reconciling all containers...",
            func=lambda engine: engine.reconcile(),
            quiet=quiet,
        )
        if quiet:
            return

        success_count = sum(1 for error in results.values() if error is None)
        console.print(f"[green]✓[/green] Applied {success_count}/{len(results)} containers")
        for container, error in results.items():
            if error is not None:
                console.print(f"  [red]✗[/red] {container}: {error}")
        return

    state = _run_action(
        session,
        description=f"Applying container {name}...",
        func=lambda engine: engine.apply_container(name),
        quiet=quiet,
    )
    if quiet:
        return

    if state is None:
        console.print(f"[green]✓[/green] Container {name} is absent")
    elif state.exists:
        console.print(f"[green]✓[/green] Container {name} applied ({state.id[:12]})")
        if state.container_logs:
            console.print(state.container_logs, end="", markup=False, highlight=False)
    else:
        console.print(f"[green]✓[/green] Container {name} applied (not kept by the runtime)")


def destroy_container(session: EngineSession, name: str, quiet: bool = False):
    """Destroy a container."""
    removed = _run_action(
        session,
        description=f"Destroying container {name}...",
        func=lambda engine: engine.destroy_container(name),
        quiet=quiet,
    )
    if quiet:
        return
    if removed:
        console.print(f"[green]✓[/green] Container {name} destroyed")
    else:
        console.print(f"[yellow]Container {name} is not managed[/yellow]")


def _container_table(statuses: Dict[str, Dict[str, Any]]) -> Table:
    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Ensure")
    table.add_column("Running")
    table.add_column("ID", style="dim")
    table.add_column("Image", style="magenta")
    table.add_column("IP")

    for name, info in statuses.items():
        running_status = "[green]●[/green]" if info["running"] else "[red]○[/red]"
        table.add_row(
            name,
            info["ensure"],
            running_status,
            (info["id"] or "-")[:12],
            info["image"],
            info["ip_address"] or "-",
        )
    return table


def show_status(session: EngineSession, container: Optional[str] = None):
    """Show container status."""
    if container:
        info = session.run(lambda engine: engine.get_container_status(container))
        if not info:
            console.print(f"[red]Container {container} not found[/red]")
            return

        console.print(f"[bold]Container: {container}[/bold]")
        console.print(f"  ID: {info['id'] or '-'}")
        console.print(f"  Exists: {'Yes' if info['exists'] else 'No'}")
        console.print(f"  Running: {'Yes' if info['running'] else 'No'}")
        console.print(f"  Ensure: {info['ensure']}")
        console.print(f"  Image: {info['image']}")
        if info["exit_code"] is not None:
            console.print(f"  Exit Code: {info['exit_code']}")
        if info["ip_address"]:
            console.print(f"  IP Address: {info['ip_address']}")
        for port in info["ports"]:
            external = port["external"] if port["external"] is not None else "-"
            console.print(f"  Port: {port['ip']}:{external} -> {port['internal']}/{port['protocol']}")
        return

    statuses = session.run(lambda engine: engine.get_all_container_statuses())
    running = sum(1 for info in statuses.values() if info["running"])
    console.print(f"[bold]Containers[/bold]: {running}/{len(statuses)} running")
    if statuses:
        console.print()
        console.print(_container_table(statuses))


ACTION_STYLES = {
    "create": "green",
    "replace": "yellow",
    "delete": "red",
    "refresh": "dim",
}


def show_plan(session: EngineSession):
    """Show what the next apply would do."""
    actions = session.run(lambda engine: engine.plan())
    if not actions:
        console.print("No containers configured")
        return

    table = Table(title="Plan")
    table.add_column("Name", style="cyan")
    table.add_column("Action")
    table.add_column("Reason", style="dim")

    for entry in actions:
        style = ACTION_STYLES.get(entry["action"], "white")
        table.add_row(
            entry["name"],
            f"[{style}]{entry['action']}[/{style}]",
            ", ".join(entry["reasons"]),
        )
    console.print(table)

    changes = sum(1 for entry in actions if entry["action"] != "refresh")
    console.print(f"{changes} change(s) pending")


def validate_config(session: EngineSession):
    """Validate configuration files."""
    config_manager = session.load_config()
    errors = dict(config_manager.errors)
    for name, spec in config_manager.containers.items():
        try:
            translate(spec)
        except SpecValidationError as e:
            errors[name] = str(e)

    if errors:
        console.print("[red]✗[/red] Configuration is invalid")
        for source, error in errors.items():
            console.print(f"  {source}: {error}")
        return False

    console.print("[green]✓[/green] Configuration is valid")
    console.print(f"  Containers: {len(config_manager.containers)}")
    return True
