"""Main CLI implementation using Typer."""

import asyncio
import sys
from pathlib import Path
from typing import Optional, Callable, Any

import typer
from pydantic import ValidationError
from rich.console import Console

from berth.agent.main import run_agent
from berth.cli.commands import (
    EngineSession,
    apply_containers,
    destroy_container,
    show_status,
    show_plan,
    validate_config,
)
from berth.errors import BerthError
from berth.utils.docker import DockerAPIError
from berth.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="berthctl",
    help="Berth - declarative Docker container reconciliation",
    add_completion=False,
)

# Console for rich output
console = Console()

CONFIG_DIR_HELP = "Configuration directory (defaults to $BERTH_CONFIG_DIR or ./configs)"


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "WARNING", "--log-level", "-l", help="Log level for reconciler output on stderr"
    ),
):
    """Berth - declarative Docker container reconciliation."""
    setup_logging(log_level, stream=sys.stderr)


def _run_cli_command(handler: Callable[..., Any], config_dir: Optional[str], **kwargs: Any):
    """Helper to run a CLI command with an engine session and error handling."""
    try:
        session = EngineSession(config_dir=config_dir)
        return handler(session, **kwargs)
    except (BerthError, DockerAPIError, ValidationError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("apply")
def apply_command(
    name: Optional[str] = typer.Argument(None, help="Container name to apply"),
    all: bool = typer.Option(False, "--all", help="Apply all configured containers"),
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Create, refresh or replace container(s) to match the configuration."""
    if not name and not all:
        console.print("[red]Error:[/red] Specify container name or use --all")
        raise typer.Exit(1)
    _run_cli_command(apply_containers, config_dir=config_dir, name=name, all_containers=all)


@app.command("destroy")
def destroy_command(
    name: str = typer.Argument(..., help="Container name"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Destroy without confirmation"
    ),
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Stop and remove a managed container."""
    if not force:
        confirm = typer.confirm(f"Destroy container {name}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(destroy_container, config_dir=config_dir, name=name)


@app.command("status")
def status_command(
    container: Optional[str] = typer.Argument(
        None, help="Show status for specific container"
    ),
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Show container status."""
    _run_cli_command(show_status, config_dir=config_dir, container=container)


@app.command("plan")
def plan_command(
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Show which containers would be created, replaced or deleted."""
    _run_cli_command(show_plan, config_dir=config_dir)


# Config subcommands
config_app = typer.Typer(help="Configuration commands")
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate_command(
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Validate configuration files."""
    if not _run_cli_command(validate_config, config_dir=config_dir):
        raise typer.Exit(1)


# Agent subcommands
agent_app = typer.Typer(help="Agent commands")
app.add_typer(agent_app, name="agent")


@agent_app.command("run")
def agent_run_command(
    config_dir: Optional[str] = typer.Option(
        None, "--config-dir", "-c", help=CONFIG_DIR_HELP
    ),
):
    """Run the reconciliation agent in the foreground."""
    try:
        asyncio.run(run_agent(Path(config_dir) if config_dir else None))
    except KeyboardInterrupt:
        console.print("\nAgent shutdown requested")
    except (BerthError, ValidationError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def main():
    """Main entry point for CLI."""
    app()
