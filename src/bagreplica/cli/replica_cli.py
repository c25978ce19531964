# src/bagreplica/cli/replica_cli.py
"""
CLI commands to replicate bags to the replica store and fetch them back.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bagreplica.core.config import settings
from bagreplica.core.exceptions import StoreError, TransferExhausted
from bagreplica.replication.manager import ReplicaManager

replica_app = typer.Typer(help="Commands to transmit, fetch and manage bag replicas.")
console = Console()


def get_manager(max_retries: Optional[int] = None) -> ReplicaManager:
    """Build a ReplicaManager from the global settings."""
    config = settings
    if max_retries is not None:
        config = settings.model_copy(update={"max_retries": max_retries})
    return ReplicaManager(config)


@replica_app.command("transmit")
def transmit_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Packaged bag file to replicate"),
    container: Optional[str] = typer.Option(None, "--container", "-c", help="Store container (default: store group)"),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", min=0, help="Override the configured retry bound"),
):
    """
    Upload a bag to the replica store. The local file is removed on success.
    """
    manager = get_manager(max_retries)
    try:
        result = manager.transfer_bag(path, container=container)
    except TransferExhausted as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        console.print(f"[yellow]Local file kept at {path}[/yellow]")
        raise typer.Exit(1)
    console.print(
        f"[green]{result.mode.value}[/green] {result.container}/{result.key} "
        f"({result.size} bytes, {result.attempts} attempt(s))"
    )


@replica_app.command("fetch")
def fetch_cmd(
    key: str = typer.Argument(..., help="Content key of the replica"),
    dest: Path = typer.Argument(..., help="Where to write the bag"),
    container: Optional[str] = typer.Option(None, "--container", "-c", help="Store container (default: store group)"),
):
    """
    Download a replica into a local file.
    """
    try:
        size = get_manager().fetch_bag(key, dest, container=container)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    if size is None:
        console.print(f"[bold red]Error:[/bold red] Replica '{key}' not found")
        raise typer.Exit(1)
    console.print(f"Fetched {key} to {dest} ({size} bytes)")


@replica_app.command("exists")
def exists_cmd(key: str, container: Optional[str] = typer.Option(None, "--container", "-c")):
    """
    Report whether a replica exists. Exits with status 1 when it does not.
    """
    try:
        present = get_manager().exists(key, container=container)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    if present:
        typer.echo(f"{key}: present")
    else:
        typer.echo(f"{key}: absent")
        raise typer.Exit(1)


@replica_app.command("info")
def info_cmd(key: str, container: Optional[str] = typer.Option(None, "--container", "-c")):
    """
    Show checksum, size and modification time of a replica.
    """
    manager = get_manager()
    try:
        if not manager.exists(key, container=container):
            console.print(f"[bold red]Error:[/bold red] Replica '{key}' not found")
            raise typer.Exit(1)
        values = {name: manager.attribute(key, name, container=container) for name in ("checksum", "sizebytes", "modified")}
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Replica {key}")
    table.add_column("Attribute", style="cyan")
    table.add_column("Value")
    for name, value in values.items():
        table.add_row(name, value or "")
    console.print(table)


@replica_app.command("remove")
def remove_cmd(key: str, container: Optional[str] = typer.Option(None, "--container", "-c")):
    """
    Delete a replica from the store.
    """
    try:
        size = get_manager().remove_bag(key, container=container)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    typer.echo(f"{key}: nothing to remove" if size is None else f"Removed {key} ({size} bytes)")


@replica_app.command("trash")
def trash_cmd(key: str):
    """
    Move a replica from the store group to the delete group.
    """
    try:
        size = get_manager().trash_bag(key)
    except StoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    typer.echo(f"{key}: nothing to move" if size is None else f"Moved {key} to {settings.delete_group} ({size} bytes)")


@replica_app.command("odometer")
def odometer_cmd():
    """
    Show running totals of replica store activity.
    """
    table = Table(title="Replica odometer")
    table.add_column("Counter", style="cyan")
    table.add_column("Value", style="magenta", justify="right")
    for name, value in get_manager().odometer().items():
        table.add_row(name, str(value))
    console.print(table)
