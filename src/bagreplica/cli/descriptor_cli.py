# src/bagreplica/cli/descriptor_cli.py
"""
CLI commands to inspect and check descriptor files (metadata.xml, policy.xml, roles.xml).
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bagreplica.core.exceptions import MalformedDescriptor
from bagreplica.descriptors import codec
from bagreplica.descriptors.schemas import DescriptorKind, MetadataDocument, PolicyDocument, RoleGraph

descriptor_app = typer.Typer(help="Commands to inspect descriptor documents.")
console = Console()


def _load(path: Path, kind: DescriptorKind, strict: bool = False) -> codec.Document:
    try:
        return codec.deserialize(path.read_bytes(), kind, strict=strict)
    except MalformedDescriptor as e:
        console.print(f"[bold red]Invalid {kind.value} descriptor:[/bold red] {e}")
        raise typer.Exit(1)


def _metadata_table(doc: MetadataDocument) -> Table:
    table = Table(title="Metadata")
    table.add_column("Field", style="cyan")
    table.add_column("Lang", style="yellow")
    table.add_column("Value")
    for v in doc.values:
        field = ".".join(part for part in (v.schema_name, v.element, v.qualifier) if part)
        table.add_row(field, v.language or "", v.body)
    return table


def _policy_table(doc: PolicyDocument) -> Table:
    table = Table(title="Policies")
    table.add_column("Action", style="cyan")
    table.add_column("Group / EPerson")
    table.add_column("Type", style="yellow")
    table.add_column("Start", style="green")
    table.add_column("End", style="green")
    for p in doc.policies:
        table.add_row(p.action, p.group or p.eperson or "", p.type or "", p.start_date or "", p.end_date or "")
    return table


def _roles_tables(graph: RoleGraph):
    groups = Table(title="Groups")
    groups.add_column("ID", style="cyan")
    groups.add_column("Name")
    groups.add_column("Members", justify="right")
    groups.add_column("Member groups", justify="right")
    for g in sorted(graph.groups, key=lambda g: g.id):
        groups.add_row(g.id, g.name or "", str(len(g.members)), str(len(g.member_groups)))

    people = Table(title="People")
    people.add_column("ID", style="cyan")
    people.add_column("Email")
    people.add_column("Name")
    people.add_column("Can login", style="green")
    for p in sorted(graph.people, key=lambda p: p.id):
        name = " ".join(part for part in (p.first_name, p.last_name) if part)
        people.add_row(p.id, p.email or "", name, "yes" if p.can_login else "no")
    return groups, people


@descriptor_app.command("show")
def show_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Descriptor file"),
    kind: DescriptorKind = typer.Option(..., "--kind", "-k", help="Document kind"),
):
    """
    Print the contents of a descriptor file as tables.
    """
    doc = _load(path, kind)
    if isinstance(doc, MetadataDocument):
        console.print(_metadata_table(doc))
    elif isinstance(doc, PolicyDocument):
        console.print(_policy_table(doc))
    else:
        for table in _roles_tables(doc):
            console.print(table)


@descriptor_app.command("validate")
def validate_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Descriptor file"),
    kind: DescriptorKind = typer.Option(..., "--kind", "-k", help="Document kind"),
    strict: bool = typer.Option(False, "--strict", help="Require role graph members to resolve"),
):
    """
    Check that a descriptor file decodes and re-encodes to the same document.
    """
    doc = _load(path, kind, strict=strict)
    if codec.deserialize(codec.serialize(doc), kind) != doc:
        console.print("[bold red]Document does not round-trip[/bold red]")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {path} is a valid {kind.value} descriptor")
