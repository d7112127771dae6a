"""Rich display helpers for terminal output.

Provides formatted tables for mapping projects and schemas, and a
progress sink that drives a Rich progress bar during a mapping run.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from semmap.models.mapping import MappingProject
from semmap.models.schema import Schema


def display_projects(projects: list[MappingProject], console: Console) -> None:
    """Print a summary table of mapping projects.

    Columns: Id, Name, Depth, Targets, Sources

    Args:
        projects: Mapping projects to list.
        console: Rich Console for output.
    """
    table = Table(title="Mapping Projects", show_lines=True)
    table.add_column("Id", style="dim", no_wrap=True)
    table.add_column("Name", style="bold cyan")
    table.add_column("Depth", justify="right")
    table.add_column("Targets")
    table.add_column("Sources")

    for project in sorted(projects, key=lambda p: p.name):
        targets = ", ".join(t.target.id for t in project.mapping_targets)
        sources = ", ".join(
            m.name for t in project.mapping_targets for m in t.entity_mappings
        )
        table.add_row(project.identifier, project.name, str(project.depth), targets, sources)

    console.print(table)
    console.print(f"\n[bold]{len(projects)}[/bold] mapping project(s)")


def display_project(project: MappingProject, console: Console) -> None:
    """Print one project: a header panel and one table per mapping target."""
    info_lines = [
        f"[bold]Id:[/bold] {project.identifier}",
        f"[bold]Depth:[/bold] {project.depth}",
        f"[bold]Targets:[/bold] {len(project.mapping_targets)}",
    ]
    console.print(Panel("\n".join(info_lines), title=f"Mapping Project: {project.name}"))

    for mapping_target in project.mapping_targets:
        table = Table(title=f"Target {mapping_target.target.id}", show_lines=True)
        table.add_column("Source", style="bold cyan", no_wrap=True)
        table.add_column("Attribute", no_wrap=True)
        table.add_column("Algorithm", max_width=50)
        table.add_column("State", style="dim")
        for entity_mapping in mapping_target.entity_mappings:
            for attribute_mapping in entity_mapping.attribute_mappings:
                table.add_row(
                    entity_mapping.name,
                    attribute_mapping.target_attribute,
                    attribute_mapping.algorithm,
                    attribute_mapping.algorithm_state.value,
                )
        console.print(table)


def display_schemas(schemas: list[Schema], console: Console, title: str = "Schemas") -> None:
    """Print a table of schemas with their package and attribute count."""
    table = Table(title=title, show_lines=False)
    table.add_column("Schema", style="bold cyan", no_wrap=True)
    table.add_column("Label")
    table.add_column("Package", style="dim")
    table.add_column("Attributes", justify="right")
    table.add_column("Self-ref", justify="center")

    for schema in sorted(schemas, key=lambda s: s.id):
        self_ref = "[yellow]yes[/yellow]" if schema.has_self_references() else ""
        table.add_row(
            schema.id,
            schema.label or "",
            schema.package or "",
            str(sum(1 for _ in schema.atomic_attributes())),
            self_ref,
        )

    console.print(table)


class RichProgress:
    """Progress sink rendering a Rich progress bar; units are batches."""

    def __init__(self, console: Console, description: str = "Mapping") -> None:
        self._console = console
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        self._task: TaskID = self._progress.add_task(description, total=None)

    def __enter__(self) -> RichProgress:
        self._progress.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self._progress.stop()

    def set_max(self, maximum: int) -> None:
        self._progress.update(self._task, total=maximum)

    def status(self, message: str) -> None:
        self._progress.console.print(f"[dim]{escape(message)}[/dim]")

    def increment(self, amount: int) -> None:
        self._progress.advance(self._task, amount)
