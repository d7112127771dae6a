"""semmap CLI application entry point.

Provides commands for managing mapping projects, discovering compatible
targets, and applying a project to a workspace dataset.

Usage:
    semmap projects
    semmap import-project <project.json>
    semmap clone-project <project-id>
    semmap compatible <project-id> --workspace <dir>
    semmap apply <project-id> <target-id> --workspace <dir> --package <pkg>
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from semmap.config import get_settings
from semmap.errors import SemmapError

if TYPE_CHECKING:
    from semmap.mapping.engine import MappingApplicationEngine
    from semmap.storage.memory import InMemorySchemaStore
    from semmap.storage.project_store import SqliteMappingProjectStore

app = typer.Typer(
    name="semmap",
    help="Apply declarative mapping projects to datasets.",
    no_args_is_help=True,
)

console = Console()

WorkspaceOption = Annotated[
    Path | None,
    typer.Option("--workspace", "-w", help="Workspace directory (default: SEMMAP_WORKSPACE)"),
]
DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Project database file (default: SEMMAP_PROJECT_DB)"),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr"),
    ] = False,
) -> None:
    """Configure logging for every command."""
    level = "DEBUG" if verbose else get_settings().log_level
    logger.remove()
    logger.add(sys.stderr, level=level)


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    return typer.Exit(code=1)


def _open_projects(db: Path | None) -> SqliteMappingProjectStore:
    from semmap.storage.project_store import SqliteMappingProjectStore

    return SqliteMappingProjectStore(db or get_settings().project_db)


def _load_store(workspace: Path | None) -> InMemorySchemaStore:
    from semmap.storage.workspace import load_workspace

    path = workspace or get_settings().workspace
    try:
        return load_workspace(path)
    except FileNotFoundError as e:
        raise _fail(str(e)) from e
    except SemmapError as e:
        raise _fail(f"Could not load workspace {path}: {e}") from e


def _build_engine(
    store: InMemorySchemaStore,
    projects: SqliteMappingProjectStore,
    batch_size: int | None = None,
) -> MappingApplicationEngine:
    from semmap.mapping.engine import MappingApplicationEngine
    from semmap.security import PermissionRegistry

    settings = get_settings()
    return MappingApplicationEngine(
        schema_store=store,
        project_store=projects,
        permissions=PermissionRegistry(),
        actor=settings.build_actor(),
        batch_size=batch_size or settings.batch_size,
    )


@app.command()
def version() -> None:
    """Show the current version."""
    from semmap import __version__

    console.print(f"semmap {__version__}")


@app.command()
def projects(db: DbOption = None) -> None:
    """List all stored mapping projects."""
    from semmap.cli.display import display_projects

    store = _open_projects(db)
    try:
        display_projects(store.get_all(), console)
    finally:
        store.close()


@app.command()
def show(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    db: DbOption = None,
) -> None:
    """Show the targets and attribute algorithms of one project."""
    from semmap.cli.display import display_project

    store = _open_projects(db)
    try:
        project = store.get(project_id)
        if project is None:
            raise _fail(f"Mapping project '{project_id}' not found.")
        display_project(project, console)
    finally:
        store.close()


@app.command(name="import-project")
def import_project(
    project_file: Annotated[Path, typer.Argument(help="Mapping project JSON file")],
    db: DbOption = None,
) -> None:
    """Store a mapping project read from a JSON file."""
    from semmap.models.mapping import MappingProject

    if not project_file.exists():
        raise _fail(f"File not found: {project_file}")
    try:
        project = MappingProject.model_validate_json(project_file.read_text())
    except ValidationError as e:
        raise _fail(f"Invalid mapping project file {project_file}:\n{e}") from e

    store = _open_projects(db)
    try:
        store.add(project)
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        store.close()
    console.print(f"[green]Imported mapping project {project.name} ({project.identifier})[/green]")


@app.command(name="export-project")
def export_project(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write JSON to this file instead of stdout"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Write a stored mapping project as JSON."""
    store = _open_projects(db)
    try:
        project = store.get(project_id)
    finally:
        store.close()
    if project is None:
        raise _fail(f"Mapping project '{project_id}' not found.")

    text = project.model_dump_json(indent=2)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    console.print(f"[green]Mapping project written to {output}[/green]")


@app.command(name="create-project")
def create_project(
    name: Annotated[str, typer.Argument(help="Project name")],
    target: Annotated[str, typer.Argument(help="Id of the nominal target schema")],
    depth: Annotated[
        int | None,
        typer.Option("--depth", help="Reference depth for algorithms"),
    ] = None,
    workspace: WorkspaceOption = None,
    db: DbOption = None,
) -> None:
    """Create an empty mapping project for a target schema in the workspace."""
    store = _load_store(workspace)
    project_store = _open_projects(db)
    try:
        engine = _build_engine(store, project_store)
        project = engine.add_mapping_project(
            name, target, depth if depth is not None else get_settings().default_depth
        )
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        project_store.close()
    console.print(f"[green]Created mapping project {project.name} ({project.identifier})[/green]")


@app.command(name="clone-project")
def clone_project(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Name of the copy (default: '<name> - Copy')"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Copy a mapping project under a new name."""
    from semmap.storage.memory import InMemorySchemaStore

    project_store = _open_projects(db)
    try:
        engine = _build_engine(InMemorySchemaStore(), project_store)
        clone = engine.clone_mapping_project(project_id, name)
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        project_store.close()
    console.print(f"[green]Cloned into {clone.name} ({clone.identifier})[/green]")


@app.command(name="delete-project")
def delete_project(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    db: DbOption = None,
) -> None:
    """Delete a mapping project."""
    from semmap.storage.memory import InMemorySchemaStore

    project_store = _open_projects(db)
    try:
        engine = _build_engine(InMemorySchemaStore(), project_store)
        engine.delete_mapping_project(project_id)
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        project_store.close()
    console.print(f"[green]Deleted mapping project {project_id}[/green]")


@app.command()
def compatible(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    workspace: WorkspaceOption = None,
    db: DbOption = None,
) -> None:
    """List workspace schemas that could host the project's target."""
    from semmap.cli.display import display_schemas

    store = _load_store(workspace)
    project_store = _open_projects(db)
    try:
        engine = _build_engine(store, project_store)
        project = engine.get_mapping_project(project_id)
        if not project.mapping_targets:
            raise _fail(f"Mapping project '{project.name}' has no mapping targets.")
        target = project.mapping_targets[0].target
        schemas = engine.get_compatible_schemas(target)
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        project_store.close()
    display_schemas(schemas, console, title=f"Schemas compatible with {target.id}")


@app.command()
def apply(
    project_id: Annotated[str, typer.Argument(help="Mapping project id")],
    target_id: Annotated[str, typer.Argument(help="Dataset to create or update")],
    package: Annotated[
        str | None,
        typer.Option("--package", "-p", help="Package for a new target dataset"),
    ] = None,
    label: Annotated[
        str | None,
        typer.Option("--label", "-l", help="Label for the target schema"),
    ] = None,
    add_source: Annotated[
        bool,
        typer.Option("--add-source", help="Record each row's source dataset in 'source'"),
    ] = False,
    depth: Annotated[
        int | None,
        typer.Option("--depth", help="Override the project's reference depth"),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", min=1, help="Records per batch"),
    ] = None,
    workspace: WorkspaceOption = None,
    db: DbOption = None,
) -> None:
    """Apply a mapping project to a workspace dataset.

    Runs inside a workspace transaction: on failure nothing is written back.
    """
    from semmap.cli.display import RichProgress
    from semmap.models.run import RunOptions
    from semmap.storage.workspace import save_workspace

    path = workspace or get_settings().workspace
    store = _load_store(path)
    try:
        options = RunOptions(
            target_id=target_id,
            add_source_attribute=add_source,
            package_id=package,
            label=label,
            depth=depth,
        )
    except ValidationError as e:
        raise _fail(f"Invalid run options:\n{e}") from e

    project_store = _open_projects(db)
    try:
        engine = _build_engine(store, project_store, batch_size)
        with store.transaction(), RichProgress(console) as progress:
            written = engine.apply_mappings(project_id, options, progress)
    except SemmapError as e:
        raise _fail(str(e)) from e
    finally:
        project_store.close()

    save_workspace(store, path)
    console.print(f"\n[green]Mapped {written} records into {target_id}[/green]")
