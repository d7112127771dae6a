"""Tests for Rich display helpers."""

from __future__ import annotations

from io import StringIO

from rich.console import Console

from semmap.cli.display import RichProgress, display_project, display_projects, display_schemas
from semmap.models.mapping import MappingProject
from semmap.models.run import Progress
from semmap.models.schema import Attribute, AttributeType, Schema


def _make_console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=160, force_terminal=False), buffer


def _make_project() -> MappingProject:
    project = MappingProject(name="Cohort A")
    target = project.add_target(
        Schema(id="person", attributes=[Attribute(name="id", id_attribute=True)])
    )
    mapping = target.add_source(
        Schema(id="lifelines", attributes=[Attribute(name="pid", id_attribute=True)])
    )
    mapping.add_attribute_mapping("id", "pid")
    return project


class TestDisplayProjects:
    def test_lists_projects(self) -> None:
        console, buffer = _make_console()
        display_projects([_make_project()], console)
        output = buffer.getvalue()
        assert "Mapping Projects" in output
        assert "Cohort A" in output
        assert "lifelines" in output
        assert "1 mapping project(s)" in output

    def test_empty(self) -> None:
        console, buffer = _make_console()
        display_projects([], console)
        assert "0 mapping project(s)" in buffer.getvalue()


class TestDisplayProject:
    def test_shows_algorithms(self) -> None:
        console, buffer = _make_console()
        display_project(_make_project(), console)
        output = buffer.getvalue()
        assert "Mapping Project: Cohort A" in output
        assert "Target person" in output
        assert "pid" in output
        assert "curated" in output


class TestDisplaySchemas:
    def test_marks_self_references(self) -> None:
        console, buffer = _make_console()
        schema = Schema(
            id="person",
            package="base",
            attributes=[
                Attribute(name="id", id_attribute=True),
                Attribute(name="parent", data_type=AttributeType.XREF, ref_schema="person"),
            ],
        )
        display_schemas([schema], console, title="Compatible")
        output = buffer.getvalue()
        assert "Compatible" in output
        assert "person" in output
        assert "yes" in output


class TestRichProgress:
    def test_satisfies_progress_protocol(self) -> None:
        console, _ = _make_console()
        assert isinstance(RichProgress(console), Progress)

    def test_status_messages_are_not_markup(self) -> None:
        console, buffer = _make_console()
        with RichProgress(console) as progress:
            progress.set_max(2)
            progress.status("Mapping source [lifelines]...")
            progress.increment(1)
            progress.increment(1)
        assert "Mapping source [lifelines]..." in buffer.getvalue()
