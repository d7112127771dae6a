"""Tests for the semmap CLI application."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from semmap.cli.app import app
from semmap.models.mapping import MappingProject
from semmap.models.schema import Attribute, AttributeType, Schema
from semmap.storage.memory import InMemorySchemaStore
from semmap.storage.workspace import load_workspace, save_workspace

runner = CliRunner()

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_target_schema(schema_id: str = "person", **overrides: object) -> Schema:
    defaults: dict[str, object] = {
        "id": schema_id,
        "label": "Person",
        "package": "base",
        "attributes": [
            Attribute(name="id", id_attribute=True),
            Attribute(name="name"),
            Attribute(name="age", data_type=AttributeType.INT),
        ],
    }
    defaults.update(overrides)
    return Schema(**defaults)  # type: ignore[arg-type]


_SOURCE = Schema(
    id="lifelines",
    label="Lifelines",
    package="base",
    attributes=[
        Attribute(name="pid", id_attribute=True),
        Attribute(name="first"),
        Attribute(name="last"),
        Attribute(name="age"),
    ],
)


def _make_project() -> MappingProject:
    project = MappingProject(name="Cohort A")
    target = project.add_target(_make_target_schema(abstract=True))
    entity_mapping = target.add_source(_SOURCE)
    entity_mapping.add_attribute_mapping("id", "pid")
    entity_mapping.add_attribute_mapping("name", "concat(first, ' ', last)")
    entity_mapping.add_attribute_mapping("age", "to_int(age)")
    return project


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    store = InMemorySchemaStore(["base", "study"])
    store.create_schema(_make_target_schema(abstract=True))
    store.create_schema(
        _make_target_schema("person_existing"), [{"id": "x1", "name": "X", "age": 1}]
    )
    store.create_schema(
        _SOURCE,
        [
            {"pid": "p1", "first": "Ada", "last": "Lovelace", "age": "36"},
            {"pid": "p2", "first": "Alan", "last": "Turing", "age": "41"},
            {"pid": "p3", "first": "Grace", "last": "Hopper", "age": "85"},
        ],
    )
    path = tmp_path / "ws"
    save_workspace(store, path)
    return path


@pytest.fixture()
def db(tmp_path: Path) -> Path:
    return tmp_path / "projects.db"


@pytest.fixture()
def project(tmp_path: Path, db: Path) -> MappingProject:
    p = _make_project()
    project_file = tmp_path / "project.json"
    project_file.write_text(p.model_dump_json())
    result = runner.invoke(app, ["import-project", str(project_file), "--db", str(db)])
    assert result.exit_code == 0, result.output
    return p


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestVersionCommand:
    def test_version_exits_zero(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "semmap 0.1.0" in result.output


class TestProjectCommands:
    def test_projects_empty(self, db: Path) -> None:
        result = runner.invoke(app, ["projects", "--db", str(db)])
        assert result.exit_code == 0
        assert "0 mapping project(s)" in result.output

    def test_import_then_list(self, db: Path, project: MappingProject) -> None:
        result = runner.invoke(app, ["projects", "--db", str(db)])
        assert result.exit_code == 0
        assert "Cohort A" in result.output
        assert "1 mapping project(s)" in result.output

    def test_import_missing_file(self, tmp_path: Path, db: Path) -> None:
        missing = tmp_path / "nope.json"
        result = runner.invoke(app, ["import-project", str(missing), "--db", str(db)])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_import_invalid_file(self, tmp_path: Path, db: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"depth": -1}))
        result = runner.invoke(app, ["import-project", str(bad), "--db", str(db)])
        assert result.exit_code == 1
        assert "Invalid mapping project file" in result.output

    def test_import_duplicate(self, tmp_path: Path, db: Path, project: MappingProject) -> None:
        result = runner.invoke(
            app, ["import-project", str(tmp_path / "project.json"), "--db", str(db)]
        )
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show(self, db: Path, project: MappingProject) -> None:
        result = runner.invoke(app, ["show", project.identifier, "--db", str(db)])
        assert result.exit_code == 0
        assert "Mapping Project: Cohort A" in result.output
        assert "to_int(age)" in result.output

    def test_export_to_file(self, tmp_path: Path, db: Path, project: MappingProject) -> None:
        out = tmp_path / "exported" / "project.json"
        result = runner.invoke(
            app, ["export-project", project.identifier, "-o", str(out), "--db", str(db)]
        )
        assert result.exit_code == 0
        assert MappingProject.model_validate_json(out.read_text()) == project

    def test_export_unknown(self, db: Path) -> None:
        result = runner.invoke(app, ["export-project", "nope", "--db", str(db)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_clone(self, db: Path, project: MappingProject) -> None:
        result = runner.invoke(app, ["clone-project", project.identifier, "--db", str(db)])
        assert result.exit_code == 0
        assert "Cloned into Cohort A - Copy" in result.output
        listing = runner.invoke(app, ["projects", "--db", str(db)])
        assert "2 mapping project(s)" in listing.output

    def test_delete(self, db: Path, project: MappingProject) -> None:
        result = runner.invoke(app, ["delete-project", project.identifier, "--db", str(db)])
        assert result.exit_code == 0
        again = runner.invoke(app, ["delete-project", project.identifier, "--db", str(db)])
        assert again.exit_code == 1
        assert "Unknown mapping project" in again.output

    def test_create_project(self, workspace: Path, db: Path) -> None:
        result = runner.invoke(
            app, ["create-project", "Fresh", "person", "-w", str(workspace), "--db", str(db)]
        )
        assert result.exit_code == 0
        assert "Created mapping project Fresh" in result.output


class TestCompatibleCommand:
    def test_lists_compatible_schemas(
        self, workspace: Path, db: Path, project: MappingProject
    ) -> None:
        result = runner.invoke(
            app, ["compatible", project.identifier, "-w", str(workspace), "--db", str(db)]
        )
        assert result.exit_code == 0
        assert "person_existing" in result.output
        assert "lifelines" not in result.output


class TestApplyCommand:
    def test_apply_creates_target(
        self, workspace: Path, db: Path, project: MappingProject
    ) -> None:
        result = runner.invoke(
            app,
            [
                "apply",
                project.identifier,
                "person_out",
                "--package",
                "study",
                "--add-source",
                "-w",
                str(workspace),
                "--db",
                str(db),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Mapped 3 records into person_out" in result.output

        store = load_workspace(workspace)
        dataset = store.get_dataset("person_out")
        assert dataset.count() == 3
        record = dataset.find_by_id("p1")
        assert record is not None
        assert record.get("name") == "Ada Lovelace"
        assert record.get("age") == 36
        assert record.get("source") == "lifelines"

    def test_apply_without_package_fails(
        self, workspace: Path, db: Path, project: MappingProject
    ) -> None:
        result = runner.invoke(
            app,
            ["apply", project.identifier, "person_out", "-w", str(workspace), "--db", str(db)],
        )
        assert result.exit_code == 1
        assert "Package can't be null" in result.output
        assert not (workspace / "schemas" / "person_out.json").exists()

    def test_apply_incompatible_leaves_workspace_untouched(
        self, workspace: Path, db: Path, project: MappingProject
    ) -> None:
        before = load_workspace(workspace)
        before.create_schema(
            _make_target_schema("typed", attributes=[Attribute(name="id", id_attribute=True)])
        )
        save_workspace(before, workspace)

        result = runner.invoke(
            app, ["apply", project.identifier, "typed", "-w", str(workspace), "--db", str(db)]
        )
        assert result.exit_code == 1
        assert "Target repository does not contain the following attribute" in result.output
        assert load_workspace(workspace).get_dataset("typed").count() == 0

    def test_apply_missing_workspace(
        self, tmp_path: Path, db: Path, project: MappingProject
    ) -> None:
        result = runner.invoke(
            app,
            ["apply", project.identifier, "out", "-w", str(tmp_path / "none"), "--db", str(db)],
        )
        assert result.exit_code == 1
        assert "Workspace directory not found" in result.output

    def test_apply_negative_depth_fails_cleanly(
        self, workspace: Path, db: Path, project: MappingProject
    ) -> None:
        result = runner.invoke(
            app,
            [
                "apply",
                project.identifier,
                "person_out",
                "--package",
                "study",
                "--depth=-1",
                "-w",
                str(workspace),
                "--db",
                str(db),
            ],
        )
        assert result.exit_code == 1
        assert "Invalid run options" in result.output
        assert not isinstance(result.exception, ValidationError)
        assert not (workspace / "schemas" / "person_out.json").exists()
