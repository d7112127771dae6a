"""Directory-backed workspace for the in-memory schema store.

Layout::

    <workspace>/
        workspace.json        {"packages": ["base", ...]}
        schemas/<id>.json     Schema models (model_dump_json)
        data/<id>.csv         one CSV per non-abstract schema

CSV cells are read as text and converted to each attribute's type on load.
Multi-valued references are stored comma-separated.
"""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
from loguru import logger

from semmap.errors import StorageError
from semmap.models.record import convert_value
from semmap.models.schema import Schema
from semmap.storage.memory import InMemorySchemaStore

_MANIFEST = "workspace.json"
_SCHEMA_DIR = "schemas"
_DATA_DIR = "data"


def load_workspace(path: str | Path) -> InMemorySchemaStore:
    """Load packages, schemas and data from a workspace directory.

    Schemas are registered in dependency order so that packages exist first;
    a schema without a CSV file gets an empty dataset.

    Raises:
        FileNotFoundError: If the directory does not exist.
        StorageError: If a CSV value does not fit its attribute type.
    """
    path = Path(path)
    if not path.is_dir():
        raise FileNotFoundError(f"Workspace directory not found: {path}")

    manifest_path = path / _MANIFEST
    packages: list[str] = []
    if manifest_path.exists():
        packages = json.loads(manifest_path.read_text()).get("packages", [])

    store = InMemorySchemaStore(packages)
    schema_files = sorted((path / _SCHEMA_DIR).glob("*.json"))
    for schema_file in schema_files:
        schema = Schema.model_validate_json(schema_file.read_text())
        if schema.package is not None and not store.package_exists(schema.package):
            logger.warning(
                "Schema {id} names unknown package {pkg}, registering it",
                id=schema.id,
                pkg=schema.package,
            )
            store.add_package(schema.package)
        csv_path = path / _DATA_DIR / f"{schema.id}.csv"
        if schema.abstract or not csv_path.exists():
            store.create_schema(schema)
            continue
        store.create_schema(schema, _read_csv(csv_path, schema))

    logger.info(
        "Loaded workspace {path}: {n} schemas, {p} packages",
        path=path,
        n=len(schema_files),
        p=len(store.packages),
    )
    return store


def save_workspace(store: InMemorySchemaStore, path: str | Path) -> None:
    """Write every package, schema and dataset of ``store`` to ``path``."""
    path = Path(path)
    (path / _SCHEMA_DIR).mkdir(parents=True, exist_ok=True)
    (path / _DATA_DIR).mkdir(parents=True, exist_ok=True)
    (path / _MANIFEST).write_text(json.dumps({"packages": store.packages}, indent=2))

    for schema in store.get_schemas():
        (path / _SCHEMA_DIR / f"{schema.id}.json").write_text(
            schema.model_dump_json(indent=2, exclude_defaults=True)
        )
    for dataset in store.datasets():
        frame = dataset.to_frame()
        for attribute in dataset.schema.atomic_attributes():
            if attribute.data_type.is_multiple:
                frame[attribute.name] = frame[attribute.name].map(
                    lambda v: ",".join(str(i) for i in v) if isinstance(v, list) else v
                )
        frame.to_csv(path / _DATA_DIR / f"{dataset.schema.id}.csv", index=False)
    logger.info("Saved workspace {path}", path=path)


def _read_csv(csv_path: Path, schema: Schema) -> pd.DataFrame:
    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    frame = frame.astype(object)
    for attribute in schema.atomic_attributes():
        if attribute.name not in frame.columns:
            frame[attribute.name] = None
            continue
        try:
            values = [convert_value(v, attribute) for v in frame[attribute.name]]
            frame[attribute.name] = pd.Series(values, index=frame.index, dtype=object)
        except ValueError as e:
            msg = f"{csv_path.name}: column '{attribute.name}' ({attribute.data_type}): {e}"
            raise StorageError(msg) from e
    return frame
