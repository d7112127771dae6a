"""In-memory schema store backed by pandas DataFrames.

Each dataset keeps its rows in an object-dtype DataFrame indexed by the
schema's id attribute. Object dtype keeps ints as ints and lets reference
lists live in a single cell. Writes never mutate a frame in place (they
build a new one), which makes snapshots for ``transaction()`` cheap.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import pandas as pd
from loguru import logger

from semmap.errors import DuplicateRecordError, StorageError, UnknownReferenceError
from semmap.models.record import Record, RecordLayout
from semmap.models.schema import Schema


def _clean(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


class FrameDataset:
    """Dataset implementation holding its records in a pandas DataFrame."""

    def __init__(self, schema: Schema, frame: pd.DataFrame | None = None) -> None:
        if schema.id_attribute is None:
            msg = f"Schema '{schema.id}' has no id attribute and cannot back a dataset"
            raise StorageError(msg)
        self._schema = schema
        self._layout = RecordLayout.for_schema(schema)
        self._version = 0
        if frame is None:
            self._frame = self._empty_frame()
        else:
            self._frame = self._normalize(frame)

    @classmethod
    def from_rows(cls, schema: Schema, rows: Iterable[Mapping[str, Any]]) -> FrameDataset:
        dataset = cls(schema)
        layout = dataset._layout
        records = [Record.from_mapping(layout, row) for row in rows]
        if records:
            dataset.insert_many(records)
        return dataset

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def layout(self) -> RecordLayout:
        return self._layout

    @property
    def version(self) -> int:
        return self._version

    def count(self) -> int:
        return len(self._frame)

    def stream_batched(self, batch_size: int) -> Iterator[list[Record]]:
        """Yield records in batches of at most ``batch_size``.

        Iterates over the frame as it was when streaming started; rows written
        while streaming are not revisited.
        """
        if batch_size < 1:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        frame = self._frame
        for start in range(0, len(frame), batch_size):
            chunk = frame.iloc[start : start + batch_size]
            yield [self._to_record(row) for row in chunk.itertuples(index=False, name=None)]

    def insert_many(self, records: Iterable[Record]) -> int:
        """Append records as new rows.

        Raises:
            DuplicateRecordError: If an id repeats within the batch or is
                already stored.
        """
        new = self._to_frame(records)
        if new.empty:
            return 0
        repeated = new.index[new.index.duplicated()]
        if len(repeated):
            msg = (
                f"Duplicate id(s) {list(repeated.unique())[:5]} in insert batch "
                f"for dataset '{self._schema.id}'"
            )
            raise DuplicateRecordError(msg)
        clash = new.index.intersection(self._frame.index)
        if len(clash):
            msg = f"Id(s) {list(clash)[:5]} already exist in dataset '{self._schema.id}'"
            raise DuplicateRecordError(msg)
        self._frame = pd.concat([self._frame, new]) if len(self._frame) else new
        self._version += 1
        logger.debug("Inserted {n} records into {ds}", n=len(new), ds=self._schema.id)
        return len(new)

    def upsert_many(self, records: Iterable[Record]) -> int:
        """Insert records whose id is new and replace those whose id exists.

        Within one batch the last record for an id wins.
        """
        new = self._to_frame(records)
        if new.empty:
            return 0
        new = new[~new.index.duplicated(keep="last")]
        existing = new.index.isin(self._frame.index)
        frame = self._frame
        if existing.any():
            frame = frame.copy()
            updates = new[existing]
            frame.loc[updates.index, updates.columns] = updates
        additions = new[~existing]
        if len(additions):
            frame = pd.concat([frame, additions]) if len(frame) else additions
        self._frame = frame
        self._version += 1
        logger.debug(
            "Upserted {n} records into {ds} ({updated} replaced)",
            n=len(new),
            ds=self._schema.id,
            updated=int(existing.sum()),
        )
        return len(new)

    def find_by_id(self, record_id: Any) -> Record | None:
        if record_id is None or record_id not in self._frame.index:
            return None
        row = self._frame.loc[record_id]
        return self._to_record(tuple(row))

    def find_all(self, record_ids: Iterable[Any]) -> list[Record]:
        index = self._frame.index
        wanted = [i for i in dict.fromkeys(record_ids) if i is not None and i in index]
        if not wanted:
            return []
        chunk = self._frame.loc[wanted]
        return [self._to_record(row) for row in chunk.itertuples(index=False, name=None)]

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the rows with a default integer index."""
        return self._frame.reset_index(drop=True).copy()

    def snapshot(self) -> pd.DataFrame:
        return self._frame

    def restore(self, frame: pd.DataFrame) -> None:
        self._frame = frame
        self._version += 1

    def _empty_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({name: pd.Series(dtype=object) for name in self._layout.names})
        frame.index = pd.Index([], dtype=object)
        return frame

    def _normalize(self, frame: pd.DataFrame) -> pd.DataFrame:
        missing = [name for name in self._layout.names if name not in frame.columns]
        if missing:
            msg = f"Frame for dataset '{self._schema.id}' lacks columns {missing}"
            raise StorageError(msg)
        frame = frame.loc[:, list(self._layout.names)].astype(object)
        frame = frame.where(frame.notna(), None)
        frame.index = pd.Index(list(frame[self._layout.id_name]), dtype=object)
        if frame.index.has_duplicates:
            msg = f"Frame for dataset '{self._schema.id}' has duplicate ids"
            raise DuplicateRecordError(msg)
        return frame

    def _to_record(self, row: Iterable[Any]) -> Record:
        return Record(self._layout, (_clean(value) for value in row))

    def _to_frame(self, records: Iterable[Record]) -> pd.DataFrame:
        rows = [self._align(record) for record in records]
        if not rows:
            return self._empty_frame()
        id_position = self._layout.id_position
        ids = [row[id_position] for row in rows]
        if any(record_id is None for record_id in ids):
            msg = f"Cannot write a record without id to dataset '{self._schema.id}'"
            raise StorageError(msg)
        frame = pd.DataFrame(rows, columns=list(self._layout.names), dtype=object)
        frame.index = pd.Index(ids, dtype=object)
        return frame

    def _align(self, record: Record) -> list[Any]:
        if record.layout.names == self._layout.names:
            return record.values()
        values: list[Any] = [None] * len(self._layout)
        for name, value in record.to_dict().items():
            if name not in self._layout:
                msg = f"Dataset '{self._schema.id}' has no attribute '{name}'"
                raise StorageError(msg)
            values[self._layout.position(name)] = value
        return values


class InMemorySchemaStore:
    """Schema store holding packages, schemas and FrameDatasets in memory."""

    def __init__(self, packages: Iterable[str] = ()) -> None:
        self._packages: set[str] = set(packages)
        self._schemas: dict[str, Schema] = {}
        self._datasets: dict[str, FrameDataset] = {}

    def add_package(self, package_id: str) -> None:
        self._packages.add(package_id)

    def package_exists(self, package_id: str) -> bool:
        return package_id in self._packages

    @property
    def packages(self) -> list[str]:
        return sorted(self._packages)

    def schema_exists(self, schema_id: str) -> bool:
        return schema_id in self._schemas

    def get_schema(self, schema_id: str) -> Schema:
        schema = self._schemas.get(schema_id)
        if schema is None:
            raise UnknownReferenceError("schema", schema_id)
        return schema

    def get_schemas(self) -> list[Schema]:
        return list(self._schemas.values())

    def create_schema(
        self,
        schema: Schema,
        rows: Iterable[Mapping[str, Any]] | pd.DataFrame | None = None,
    ) -> FrameDataset | None:
        """Register a schema and create its (empty unless ``rows``) dataset.

        Abstract schemas are registered without a dataset and return None.
        """
        if schema.id in self._schemas:
            msg = f"Schema '{schema.id}' already exists"
            raise StorageError(msg)
        if schema.package is not None and schema.package not in self._packages:
            raise UnknownReferenceError("package", schema.package)
        self._schemas[schema.id] = schema
        if schema.abstract:
            logger.debug("Registered abstract schema {id}", id=schema.id)
            return None
        if isinstance(rows, pd.DataFrame):
            dataset = FrameDataset(schema, rows)
        elif rows is not None:
            dataset = FrameDataset.from_rows(schema, rows)
        else:
            dataset = FrameDataset(schema)
        self._datasets[schema.id] = dataset
        logger.debug(
            "Created dataset {id} with {n} records", id=schema.id, n=dataset.count()
        )
        return dataset

    def get_dataset(self, schema_id: str) -> FrameDataset:
        dataset = self._datasets.get(schema_id)
        if dataset is None:
            raise UnknownReferenceError("dataset", schema_id)
        return dataset

    def datasets(self) -> list[FrameDataset]:
        return list(self._datasets.values())

    @contextmanager
    def transaction(self) -> Iterator[InMemorySchemaStore]:
        """Roll every schema and dataset back if the block raises."""
        schemas = dict(self._schemas)
        datasets = dict(self._datasets)
        frames = {schema_id: ds.snapshot() for schema_id, ds in datasets.items()}
        try:
            yield self
        except BaseException:
            self._schemas = schemas
            self._datasets = datasets
            for schema_id, frame in frames.items():
                datasets[schema_id].restore(frame)
            logger.warning("Transaction rolled back, {n} datasets restored", n=len(frames))
            raise
