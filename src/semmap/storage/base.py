"""Collaborator contracts consumed by the mapping engine.

The engine never talks to a concrete backend; it is written against these
protocols. ``semmap.storage.memory`` and ``semmap.storage.project_store``
provide the in-process implementations.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any, Protocol, runtime_checkable

from semmap.models.mapping import MappingProject
from semmap.models.record import Record
from semmap.models.schema import Schema


@runtime_checkable
class Dataset(Protocol):
    """Batched read and write access to the records of one schema."""

    @property
    def schema(self) -> Schema: ...

    @property
    def version(self) -> int:
        """Monotonic counter, bumped by every successful write."""
        ...

    def count(self) -> int: ...

    def stream_batched(self, batch_size: int) -> Iterator[list[Record]]: ...

    def insert_many(self, records: Iterable[Record]) -> int: ...

    def upsert_many(self, records: Iterable[Record]) -> int: ...

    def find_by_id(self, record_id: Any) -> Record | None: ...

    def find_all(self, record_ids: Iterable[Any]) -> list[Record]: ...


@runtime_checkable
class SchemaStore(Protocol):
    """Registry of schemas, their datasets and the packages that hold them."""

    def schema_exists(self, schema_id: str) -> bool: ...

    def get_schema(self, schema_id: str) -> Schema: ...

    def get_schemas(self) -> Iterable[Schema]: ...

    def create_schema(self, schema: Schema) -> Dataset: ...

    def get_dataset(self, schema_id: str) -> Dataset: ...

    def package_exists(self, package_id: str) -> bool: ...


@runtime_checkable
class MappingProjectRepository(Protocol):
    """Persistence for mapping projects."""

    def add(self, project: MappingProject) -> None: ...

    def update(self, project: MappingProject) -> None: ...

    def delete(self, identifier: str) -> None: ...

    def get(self, identifier: str) -> MappingProject | None: ...

    def get_all(self) -> list[MappingProject]: ...

    def find_by_name(self, name: str) -> list[MappingProject]: ...
