"""Tests for target schema resolution."""

from __future__ import annotations

import pytest

from semmap.errors import ConfigurationError, UnknownReferenceError
from semmap.mapping.target import SOURCE, TargetSchemaResolver
from semmap.models.mapping import MappingTarget
from semmap.models.schema import Attribute, AttributeType, Schema
from semmap.storage.memory import InMemorySchemaStore


def _make_target(*extra: Attribute) -> MappingTarget:
    schema = Schema(
        id="person",
        label="Person",
        package="base",
        abstract=True,
        attributes=[
            Attribute(name="id", id_attribute=True),
            Attribute(name="name"),
            Attribute(name="parent", data_type=AttributeType.XREF, ref_schema="person"),
            *extra,
        ],
    )
    return MappingTarget(target=schema)


def _make_existing() -> Schema:
    return Schema(id="out", package="base", attributes=[Attribute(name="id", id_attribute=True)])


@pytest.fixture()
def store() -> InMemorySchemaStore:
    return InMemorySchemaStore(["base", "study"])


@pytest.fixture()
def resolver(store: InMemorySchemaStore) -> TargetSchemaResolver:
    return TargetSchemaResolver(store)


class TestResolveNewTarget:
    def test_copy_renamed_into_package(self, resolver: TargetSchemaResolver) -> None:
        mapping_target = _make_target()
        target = resolver.resolve(mapping_target, "person_out", package_id="study")
        assert target.id == "person_out"
        assert target.package == "study"
        assert target.label == "person_out"
        assert target.abstract is False
        assert [a.name for a in target.atomic_attributes()] == ["id", "name", "parent"]

    def test_nominal_schema_untouched(self, resolver: TargetSchemaResolver) -> None:
        mapping_target = _make_target()
        resolver.resolve(
            mapping_target, "person_out", package_id="study", add_source_attribute=True
        )
        assert mapping_target.target.id == "person"
        assert mapping_target.target.abstract is True
        assert mapping_target.target.get_attribute(SOURCE) is None

    def test_self_references_follow_rename(self, resolver: TargetSchemaResolver) -> None:
        target = resolver.resolve(_make_target(), "person_out", package_id="study")
        assert target.get_attribute("parent").ref_schema == "person_out"  # type: ignore[union-attr]
        assert target.has_self_references()

    def test_label_override(self, resolver: TargetSchemaResolver) -> None:
        target = resolver.resolve(_make_target(), "out", package_id="study", label="Output")
        assert target.label == "Output"

    def test_missing_package(self, resolver: TargetSchemaResolver) -> None:
        with pytest.raises(ConfigurationError, match="Package can't be null"):
            resolver.resolve(_make_target(), "out")

    def test_unknown_package(self, resolver: TargetSchemaResolver) -> None:
        with pytest.raises(UnknownReferenceError, match=r"Unknown package \[nope\]"):
            resolver.resolve(_make_target(), "out", package_id="nope")


class TestResolveExistingTarget:
    def test_existing_package_wins(
        self, store: InMemorySchemaStore, resolver: TargetSchemaResolver
    ) -> None:
        store.create_schema(_make_existing())
        target = resolver.resolve(_make_target(), "out", package_id="study")
        assert target.package == "base"

    def test_existing_target_needs_no_package(
        self, store: InMemorySchemaStore, resolver: TargetSchemaResolver
    ) -> None:
        store.create_schema(_make_existing())
        assert resolver.resolve(_make_target(), "out").package == "base"


class TestSourceAttribute:
    def test_added_as_last_string_attribute(self, resolver: TargetSchemaResolver) -> None:
        target = resolver.resolve(
            _make_target(), "out", package_id="study", add_source_attribute=True
        )
        last = target.attributes[-1]
        assert last.name == SOURCE
        assert last.data_type == AttributeType.STRING

    def test_not_added_by_default(self, resolver: TargetSchemaResolver) -> None:
        target = resolver.resolve(_make_target(), "out", package_id="study")
        assert target.get_attribute(SOURCE) is None

    def test_not_duplicated(self, resolver: TargetSchemaResolver) -> None:
        mapping_target = _make_target(Attribute(name=SOURCE, label="Origin"))
        target = resolver.resolve(
            mapping_target, "out", package_id="study", add_source_attribute=True
        )
        sources = [a for a in target.atomic_attributes() if a.name == SOURCE]
        assert len(sources) == 1
        assert sources[0].label == "Origin"
