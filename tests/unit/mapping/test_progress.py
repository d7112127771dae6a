"""Tests for progress estimation."""

from __future__ import annotations

import pytest

from semmap.mapping.progress import MAPPING_BATCH_SIZE, LoggingProgress, ProgressEstimator
from semmap.models.mapping import MappingTarget
from semmap.models.schema import Attribute, AttributeType, Schema
from semmap.storage.memory import InMemorySchemaStore


def _make_source(store: InMemorySchemaStore, schema_id: str, rows: int) -> Schema:
    schema = Schema(id=schema_id, attributes=[Attribute(name="id", id_attribute=True)])
    store.create_schema(schema, ({"id": f"{schema_id}-{i}"} for i in range(rows)))
    return schema


def _make_target(self_referencing: bool = False) -> MappingTarget:
    attributes = [Attribute(name="id", id_attribute=True)]
    if self_referencing:
        attributes.append(
            Attribute(name="parent", data_type=AttributeType.XREF, ref_schema="person")
        )
    return MappingTarget(target=Schema(id="person", attributes=attributes))


class TestCountBatches:
    @pytest.mark.parametrize(
        ("rows", "expected"),
        [(0, 0), (1, 1), (999, 1), (1000, 1), (1001, 2), (2500, 3)],
    )
    def test_ceiling_division(self, rows: int, expected: int) -> None:
        store = InMemorySchemaStore()
        mapping_target = _make_target()
        entity_mapping = mapping_target.add_source(_make_source(store, "src", rows))
        assert ProgressEstimator(store).count_batches(entity_mapping) == expected

    def test_custom_batch_size(self) -> None:
        store = InMemorySchemaStore()
        mapping_target = _make_target()
        entity_mapping = mapping_target.add_source(_make_source(store, "src", 25))
        assert ProgressEstimator(store, batch_size=10).count_batches(entity_mapping) == 3

    def test_rejects_non_positive_batch_size(self) -> None:
        with pytest.raises(ValueError, match="batch_size must be positive"):
            ProgressEstimator(InMemorySchemaStore(), batch_size=0)


class TestEstimateBatches:
    def test_default_batch_size(self) -> None:
        assert MAPPING_BATCH_SIZE == 1000

    def test_sums_over_sources(self) -> None:
        store = InMemorySchemaStore()
        mapping_target = _make_target()
        mapping_target.add_source(_make_source(store, "a", 2500))
        mapping_target.add_source(_make_source(store, "b", 10))
        assert ProgressEstimator(store).estimate_batches(mapping_target) == 4

    def test_self_reference_doubles(self) -> None:
        store = InMemorySchemaStore()
        mapping_target = _make_target(self_referencing=True)
        mapping_target.add_source(_make_source(store, "a", 2500))
        assert ProgressEstimator(store).estimate_batches(mapping_target) == 6

    def test_resolved_schema_decides_doubling(self) -> None:
        store = InMemorySchemaStore()
        mapping_target = _make_target(self_referencing=True)
        mapping_target.add_source(_make_source(store, "a", 2500))
        plain = Schema(id="out", attributes=[Attribute(name="id", id_attribute=True)])
        assert ProgressEstimator(store).estimate_batches(mapping_target, plain) == 3

    def test_no_sources(self) -> None:
        assert ProgressEstimator(InMemorySchemaStore()).estimate_batches(_make_target()) == 0


class TestLoggingProgress:
    def test_tracks_max_and_done(self) -> None:
        progress = LoggingProgress()
        progress.set_max(3)
        progress.status("Mapping source [x]...")
        progress.increment(1)
        progress.increment(1)
        assert progress.maximum == 3
        assert progress.done == 2
