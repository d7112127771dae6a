"""Batch application of one entity mapping to a target dataset.

Source records are streamed in fixed-size batches. Each record is turned
into a blank target record, stamped with its provenance (when the target
declares a ``source`` attribute) and filled attribute by attribute through
the algorithm evaluator. Whole batches are then written: appended when the
target started empty, upserted by id otherwise.
"""

from __future__ import annotations

from typing import Any, Protocol

from loguru import logger

from semmap.errors import ConfigurationError
from semmap.mapping.progress import MAPPING_BATCH_SIZE
from semmap.mapping.target import SOURCE
from semmap.models.mapping import AttributeMapping, EntityMapping
from semmap.models.record import Record, RecordFactory
from semmap.models.run import CancellationToken, Progress
from semmap.models.schema import Attribute, Schema
from semmap.storage.base import Dataset, SchemaStore


class Evaluator(Protocol):
    def apply(
        self,
        attribute_mapping: AttributeMapping,
        source: Record,
        source_schema: Schema,
        depth: int,
        *,
        target_attribute: Attribute | None = None,
    ) -> Any: ...


class BatchMappingApplier:
    """Streams a source dataset through an entity mapping into a target dataset."""

    def __init__(
        self,
        schema_store: SchemaStore,
        evaluator: Evaluator,
        record_factory: RecordFactory | None = None,
        batch_size: int = MAPPING_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        self._schemas = schema_store
        self._evaluator = evaluator
        self._factory = record_factory if record_factory is not None else RecordFactory()
        self._batch_size = batch_size

    def apply(
        self,
        entity_mapping: EntityMapping,
        target: Dataset,
        progress: Progress,
        depth: int,
        cancellation: CancellationToken | None = None,
    ) -> int:
        """Map every record of the entity mapping's source into ``target``.

        Whether to insert or upsert is decided once, from the target's record
        count before the first batch.

        Returns:
            Number of source records processed.

        Raises:
            ConfigurationError: If a mapping names an attribute the target lacks.
            TransformError: If an algorithm fails; the run stops at that batch.
            MappingCancelledError: If ``cancellation`` fires between batches.
        """
        label = entity_mapping.display_label
        progress.status(f"Mapping source [{label}]...")

        target_schema = target.schema
        plan = self._plan(entity_mapping, target_schema)
        can_insert_only = target.count() == 0
        logger.info(
            "Applying {source} -> {target} ({mode}, batch size {size})",
            source=entity_mapping.name,
            target=target_schema.id,
            mode="insert" if can_insert_only else "upsert",
            size=self._batch_size,
        )

        source = self._schemas.get_dataset(entity_mapping.name)
        counter = 0
        for batch in source.stream_batched(self._batch_size):
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            mapped = [
                self._map_record(entity_mapping, record, target_schema, plan, depth)
                for record in batch
            ]
            if can_insert_only:
                target.insert_many(mapped)
            else:
                target.upsert_many(mapped)
            progress.increment(1)
            counter += len(batch)
            logger.debug(
                "Wrote batch of {n} from {source} ({total} so far)",
                n=len(batch),
                source=entity_mapping.name,
                total=counter,
            )

        progress.status(f"Mapped {counter} [{label}] entities.")
        return counter

    def map_record(
        self, entity_mapping: EntityMapping, source: Record, target_schema: Schema, depth: int
    ) -> Record:
        """Map a single source record (without writing it)."""
        plan = self._plan(entity_mapping, target_schema)
        return self._map_record(entity_mapping, source, target_schema, plan, depth)

    def _plan(
        self, entity_mapping: EntityMapping, target_schema: Schema
    ) -> list[tuple[int, Attribute, AttributeMapping]]:
        """Resolve each attribute mapping's target position once per run."""
        layout = self._factory.layout(target_schema)
        plan: list[tuple[int, Attribute, AttributeMapping]] = []
        for mapping in entity_mapping.attribute_mappings:
            attribute = target_schema.get_attribute(mapping.target_attribute)
            if attribute is None or mapping.target_attribute not in layout:
                msg = (
                    f"Target '{target_schema.id}' has no attribute "
                    f"'{mapping.target_attribute}' (mapped from {entity_mapping.name})"
                )
                raise ConfigurationError(msg)
            plan.append((layout.position(mapping.target_attribute), attribute, mapping))
        return plan

    def _map_record(
        self,
        entity_mapping: EntityMapping,
        source: Record,
        target_schema: Schema,
        plan: list[tuple[int, Attribute, AttributeMapping]],
        depth: int,
    ) -> Record:
        target = self._factory.create(target_schema)
        if SOURCE in target.layout:
            target.set(SOURCE, entity_mapping.name)
        for position, attribute, mapping in plan:
            value = self._evaluator.apply(
                mapping,
                source,
                entity_mapping.source_schema,
                depth,
                target_attribute=attribute,
            )
            target.set_at(position, value)
        return target
