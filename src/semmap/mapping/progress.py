"""Progress estimation and a loguru-backed progress sink."""

from __future__ import annotations

from loguru import logger

from semmap.models.mapping import EntityMapping, MappingTarget
from semmap.models.schema import Schema
from semmap.storage.base import SchemaStore

MAPPING_BATCH_SIZE = 1000


class ProgressEstimator:
    """Computes the expected number of batches for a run.

    The result seeds the progress maximum. Source counts may change during
    a run, so it is an estimate, not a guarantee.
    """

    def __init__(self, schema_store: SchemaStore, batch_size: int = MAPPING_BATCH_SIZE) -> None:
        if batch_size < 1:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        self._schemas = schema_store
        self._batch_size = batch_size

    def estimate_batches(
        self, mapping_target: MappingTarget, target_schema: Schema | None = None
    ) -> int:
        """Sum of per-source batch counts, doubled for self-referencing targets.

        Args:
            mapping_target: Target whose entity mappings will be applied.
            target_schema: Resolved target schema; defaults to the nominal one.
        """
        batches = sum(self.count_batches(m) for m in mapping_target.entity_mappings)
        schema = target_schema if target_schema is not None else mapping_target.target
        if schema.has_self_references():
            batches *= 2
        return batches

    def count_batches(self, entity_mapping: EntityMapping) -> int:
        rows = self._schemas.get_dataset(entity_mapping.name).count()
        batches, remainder = divmod(rows, self._batch_size)
        if remainder > 0:
            batches += 1
        return batches


class LoggingProgress:
    """Progress sink that writes to the log. Used when no UI is attached."""

    def __init__(self) -> None:
        self.maximum = 0
        self.done = 0

    def set_max(self, maximum: int) -> None:
        self.maximum = maximum
        logger.info("Expecting {n} batches", n=maximum)

    def status(self, message: str) -> None:
        logger.info(message)

    def increment(self, amount: int) -> None:
        self.done += amount
        logger.debug("Progress {done}/{max}", done=self.done, max=self.maximum)
