"""Reference lookup cache with explicit absence.

Each cached entry is a Lookup: either the found record or a confirmed
absence. A missing dict entry means "not loaded yet", so batch loaders only
go to the dataset for ids they have never asked about. A dataset's entries
are dropped as soon as its ``version`` moves, which happens on every write;
this is what lets the second pass of a self-referencing run see rows written
by the first.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from semmap.models.record import Record
from semmap.storage.base import Dataset, SchemaStore

MAX_CACHE_SIZE_PER_DATASET = 1000


@dataclass(frozen=True, slots=True)
class Lookup:
    """Result of a cached lookup; ``record`` is None for a confirmed absence."""

    record: Record | None

    @property
    def present(self) -> bool:
        return self.record is not None


ABSENT = Lookup(None)


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class _DatasetCache:
    __slots__ = ("version", "entries")

    def __init__(self, version: int) -> None:
        self.version = version
        self.entries: OrderedDict[Any, Lookup] = OrderedDict()


class ReferenceCache:
    """LRU cache of records by (schema id, record id)."""

    def __init__(
        self,
        schema_store: SchemaStore,
        max_size_per_dataset: int = MAX_CACHE_SIZE_PER_DATASET,
    ) -> None:
        self._schemas = schema_store
        self._max_size = max_size_per_dataset
        self._caches: dict[str, _DatasetCache] = {}
        self._stats = CacheStats()

    def get(self, schema_id: str, record_id: Any) -> Record | None:
        """Return the record with ``record_id`` or None if it does not exist."""
        dataset = self._schemas.get_dataset(schema_id)
        cache = self._cache_for(schema_id, dataset)
        lookup = cache.entries.get(record_id)
        if lookup is None:
            self._stats.misses += 1
            record = dataset.find_by_id(record_id)
            lookup = Lookup(record) if record is not None else ABSENT
            self._put(cache, record_id, lookup)
        else:
            self._stats.hits += 1
            cache.entries.move_to_end(record_id)
        return lookup.record

    def get_batch(self, schema_id: str, record_ids: Iterable[Any]) -> list[Record]:
        """Return the existing records among ``record_ids``, loading misses in one call."""
        dataset = self._schemas.get_dataset(schema_id)
        cache = self._cache_for(schema_id, dataset)
        ids = list(dict.fromkeys(record_ids))
        missing = [i for i in ids if i not in cache.entries]
        self._stats.hits += len(ids) - len(missing)
        self._stats.misses += len(missing)
        if missing:
            found = {r.id_value: r for r in dataset.find_all(missing)}
            for record_id in missing:
                record = found.get(record_id)
                # cache the absence of ids the dataset does not hold
                self._put(cache, record_id, Lookup(record) if record is not None else ABSENT)
        result: list[Record] = []
        for record_id in ids:
            lookup = cache.entries.get(record_id)
            if lookup is None:
                # evicted while loading a batch larger than the cache
                record = dataset.find_by_id(record_id)
                lookup = Lookup(record) if record is not None else ABSENT
            if lookup.present:
                result.append(lookup.record)  # type: ignore[arg-type]
        return result

    def is_cached(self, schema_id: str, record_id: Any) -> bool:
        """True when a lookup of ``record_id`` would be answered from the cache."""
        cache = self._caches.get(schema_id)
        if cache is None or record_id not in cache.entries:
            return False
        return cache.version == self._schemas.get_dataset(schema_id).version

    def invalidate(self, schema_id: str | None = None) -> None:
        """Drop the cache of one dataset, or of all datasets."""
        if schema_id is None:
            self._caches.clear()
        else:
            self._caches.pop(schema_id, None)

    def stats(self) -> CacheStats:
        return CacheStats(self._stats.hits, self._stats.misses, self._stats.evictions)

    def log_statistics(self) -> None:
        logger.debug(
            "Reference cache: {n} datasets, hits={hits} misses={misses} evictions={ev}",
            n=len(self._caches),
            hits=self._stats.hits,
            misses=self._stats.misses,
            ev=self._stats.evictions,
        )

    def _cache_for(self, schema_id: str, dataset: Dataset) -> _DatasetCache:
        cache = self._caches.get(schema_id)
        if cache is None or cache.version != dataset.version:
            cache = _DatasetCache(dataset.version)
            self._caches[schema_id] = cache
        return cache

    def _put(self, cache: _DatasetCache, record_id: Any, lookup: Lookup) -> None:
        cache.entries[record_id] = lookup
        cache.entries.move_to_end(record_id)
        while len(cache.entries) > self._max_size:
            cache.entries.popitem(last=False)
            self._stats.evictions += 1
