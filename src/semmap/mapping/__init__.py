"""Mapping application engine.

Validates target schemas, estimates progress, and streams source datasets
through entity mappings into target datasets in batches.
"""

from semmap.mapping.algorithms import AlgorithmEvaluator
from semmap.mapping.applier import BatchMappingApplier
from semmap.mapping.cache import ReferenceCache
from semmap.mapping.compatibility import check_compatible, find_compatible_schemas, is_compatible
from semmap.mapping.engine import MappingApplicationEngine
from semmap.mapping.progress import MAPPING_BATCH_SIZE, LoggingProgress, ProgressEstimator
from semmap.mapping.target import SOURCE, TargetSchemaResolver

__all__ = [
    "MAPPING_BATCH_SIZE",
    "SOURCE",
    "AlgorithmEvaluator",
    "BatchMappingApplier",
    "LoggingProgress",
    "MappingApplicationEngine",
    "ProgressEstimator",
    "ReferenceCache",
    "TargetSchemaResolver",
    "check_compatible",
    "find_compatible_schemas",
    "is_compatible",
]
