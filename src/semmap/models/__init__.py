"""Pydantic data models shared across all semmap components.

All models are re-exported here for convenient imports:
    from semmap.models import Schema, Attribute, MappingProject, Record
"""

from semmap.models.mapping import (
    AlgorithmState,
    AttributeMapping,
    EntityMapping,
    MappingProject,
    MappingTarget,
    new_identifier,
)
from semmap.models.record import Record, RecordFactory, RecordLayout, convert_value
from semmap.models.run import CancellationToken, Progress, RunOptions
from semmap.models.schema import Attribute, AttributeType, Schema

__all__ = [
    # schema
    "AttributeType",
    "Attribute",
    "Schema",
    # record
    "RecordLayout",
    "Record",
    "RecordFactory",
    "convert_value",
    # mapping
    "AlgorithmState",
    "AttributeMapping",
    "EntityMapping",
    "MappingTarget",
    "MappingProject",
    "new_identifier",
    # run
    "RunOptions",
    "Progress",
    "CancellationToken",
]
