"""Mapping project models.

A MappingProject holds one or more MappingTargets. Each target owns the
nominal target schema and one EntityMapping per contributing source
dataset; each EntityMapping lists AttributeMappings that say how a target
attribute is computed from a source record. The engine only reads these.
"""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field

from semmap.models.schema import Schema


def new_identifier() -> str:
    """Generate a short random identifier (uuid4 hex, 12 characters)."""
    return uuid.uuid4().hex[:12]


class AlgorithmState(StrEnum):
    """Curation state of an attribute algorithm."""

    CURATED = "curated"
    GENERATED_HIGH = "generated_high"
    GENERATED_LOW = "generated_low"
    DISCUSS = "discuss"


class AttributeMapping(BaseModel):
    """How one target attribute is computed from a source record."""

    identifier: str = Field(default_factory=new_identifier, description="Attribute mapping id")
    target_attribute: str = Field(..., min_length=1, description="Target attribute name")
    algorithm: str = Field(..., description="Opaque rule handed to the algorithm evaluator")
    source_attributes: list[str] = Field(
        default_factory=list, description="Source attribute names the algorithm reads"
    )
    algorithm_state: AlgorithmState = Field(
        default=AlgorithmState.CURATED, description="Curation state of the algorithm"
    )


class EntityMapping(BaseModel):
    """Mapping of one source dataset into the target."""

    identifier: str = Field(default_factory=new_identifier, description="Entity mapping id")
    source_schema: Schema = Field(..., description="Schema of the source dataset")
    label: str | None = Field(default=None, description="Display label for progress messages")
    attribute_mappings: list[AttributeMapping] = Field(
        default_factory=list, description="Ordered attribute mappings"
    )

    @property
    def name(self) -> str:
        """Source dataset id; also the provenance value written to ``source``."""
        return self.source_schema.id

    @property
    def display_label(self) -> str:
        return self.label or self.source_schema.label or self.source_schema.id

    def get_attribute_mapping(self, target_attribute: str) -> AttributeMapping | None:
        for mapping in self.attribute_mappings:
            if mapping.target_attribute == target_attribute:
                return mapping
        return None

    def add_attribute_mapping(
        self, target_attribute: str, algorithm: str, **kwargs: object
    ) -> AttributeMapping:
        """Add (or replace) the mapping for ``target_attribute``."""
        existing = self.get_attribute_mapping(target_attribute)
        if existing is not None:
            self.attribute_mappings.remove(existing)
        mapping = AttributeMapping(
            target_attribute=target_attribute, algorithm=algorithm, **kwargs  # type: ignore[arg-type]
        )
        self.attribute_mappings.append(mapping)
        return mapping


class MappingTarget(BaseModel):
    """A target schema and the source mappings that contribute to it."""

    identifier: str = Field(default_factory=new_identifier, description="Mapping target id")
    target: Schema = Field(..., description="Nominal target schema")
    entity_mappings: list[EntityMapping] = Field(
        default_factory=list, description="Ordered entity mappings; order is write order"
    )

    def has_self_references(self) -> bool:
        return self.target.has_self_references()

    def get_mapping_for_source(self, source_id: str) -> EntityMapping | None:
        for mapping in self.entity_mappings:
            if mapping.name == source_id:
                return mapping
        return None

    def add_source(self, source_schema: Schema, label: str | None = None) -> EntityMapping:
        if self.get_mapping_for_source(source_schema.id) is not None:
            msg = f"Target '{self.target.id}' already maps source '{source_schema.id}'"
            raise ValueError(msg)
        mapping = EntityMapping(source_schema=source_schema, label=label)
        self.entity_mappings.append(mapping)
        return mapping


class MappingProject(BaseModel):
    """Named, persisted collection of mapping targets."""

    identifier: str = Field(default_factory=new_identifier, description="Project id")
    name: str = Field(..., min_length=1, description="Project name")
    depth: int = Field(default=3, ge=0, description="Max reference depth for algorithms")
    mapping_targets: list[MappingTarget] = Field(
        default_factory=list, description="Ordered mapping targets"
    )

    def add_target(self, target: Schema) -> MappingTarget:
        mapping_target = MappingTarget(target=target)
        self.mapping_targets.append(mapping_target)
        return mapping_target

    def get_mapping_target(self, target_id: str) -> MappingTarget | None:
        for mapping_target in self.mapping_targets:
            if mapping_target.target.id == target_id:
                return mapping_target
        return None

    def remove_identifiers(self) -> None:
        """Give this project and everything it owns fresh identifiers."""
        self.identifier = new_identifier()
        for mapping_target in self.mapping_targets:
            mapping_target.identifier = new_identifier()
            for entity_mapping in mapping_target.entity_mappings:
                entity_mapping.identifier = new_identifier()
                for attribute_mapping in entity_mapping.attribute_mappings:
                    attribute_mapping.identifier = new_identifier()
