"""Schema description models.

A Schema describes the shape of a dataset: an ordered list of attributes,
each with a data type and, for reference types, the id of the schema it
points to. Compound attributes group child attributes and never hold values
themselves; everything else is atomic.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class AttributeType(StrEnum):
    """Data type of a schema attribute."""

    STRING = "string"
    TEXT = "text"
    INT = "int"
    LONG = "long"
    DECIMAL = "decimal"
    BOOL = "bool"
    DATE = "date"
    DATE_TIME = "date_time"
    EMAIL = "email"
    HYPERLINK = "hyperlink"
    ENUM = "enum"
    XREF = "xref"
    MREF = "mref"
    CATEGORICAL = "categorical"
    CATEGORICAL_MREF = "categorical_mref"
    ONE_TO_MANY = "one_to_many"
    COMPOUND = "compound"

    @property
    def is_reference(self) -> bool:
        """True for types whose values are ids of records in another schema."""
        return self in _REFERENCE_TYPES

    @property
    def is_multiple(self) -> bool:
        """True for reference types holding a list of ids."""
        return self in _MULTIPLE_REFERENCE_TYPES


_REFERENCE_TYPES = frozenset(
    {
        AttributeType.XREF,
        AttributeType.MREF,
        AttributeType.CATEGORICAL,
        AttributeType.CATEGORICAL_MREF,
        AttributeType.ONE_TO_MANY,
    }
)

_MULTIPLE_REFERENCE_TYPES = frozenset(
    {
        AttributeType.MREF,
        AttributeType.CATEGORICAL_MREF,
        AttributeType.ONE_TO_MANY,
    }
)


class Attribute(BaseModel):
    """A single attribute of a schema."""

    name: str = Field(..., min_length=1, description="Attribute name, unique within a schema")
    data_type: AttributeType = Field(
        default=AttributeType.STRING, description="Primitive or reference data type"
    )
    label: str | None = Field(default=None, description="Human-readable label")
    ref_schema: str | None = Field(
        default=None, description="Id of the referenced schema (reference types only)"
    )
    id_attribute: bool = Field(
        default=False, description="True if this attribute holds the record identity"
    )
    nillable: bool = Field(default=True, description="Whether the value may be missing")
    default_value: str | None = Field(
        default=None, description="Default value, as text, applied to blank records"
    )
    children: list[Attribute] = Field(
        default_factory=list, description="Child attributes (compound type only)"
    )

    @model_validator(mode="after")
    def _check_type_consistency(self) -> Attribute:
        if self.data_type.is_reference and not self.ref_schema:
            msg = f"Reference attribute '{self.name}' of type {self.data_type} needs ref_schema"
            raise ValueError(msg)
        if self.children and self.data_type != AttributeType.COMPOUND:
            msg = f"Only compound attributes can have children, '{self.name}' is {self.data_type}"
            raise ValueError(msg)
        return self

    @property
    def is_reference(self) -> bool:
        return self.data_type.is_reference

    @property
    def is_compound(self) -> bool:
        return self.data_type == AttributeType.COMPOUND


class Schema(BaseModel):
    """Description of a dataset: id, package, and ordered attributes."""

    id: str = Field(..., min_length=1, description="Schema id, also the dataset id")
    label: str | None = Field(default=None, description="Human-readable label")
    package: str | None = Field(default=None, description="Id of the owning package")
    abstract: bool = Field(default=False, description="Abstract schemas hold no data")
    attributes: list[Attribute] = Field(
        default_factory=list, description="Ordered attributes (compound ones may nest)"
    )

    def atomic_attributes(self) -> Iterator[Attribute]:
        """Yield all non-compound attributes, depth first, in declaration order."""
        yield from _iter_atomic(self.attributes)

    def get_attribute(self, name: str) -> Attribute | None:
        for attribute in self.atomic_attributes():
            if attribute.name == name:
                return attribute
        return None

    @property
    def id_attribute(self) -> Attribute | None:
        for attribute in self.atomic_attributes():
            if attribute.id_attribute:
                return attribute
        return None

    def has_self_references(self) -> bool:
        """True if any atomic reference attribute points back at this schema."""
        return any(
            attribute.is_reference and attribute.ref_schema == self.id
            for attribute in self.atomic_attributes()
        )

    def add_attribute(self, attribute: Attribute) -> None:
        if self.get_attribute(attribute.name) is not None:
            msg = f"Schema '{self.id}' already has an attribute named '{attribute.name}'"
            raise ValueError(msg)
        self.attributes.append(attribute)

    def deep_copy(self, new_id: str | None = None) -> Schema:
        """Return a copy whose attributes are copied by value.

        When ``new_id`` is given the copy is renamed, and reference attributes
        that pointed at this schema are re-pointed at the new id.
        """
        copy = self.model_copy(deep=True)
        if new_id is None or new_id == self.id:
            return copy
        for attribute in copy.atomic_attributes():
            if attribute.is_reference and attribute.ref_schema == self.id:
                attribute.ref_schema = new_id
        copy.id = new_id
        return copy


def _iter_atomic(attributes: list[Attribute]) -> Iterator[Attribute]:
    for attribute in attributes:
        if attribute.is_compound:
            yield from _iter_atomic(attribute.children)
        else:
            yield attribute
