"""Schema compatibility checks.

A candidate schema is compatible with an existing one when every atomic
candidate attribute exists in the existing schema with the same data type
and, for reference types, the same referenced schema. The existing schema
may carry extra attributes.
"""

from __future__ import annotations

from collections.abc import Iterable

from semmap.errors import IncompatibleSchemaError
from semmap.models.schema import Schema


def check_compatible(existing: Schema, candidate: Schema) -> None:
    """Verify that records shaped like ``candidate`` fit into ``existing``.

    Rules are checked per candidate attribute, in declaration order; the first
    violation is raised.

    Args:
        existing: Schema of the stored dataset.
        candidate: Schema a mapping run wants to write.

    Raises:
        IncompatibleSchemaError: Naming the attribute and the offending types
            or referenced schemas.
    """
    existing_attributes = {a.name: a for a in existing.atomic_attributes()}

    for candidate_attr in candidate.atomic_attributes():
        name = candidate_attr.name
        existing_attr = existing_attributes.get(name)
        if existing_attr is None:
            msg = f"Target repository does not contain the following attribute: {name}"
            raise IncompatibleSchemaError(msg)

        candidate_type = candidate_attr.data_type
        existing_type = existing_attr.data_type
        if candidate_type != existing_type:
            msg = (
                f"attribute {name} in the mapping target is type {candidate_type} while "
                f"attribute {existing_attr.name} in the target repository is type "
                f"{existing_type}. Please make sure the types are the same"
            )
            raise IncompatibleSchemaError(msg)

        if candidate_attr.is_reference and candidate_attr.ref_schema != existing_attr.ref_schema:
            msg = (
                f"In the mapping target, attribute {name} of type {candidate_type} has "
                f"reference entity {candidate_attr.ref_schema} while in the target repository "
                f"attribute {existing_attr.name} of type {existing_type} has reference entity "
                f"{existing_attr.ref_schema}. Please make sure the reference entities of your "
                f"mapping target are pointing towards the same reference entities as your "
                f"target repository"
            )
            raise IncompatibleSchemaError(msg)


def is_compatible(existing: Schema, candidate: Schema) -> bool:
    """Predicate form of :func:`check_compatible`."""
    try:
        check_compatible(existing, candidate)
    except IncompatibleSchemaError:
        return False
    return True


def find_compatible_schemas(candidate: Schema, schemas: Iterable[Schema]) -> list[Schema]:
    """Return the non-abstract schemas that could host records of ``candidate``.

    Each schema is compared against a copy of ``candidate`` renamed to its id,
    so self-references line up the same way they do when a run targets it.
    """
    return [
        schema
        for schema in schemas
        if not schema.abstract and is_compatible(schema, candidate.deep_copy(schema.id))
    ]
