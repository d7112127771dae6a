"""Derivation of the destination schema for a mapping run."""

from __future__ import annotations

from loguru import logger

from semmap.errors import ConfigurationError, UnknownReferenceError
from semmap.models.mapping import MappingTarget
from semmap.models.schema import Attribute, AttributeType, Schema
from semmap.storage.base import SchemaStore

SOURCE = "source"


class TargetSchemaResolver:
    """Builds the schema a run writes to from the mapping target's nominal schema."""

    def __init__(self, schema_store: SchemaStore) -> None:
        self._schemas = schema_store

    def resolve(
        self,
        mapping_target: MappingTarget,
        target_id: str,
        package_id: str | None = None,
        label: str | None = None,
        add_source_attribute: bool = False,
    ) -> Schema:
        """Copy the nominal target schema, renamed to ``target_id``.

        The package of an existing dataset under ``target_id`` always wins over
        ``package_id``. No storage is created here.

        Raises:
            ConfigurationError: If ``target_id`` is new and no package is given.
            UnknownReferenceError: If the package or the existing schema
                cannot be found.
        """
        target = mapping_target.target.deep_copy(target_id)
        target.label = label or target_id
        target.abstract = False

        if add_source_attribute:
            if target.get_attribute(SOURCE) is None:
                target.attributes.append(Attribute(name=SOURCE, data_type=AttributeType.STRING))
            else:
                logger.warning(
                    "Target {id} already declares a '{attr}' attribute, not adding another",
                    id=target_id,
                    attr=SOURCE,
                )

        if self._schemas.schema_exists(target_id):
            target.package = self._schemas.get_schema(target_id).package
        elif package_id:
            if not self._schemas.package_exists(package_id):
                raise UnknownReferenceError("package", package_id)
            target.package = package_id
        else:
            msg = "Package can't be null"
            raise ConfigurationError(msg)

        logger.debug(
            "Resolved target schema {id} in package {pkg} with {n} attributes",
            id=target.id,
            pkg=target.package,
            n=sum(1 for _ in target.atomic_attributes()),
        )
        return target
