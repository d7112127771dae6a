"""Mapping application engine.

Orchestrates a run: resolve the target schema, create or validate the
target dataset, seed progress, apply every entity mapping in batches, and
apply everything once more when the target references itself. Also exposes
the project-level operations (create, clone, update, delete, list) and the
compatible-target discovery query.
"""

from __future__ import annotations

from loguru import logger

from semmap.errors import ConfigurationError, SemmapError, UnknownReferenceError
from semmap.mapping.algorithms import AlgorithmEvaluator
from semmap.mapping.applier import BatchMappingApplier, Evaluator
from semmap.mapping.compatibility import check_compatible, find_compatible_schemas
from semmap.mapping.progress import MAPPING_BATCH_SIZE, ProgressEstimator
from semmap.mapping.target import TargetSchemaResolver
from semmap.models.mapping import MappingProject, MappingTarget
from semmap.models.record import RecordFactory
from semmap.models.run import CancellationToken, Progress, RunOptions
from semmap.models.schema import Schema
from semmap.security import Actor, PermissionGrantor, Role, require_role
from semmap.storage.base import Dataset, MappingProjectRepository, SchemaStore

_COPY_SUFFIX = " - Copy"


class MappingApplicationEngine:
    """Applies mapping projects to target datasets.

    Every public operation first checks that the acting user is a superuser.

    Usage::

        engine = MappingApplicationEngine(
            schema_store=store,
            project_store=projects,
            permissions=PermissionRegistry(),
            actor=Actor(username="admin", roles={Role.SUPERUSER}),
        )
        written = engine.apply_mappings(
            project.identifier,
            RunOptions(target_id="person_out", package_id="base"),
            LoggingProgress(),
        )
    """

    def __init__(
        self,
        *,
        schema_store: SchemaStore,
        project_store: MappingProjectRepository,
        permissions: PermissionGrantor,
        actor: Actor,
        evaluator: Evaluator | None = None,
        record_factory: RecordFactory | None = None,
        batch_size: int = MAPPING_BATCH_SIZE,
    ) -> None:
        """Initialize the engine with its collaborators.

        Args:
            schema_store: Schemas, datasets and packages.
            project_store: Mapping project persistence.
            permissions: Grants write-metadata permission on new targets.
            actor: User on whose behalf operations run.
            evaluator: Algorithm evaluator; defaults to AlgorithmEvaluator.
            record_factory: Blank record factory; defaults to RecordFactory.
            batch_size: Records per batch for reads, writes and progress.
        """
        self._schemas = schema_store
        self._projects = project_store
        self._permissions = permissions
        self._actor = actor
        self._evaluator = evaluator if evaluator is not None else AlgorithmEvaluator(schema_store)
        self._resolver = TargetSchemaResolver(schema_store)
        self._estimator = ProgressEstimator(schema_store, batch_size)
        self._applier = BatchMappingApplier(
            schema_store, self._evaluator, record_factory, batch_size
        )

    @property
    def actor(self) -> Actor:
        return self._actor

    def _authorize(self) -> None:
        require_role(self._actor, Role.SUPERUSER)

    # -- mapping projects -------------------------------------------------

    def add_mapping_project(self, name: str, target_id: str, depth: int = 3) -> MappingProject:
        """Create and store a project with one mapping target."""
        self._authorize()
        target = self._schemas.get_schema(target_id)
        project = MappingProject(name=name, depth=depth)
        project.add_target(target.deep_copy())
        self._projects.add(project)
        logger.info(
            "Created mapping project {name} [{id}] for target {target}",
            name=name,
            id=project.identifier,
            target=target_id,
        )
        return project

    def delete_mapping_project(self, project_id: str) -> None:
        self._authorize()
        self._projects.delete(project_id)
        logger.info("Deleted mapping project {id}", id=project_id)

    def clone_mapping_project(
        self, project_id: str, clone_name: str | None = None
    ) -> MappingProject:
        """Store a copy of a project under fresh identifiers.

        Without ``clone_name`` the copy is called "<name> - Copy", or
        "<name> - Copy (n)" for the first n >= 2 not yet taken.
        """
        self._authorize()
        project = self._get_project(project_id)
        if clone_name is None:
            clone_name = self._next_copy_name(project.name)
        clone = project.model_copy(deep=True)
        clone.remove_identifiers()
        clone.name = clone_name
        self._projects.add(clone)
        logger.info(
            "Cloned mapping project {src} into {name} [{id}]",
            src=project_id,
            name=clone_name,
            id=clone.identifier,
        )
        return clone

    def _next_copy_name(self, name: str) -> str:
        candidate = f"{name}{_COPY_SUFFIX}"
        i = 2
        while self._projects.find_by_name(candidate):
            candidate = f"{name}{_COPY_SUFFIX} ({i})"
            i += 1
        return candidate

    def get_all_mapping_projects(self) -> list[MappingProject]:
        self._authorize()
        return self._projects.get_all()

    def get_mapping_project(self, project_id: str) -> MappingProject:
        """Raises UnknownReferenceError if the project does not exist."""
        self._authorize()
        return self._get_project(project_id)

    def update_mapping_project(self, project: MappingProject) -> None:
        self._authorize()
        self._projects.update(project)

    def _get_project(self, project_id: str) -> MappingProject:
        project = self._projects.get(project_id)
        if project is None:
            raise UnknownReferenceError("mapping project", project_id)
        return project

    # -- discovery --------------------------------------------------------

    def get_compatible_schemas(self, target: Schema) -> list[Schema]:
        """Non-abstract stored schemas that could receive records shaped like ``target``."""
        self._authorize()
        return find_compatible_schemas(target, self._schemas.get_schemas())

    # -- applying ---------------------------------------------------------

    def apply_mappings(
        self,
        project_id: str,
        options: RunOptions,
        progress: Progress,
        cancellation: CancellationToken | None = None,
    ) -> int:
        """Apply a mapping project to the dataset ``options.target_id``.

        Args:
            project_id: Identifier of the mapping project.
            options: Target id, package, label, provenance flag, depth override.
            progress: Progress sink; its maximum is set before any write.
            cancellation: Optional token checked at every batch boundary.

        Returns:
            Number of source records written by the first pass.

        Raises:
            ConfigurationError: Missing target id or package, or no mapping target.
            UnknownReferenceError: Unknown project, package or source dataset.
            IncompatibleSchemaError: The existing target cannot hold the mapping.
            TransformError: An algorithm failed while mapping a record.
            MappingCancelledError: ``cancellation`` fired.
        """
        self._authorize()
        if not options.target_id:
            msg = "Target dataset id can't be empty"
            raise ConfigurationError(msg)
        target_id = options.target_id

        project = self._get_project(project_id)
        mapping_target = self._select_target(project, options.mapping_target)
        depth = options.depth if options.depth is not None else project.depth

        logger.info(
            "Applying mapping project {name} [{id}] to {target}",
            name=project.name,
            id=project.identifier,
            target=target_id,
        )
        try:
            progress.status(f"Checking target repository [{target_id}]...")
            target_schema = self._resolver.resolve(
                mapping_target,
                target_id,
                options.package_id,
                options.label,
                options.add_source_attribute,
            )
            target = self._get_target_dataset(target_schema)
            progress.set_max(self._estimator.estimate_batches(mapping_target, target.schema))
            return self._apply_passes(mapping_target, target, progress, depth, cancellation)
        except SemmapError as e:
            logger.error(
                "Applying mapping project {id} to {target} failed: {err}",
                id=project.identifier,
                target=target_id,
                err=e,
            )
            raise

    def _select_target(self, project: MappingProject, nominal_id: str | None) -> MappingTarget:
        if not project.mapping_targets:
            msg = f"Mapping project '{project.name}' has no mapping targets"
            raise ConfigurationError(msg)
        if nominal_id is None:
            return project.mapping_targets[0]
        mapping_target = project.get_mapping_target(nominal_id)
        if mapping_target is None:
            raise UnknownReferenceError("mapping target", nominal_id)
        return mapping_target

    def _get_target_dataset(self, target_schema: Schema) -> Dataset:
        if self._schemas.schema_exists(target_schema.id):
            dataset = self._schemas.get_dataset(target_schema.id)
            check_compatible(dataset.schema, target_schema)
            logger.debug("Target {id} exists and is compatible", id=target_schema.id)
            return dataset
        dataset = self._schemas.create_schema(target_schema)
        self._permissions.grant_write_metadata(target_schema, self._actor)
        logger.info(
            "Created target {id} in package {pkg}",
            id=target_schema.id,
            pkg=target_schema.package,
        )
        return dataset

    def _apply_passes(
        self,
        mapping_target: MappingTarget,
        target: Dataset,
        progress: Progress,
        depth: int,
        cancellation: CancellationToken | None,
    ) -> int:
        target_id = target.schema.id
        progress.status(f"Applying mappings to repository [{target_id}]")
        written = self._apply_pass(mapping_target, target, progress, depth, cancellation)
        if target.schema.has_self_references():
            progress.status(
                "Self reference found, applying the mapping for a second time to set references"
            )
            self._apply_pass(mapping_target, target, progress, depth, cancellation)
        progress.status(f"Done applying mappings to repository [{target_id}]")
        if isinstance(self._evaluator, AlgorithmEvaluator):
            self._evaluator.cache.log_statistics()
        logger.info("Wrote {n} records to {target}", n=written, target=target_id)
        return written

    def _apply_pass(
        self,
        mapping_target: MappingTarget,
        target: Dataset,
        progress: Progress,
        depth: int,
        cancellation: CancellationToken | None,
    ) -> int:
        return sum(
            self._applier.apply(entity_mapping, target, progress, depth, cancellation)
            for entity_mapping in mapping_target.entity_mappings
        )
