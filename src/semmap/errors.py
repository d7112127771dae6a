"""Exception hierarchy for the mapping engine.

Every error raised by semmap derives from SemmapError so callers (the CLI
in particular) can report failures uniformly. Messages are written to be
shown to a user as-is: they name the entity, attribute and offending types.
"""

from __future__ import annotations


class SemmapError(Exception):
    """Base class for all semmap errors."""


class ConfigurationError(SemmapError):
    """Raised when a run is misconfigured before any I/O takes place.

    Examples: a new target without a package, an empty target id, a mapping
    project without targets.
    """


class IncompatibleSchemaError(SemmapError):
    """Raised when a candidate schema cannot be written into an existing one."""


class UnknownReferenceError(SemmapError):
    """Raised when a referenced project, schema, dataset or package does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind} [{identifier}]")


class TransformError(SemmapError):
    """Raised when an attribute algorithm cannot be evaluated for a record."""


class StorageError(SemmapError):
    """Raised by dataset implementations when a write cannot be applied."""


class DuplicateRecordError(StorageError):
    """Raised when an insert would create a second record with the same identity."""


class AuthorizationError(SemmapError):
    """Raised when the acting user lacks the role an operation requires."""


class MappingCancelledError(SemmapError):
    """Raised at a batch boundary after cancellation was requested."""
