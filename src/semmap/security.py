"""Actors, role checks and schema permission grants.

Engine entry points call ``require_role`` explicitly before doing any work.
New target schemas are handed to a PermissionGrantor so the actor who
created them can edit their metadata later.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, Field

from semmap.errors import AuthorizationError
from semmap.models.schema import Schema


class Role(StrEnum):
    SUPERUSER = "ROLE_SU"
    USER = "ROLE_USER"


class Actor(BaseModel):
    """The user on whose behalf engine operations run."""

    username: str = Field(..., min_length=1, description="Login name")
    roles: set[Role] = Field(default_factory=set, description="Granted roles")

    @property
    def is_superuser(self) -> bool:
        return Role.SUPERUSER in self.roles


def require_role(actor: Actor, *roles: Role) -> None:
    """Fail unless ``actor`` holds at least one of ``roles``.

    Raises:
        AuthorizationError: If none of the roles is granted.
    """
    if not roles or actor.roles.intersection(roles):
        return
    wanted = ", ".join(sorted(role.value for role in roles))
    msg = f"User '{actor.username}' needs one of [{wanted}]"
    raise AuthorizationError(msg)


@runtime_checkable
class PermissionGrantor(Protocol):
    def grant_write_metadata(self, schema: Schema, actor: Actor) -> None: ...


class PermissionRegistry:
    """In-memory record of write-metadata grants per schema."""

    def __init__(self) -> None:
        self._grants: dict[str, set[str]] = {}

    def grant_write_metadata(self, schema: Schema, actor: Actor) -> None:
        self._grants.setdefault(schema.id, set()).add(actor.username)
        logger.info(
            "Granted write-metadata on {schema} to {user}",
            schema=schema.id,
            user=actor.username,
        )

    def has_write_metadata(self, schema_id: str, username: str) -> bool:
        return username in self._grants.get(schema_id, set())
