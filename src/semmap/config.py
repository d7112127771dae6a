"""Settings loaded from SEMMAP_* environment variables (or a .env file).

CLI options override these values.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from semmap.mapping.progress import MAPPING_BATCH_SIZE
from semmap.security import Actor, Role


class SemmapSettings(BaseSettings):
    """Runtime configuration for the CLI and engine wiring."""

    model_config = SettingsConfigDict(env_prefix="SEMMAP_", env_file=".env", extra="ignore")

    batch_size: int = Field(default=MAPPING_BATCH_SIZE, ge=1, description="Records per batch")
    project_db: Path = Field(
        default=Path(".semmap/projects.db"), description="SQLite file holding mapping projects"
    )
    workspace: Path = Field(default=Path("."), description="Workspace directory")
    log_level: str = Field(default="INFO", description="Minimum log level for the CLI sink")
    default_depth: int = Field(default=3, ge=0, description="Depth for new projects")
    actor: str = Field(default="admin", description="User name operations run as")
    actor_roles: list[Role] = Field(
        default_factory=lambda: [Role.SUPERUSER], description="Roles of the acting user"
    )

    def build_actor(self) -> Actor:
        return Actor(username=self.actor, roles=set(self.actor_roles))


@lru_cache
def get_settings() -> SemmapSettings:
    """Get cached settings instance."""
    return SemmapSettings()
