"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from semmap.config import SemmapSettings, get_settings
from semmap.mapping.progress import MAPPING_BATCH_SIZE
from semmap.security import Role


class TestSemmapSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        settings = SemmapSettings()
        assert settings.batch_size == MAPPING_BATCH_SIZE
        assert settings.default_depth == 3
        assert settings.project_db == Path(".semmap/projects.db")
        assert settings.build_actor().is_superuser

    def test_environment_overrides(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SEMMAP_BATCH_SIZE", "50")
        monkeypatch.setenv("SEMMAP_ACTOR", "bob")
        monkeypatch.setenv("SEMMAP_ACTOR_ROLES", '["ROLE_USER"]')
        settings = SemmapSettings()
        assert settings.batch_size == 50
        actor = settings.build_actor()
        assert actor.username == "bob"
        assert actor.roles == {Role.USER}
        assert not actor.is_superuser

    def test_dotenv_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("SEMMAP_DEFAULT_DEPTH=5\n")
        assert SemmapSettings().default_depth == 5

    def test_invalid_batch_size(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SEMMAP_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            SemmapSettings()


class TestGetSettings:
    def test_cached(self) -> None:
        assert get_settings() is get_settings()
