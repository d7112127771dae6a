"""Tests for run options and cancellation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from semmap.errors import MappingCancelledError
from semmap.mapping.progress import LoggingProgress
from semmap.models.run import CancellationToken, Progress, RunOptions


class TestRunOptions:
    def test_target_id_required(self) -> None:
        with pytest.raises(ValidationError):
            RunOptions()  # type: ignore[call-arg]

    def test_defaults(self) -> None:
        options = RunOptions(target_id="out")
        assert options.add_source_attribute is False
        assert options.package_id is None
        assert options.label is None
        assert options.depth is None
        assert options.mapping_target is None

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RunOptions(target_id="out", depth=-1)


class TestCancellationToken:
    def test_not_cancelled_by_default(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_with_reason(self) -> None:
        token = CancellationToken()
        token.cancel("user pressed stop")
        assert token.cancelled
        with pytest.raises(MappingCancelledError, match="Mapping run cancelled: user pressed stop"):
            token.raise_if_cancelled()

    def test_cancel_without_reason(self) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(MappingCancelledError, match="^Mapping run cancelled$"):
            token.raise_if_cancelled()


class TestProgressProtocol:
    def test_logging_progress_satisfies_protocol(self) -> None:
        assert isinstance(LoggingProgress(), Progress)
