"""Run-time models: options for a mapping run, the progress sink contract,
and the cancellation token checked at batch boundaries."""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from semmap.errors import MappingCancelledError


class RunOptions(BaseModel):
    """Options for applying a mapping project to a target dataset."""

    target_id: str | None = Field(..., description="Id of the dataset to create or update")
    add_source_attribute: bool = Field(
        default=False, description="Add a 'source' attribute recording record provenance"
    )
    package_id: str | None = Field(
        default=None, description="Package for a new target (ignored if the target exists)"
    )
    label: str | None = Field(default=None, description="Label for the target schema")
    depth: int | None = Field(
        default=None, ge=0, description="Overrides the project's reference depth"
    )
    mapping_target: str | None = Field(
        default=None,
        description="Nominal target schema id to apply (default: the first mapping target)",
    )


@runtime_checkable
class Progress(Protocol):
    """Sink for run progress. Units are batches."""

    def set_max(self, maximum: int) -> None: ...

    def status(self, message: str) -> None: ...

    def increment(self, amount: int) -> None: ...


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            msg = "Mapping run cancelled"
            if self._reason:
                msg = f"{msg}: {self._reason}"
            raise MappingCancelledError(msg)
