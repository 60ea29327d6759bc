"""Scheduler adapter interface used by the registry and classifier."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from lsf_dispatch.orchestrator.models import QueueSnapshot


class SchedulerError(RuntimeError):
    """The scheduler's command-line tools could not be invoked."""


@dataclass(slots=True)
class SubmitRequest:
    """One submission to the external scheduler."""

    command: str
    dependent_external_ids: Sequence[str] = field(default_factory=tuple)
    group: str | None = None
    project: str | None = None
    resource: str | None = None
    queue: str | None = None
    cores: str | None = None
    rerunnable: bool = True


class SchedulerAdapter(Protocol):
    """Protocol implemented by scheduler clients."""

    def submit(self, request: SubmitRequest) -> str:
        """Submit a command and return the external id or the error sentinel."""

    def probe(self) -> QueueSnapshot:
        """Query the scheduler once for pending and running external ids."""

    def queued_ids(self) -> frozenset[str]:
        """External ids currently pending."""

    def running_ids(self) -> frozenset[str]:
        """External ids currently running."""

    def outstanding_count(self) -> int:
        """Number of pending plus running jobs owned by the current user."""
