"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from lsf_dispatch.config import Settings
from lsf_dispatch.orchestrator.models import SUBMISSION_ERROR, QueueSnapshot
from lsf_dispatch.orchestrator.scheduler import SubmitRequest
from lsf_dispatch.orchestrator.services import Orchestrator, build_orchestrator


class FakeScheduler:
    """In-memory scheduler that hands out sequential external ids."""

    def __init__(self) -> None:
        self.requests: list[SubmitRequest] = []
        self.queued: set[str] = set()
        self.running: set[str] = set()
        self.fail_submissions = False
        self.probes = 0
        self._next_id = 5000

    def submit(self, request: SubmitRequest) -> str:
        self.requests.append(request)
        if self.fail_submissions:
            return SUBMISSION_ERROR
        self._next_id += 1
        return str(self._next_id)

    def probe(self) -> QueueSnapshot:
        self.probes += 1
        return QueueSnapshot(queued_ids=frozenset(self.queued), running_ids=frozenset(self.running))

    def queued_ids(self) -> frozenset[str]:
        return self.probe().queued_ids

    def running_ids(self) -> frozenset[str]:
        return self.probe().running_ids

    def outstanding_count(self) -> int:
        return self.probe().outstanding_count


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self) -> None:
        self.now = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.elapsed += seconds

    def monotonic(self) -> float:
        return self.elapsed

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


@pytest.fixture()
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def orchestrator(tmp_path: Path, fake_scheduler: FakeScheduler, clock: FakeClock) -> Orchestrator:
    """Workspace in ``tmp_path`` wired to the fake scheduler and clock."""

    return build_orchestrator(
        Settings(root=tmp_path),
        scheduler=fake_scheduler,
        clock=clock,
        sleep=clock.sleep,
        monotonic=clock.monotonic,
        reporter=lambda lines: None,
    )
