"""Wires registry, scheduler, classifier and waiter for one workspace."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from lsf_dispatch.config import Settings
from lsf_dispatch.orchestrator.classifier import JobClassifier
from lsf_dispatch.orchestrator.log_aggregator import LogAggregator, LogReport
from lsf_dispatch.orchestrator.markers import MarkerStore, WorkspaceError
from lsf_dispatch.orchestrator.models import Classification, JobBucket, JobRecord, utc_now
from lsf_dispatch.orchestrator.registry import JobRegistry
from lsf_dispatch.orchestrator.scheduler import LsfScheduler, SchedulerAdapter
from lsf_dispatch.orchestrator.templater import CommandTemplater
from lsf_dispatch.orchestrator.waiter import CompletionWaiter, log_lines


@dataclass(slots=True)
class Orchestrator:
    """Explicit set of collaborators for one workspace."""

    settings: Settings
    markers: MarkerStore
    scheduler: SchedulerAdapter
    templater: CommandTemplater
    registry: JobRegistry
    classifier: JobClassifier
    waiter: CompletionWaiter
    aggregator: LogAggregator

    def classify(self) -> Classification:
        return self.classifier.classify(self.registry.jobs.values())

    def jobs_in(self, bucket: str, classification: Classification | None = None) -> list[JobRecord]:
        if bucket == "all":
            return list(self.registry.jobs.values())
        return (classification or self.classify()).bucket(JobBucket(bucket))

    def resubmit(self, *, bucket: str | None = None, job_id: str | None = None) -> list[JobRecord]:
        """Resubmit every job of a bucket (``all`` included) or a single id."""

        if bucket is not None:
            return [self.registry.resubmit_job(job) for job in self.jobs_in(bucket)]
        if job_id is None:
            raise ValueError("A bucket or a job id is required.")
        return self.registry.resubmit_ids([job_id])

    def clear(self, *, bucket: str | None = None, job_id: str | None = None) -> int:
        if bucket is not None and bucket != "all":
            return self.registry.clear(bucket=bucket, jobs=self.jobs_in(bucket))
        return self.registry.clear(bucket=bucket, job_id=job_id)

    def build_log(self) -> LogReport:
        return self.aggregator.build_log(self.classify().completed)


def build_orchestrator(  # noqa: PLR0913
    settings: Settings,
    *,
    scheduler: SchedulerAdapter | None = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
    reporter: Callable[[list[str]], None] = log_lines,
) -> Orchestrator:
    """Create collaborators for ``settings.root``; fails fast on a missing workspace."""

    if not settings.root.is_dir():
        raise WorkspaceError(f"Workspace root does not exist: {settings.root}")
    markers = MarkerStore(settings.logs_dir)
    markers.ensure_dir()
    scheduler = scheduler or LsfScheduler(settings.scheduler, settings.throttle, sleep=sleep)
    templater = CommandTemplater(settings.template, settings.root)
    registry = JobRegistry(
        path=settings.registry_path,
        markers=markers,
        scheduler=scheduler,
        templater=templater,
        scheduler_settings=settings.scheduler,
        clock=clock,
    )
    classifier = JobClassifier(
        scheduler=scheduler,
        markers=markers,
        settings=settings.classifier,
        clock=clock,
    )
    waiter = CompletionWaiter(
        registry=registry,
        classifier=classifier,
        settings=settings.wait,
        reporter=reporter,
        sleep=sleep,
        monotonic=monotonic,
    )
    return Orchestrator(
        settings=settings,
        markers=markers,
        scheduler=scheduler,
        templater=templater,
        registry=registry,
        classifier=classifier,
        waiter=waiter,
        aggregator=LogAggregator(markers),
    )
