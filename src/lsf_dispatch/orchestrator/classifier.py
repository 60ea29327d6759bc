"""Assigns every tracked job to a lifecycle bucket.

Passed, failed and submission-error lost are cached on the record and never
re-evaluated. Queuing, running and the time-based lost are recomputed on
every pass from the scheduler probe and the marker files.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from lsf_dispatch.config import ClassifierSettings
from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.models import (
    Classification,
    JobBucket,
    JobRecord,
    JobStatus,
    QueueSnapshot,
    utc_now,
)
from lsf_dispatch.orchestrator.scheduler import SchedulerAdapter


class JobClassifier:
    """Runs classification passes against the scheduler and marker files."""

    def __init__(
        self,
        *,
        scheduler: SchedulerAdapter,
        markers: MarkerStore,
        settings: ClassifierSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.scheduler = scheduler
        self.markers = markers
        self.settings = settings or ClassifierSettings()
        self._clock = clock

    def classify(self, jobs: Iterable[JobRecord]) -> Classification:
        """Bucket every job using one scheduler probe."""

        snapshot = self.scheduler.probe()
        now = self._clock()
        result = Classification()
        for job in jobs:
            result.add(self.classify_job(job, snapshot=snapshot, now=now), job)
        return result

    def classify_job(
        self,
        job: JobRecord,
        *,
        snapshot: QueueSnapshot,
        now: datetime,
    ) -> JobBucket:
        if job.status is not None:
            return job.status.bucket

        if job.submission_failed:
            job.status = JobStatus.LOST
            return JobBucket.LOST

        if self.markers.is_completed(job.id):
            job.status = JobStatus.PASSED if self.markers.is_passed(job.id) else JobStatus.FAILED
            return job.status.bucket

        if job.external_id in snapshot.running_ids:
            if not self._dependents_completed(job):
                # The worker is still holding in its dependency wait.
                return JobBucket.QUEUING
            # The started flag can lag behind on the shared filesystem.
            self.markers.mark_started(job.id)
            return JobBucket.RUNNING

        if job.external_id in snapshot.queued_ids:
            return JobBucket.QUEUING

        if self.markers.is_started(job.id):
            return self._started_without_result(job, now=now)

        if now - job.submitted_at < timedelta(seconds=self.settings.queue_grace_seconds):
            return JobBucket.QUEUING
        return JobBucket.LOST

    def _started_without_result(self, job: JobRecord, *, now: datetime) -> JobBucket:
        if job.completed_at is None:
            job.completed_at = now
            return JobBucket.RUNNING
        if now - job.completed_at > timedelta(seconds=self.settings.lost_after_seconds):
            return JobBucket.LOST
        return JobBucket.RUNNING

    def _dependents_completed(self, job: JobRecord) -> bool:
        return all(self.markers.is_completed(dep_id) for dep_id in job.dependent_ids)
