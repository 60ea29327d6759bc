"""Blocking completion wait with automatic resubmission of lost and failed jobs."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from lsf_dispatch.config import WaitSettings
from lsf_dispatch.orchestrator.classifier import JobClassifier
from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.models import Classification, JobRecord, JobStatus
from lsf_dispatch.orchestrator.registry import JobRegistry
from lsf_dispatch.orchestrator.status import render_status_lines

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WaitSummary:
    """Outcome of one blocking wait."""

    passes: int = 0
    resubmitted: int = 0
    timed_out: bool = False
    classification: Classification = field(default_factory=Classification)


def wait_for_markers(  # noqa: PLR0913
    markers: MarkerStore,
    job_ids: Iterable[str],
    *,
    poll_seconds: float = 1.0,
    timeout_seconds: float = 120.0,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll marker files until every id completed; False when the timeout elapsed."""

    ids = list(job_ids)
    started = monotonic()
    while True:
        if all(markers.is_completed(job_id) for job_id in ids):
            return True
        if monotonic() - started >= timeout_seconds:
            return False
        sleep(poll_seconds)


def log_lines(lines: list[str]) -> None:
    for line in lines:
        logger.info("%s", line)


class CompletionWaiter:
    """Repeats classification passes until nothing is outstanding."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        registry: JobRegistry,
        classifier: JobClassifier,
        settings: WaitSettings | None = None,
        reporter: Callable[[list[str]], None] = log_lines,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.classifier = classifier
        self.settings = settings or WaitSettings()
        self.reporter = reporter
        self._sleep = sleep
        self._monotonic = monotonic

    def classify(self) -> Classification:
        return self.classifier.classify(self.registry.jobs.values())

    def wait_for_ids(
        self,
        jobs: Iterable[str | JobRecord],
        *,
        poll_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> bool:
        """Wait on a narrow set of ids through their marker files only.

        Skips classification and the registry file so that many processes
        waiting on small dependency sets do not contend for shared state.
        """

        return wait_for_markers(
            self.registry.markers,
            self.registry.resolve_ids(jobs),
            poll_seconds=self.settings.poll_seconds if poll_seconds is None else poll_seconds,
            timeout_seconds=(
                self.settings.timeout_seconds if timeout_seconds is None else timeout_seconds
            ),
            sleep=self._sleep,
            monotonic=self._monotonic,
        )

    def wait_for_all(
        self,
        *,
        poll_seconds: float | None = None,
        timeout_seconds: float | None = None,
        max_lost_retries: int | None = None,
        max_fail_retries: int | None = None,
    ) -> WaitSummary:
        """Block until every job finished or the timeout elapsed.

        Lost jobs are resubmitted while ``submission_count <= max_lost_retries``
        and failed jobs while ``submission_count <= max_fail_retries``. Jobs
        lost to a submission error are left for an explicit resubmit.
        """

        poll = self.settings.poll_seconds if poll_seconds is None else poll_seconds
        timeout = self.settings.timeout_seconds if timeout_seconds is None else timeout_seconds
        lost_retries = (
            self.settings.max_lost_retries if max_lost_retries is None else max_lost_retries
        )
        fail_retries = (
            self.settings.max_fail_retries if max_fail_retries is None else max_fail_retries
        )

        summary = WaitSummary()
        started = self._monotonic()
        while True:
            if self._monotonic() - started >= timeout:
                summary.timed_out = True
                logger.warning("Gave up waiting for farm jobs after %.0f seconds", timeout)
                return summary

            summary.passes += 1
            self.reporter(render_status_lines(self.classify(), instructions=False))
            self._sleep(poll)

            classification = self.classify()
            resubmitted = self._resubmit(
                classification,
                max_lost_retries=lost_retries,
                max_fail_retries=fail_retries,
            )
            summary.resubmitted += resubmitted
            summary.classification = self.classify()
            if summary.classification.outstanding or resubmitted:
                continue

            self.reporter(render_status_lines(summary.classification))
            return summary

    def _resubmit(
        self,
        classification: Classification,
        *,
        max_lost_retries: int,
        max_fail_retries: int,
    ) -> int:
        resubmitted = 0
        for job in classification.lost:
            if job.status is JobStatus.LOST:
                continue
            if job.submission_count <= max_lost_retries:
                logger.info("Resubmitting lost job %s", job.id)
                self.registry.resubmit_job(job)
                resubmitted += 1
        for job in classification.failed:
            if job.submission_count <= max_fail_retries:
                logger.info("Resubmitting failed job %s", job.id)
                self.registry.resubmit_job(job)
                resubmitted += 1
        return resubmitted
