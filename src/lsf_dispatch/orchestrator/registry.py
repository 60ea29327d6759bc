"""Durable map of local job id to job record."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from lsf_dispatch.config import SchedulerSettings
from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.models import JobBucket, JobRecord, utc_now
from lsf_dispatch.orchestrator.scheduler import SchedulerAdapter, SubmitRequest
from lsf_dispatch.orchestrator.templater import CommandTemplater

logger = logging.getLogger(__name__)

REGISTRY_SCHEMA_VERSION = 1

JobRef = str | JobRecord


class RegistryError(LookupError):
    """Job id is not tracked by the registry."""


class JobRegistry:
    """Job records loaded once per process and flushed explicitly.

    The registry file is overwritten wholesale by :meth:`save`. No locking is
    applied, so a single controlling process per workspace is assumed.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        path: Path,
        markers: MarkerStore,
        scheduler: SchedulerAdapter,
        templater: CommandTemplater,
        scheduler_settings: SchedulerSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_source: Callable[[], int] = time.time_ns,
    ) -> None:
        self.path = path
        self.markers = markers
        self.scheduler = scheduler
        self.templater = templater
        self.scheduler_settings = scheduler_settings or SchedulerSettings()
        self._clock = clock
        self._id_source = id_source
        self._last_id = 0
        self.jobs: dict[str, JobRecord] = {}

    def __contains__(self, job_id: object) -> bool:
        return job_id in self.jobs

    def __len__(self) -> int:
        return len(self.jobs)

    def get(self, job_id: str) -> JobRecord:
        try:
            return self.jobs[job_id]
        except KeyError as error:
            raise RegistryError(f"Unknown job id: {job_id}") from error

    def load(self) -> None:
        """Replace in-memory records with the persisted file, or nothing if unreadable."""

        self.jobs = _read_registry(self.path)

    def save(self) -> None:
        """Overwrite the registry file with every in-memory record."""

        payload = {
            "schema_version": REGISTRY_SCHEMA_VERSION,
            "jobs": {job_id: job.to_dict() for job_id, job in self.jobs.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def generate_job_id(self) -> str:
        """Time-based id, strictly increasing within this process."""

        candidate = max(self._id_source(), self._last_id + 1)
        while str(candidate) in self.jobs:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def resolve_ids(self, refs: JobRef | Iterable[JobRef] | None) -> list[str]:
        """Normalize ids or job records into an ordered, de-duplicated id list."""

        if refs is None:
            return []
        if isinstance(refs, str | JobRecord):
            refs = [refs]
        ids: list[str] = []
        for ref in refs:
            job_id = ref.id if isinstance(ref, JobRecord) else str(ref)
            if job_id not in ids:
                ids.append(job_id)
        return ids

    def submit_job(
        self,
        command: str,
        *,
        dependents: JobRef | Iterable[JobRef] | None = None,
        option_string: str = "",
    ) -> JobRecord:
        """Submit ``command`` to the farm and start tracking it."""

        dependent_ids = self.resolve_ids(dependents)
        dependent_external_ids = [self.get(dep_id).external_id for dep_id in dependent_ids]
        switches = self.templater.build_switches(command, option_string)
        job_id = self.generate_job_id()
        external_id = self._issue(
            job_id=job_id,
            command=command,
            switches=switches,
            dependent_ids=dependent_ids,
            dependent_external_ids=dependent_external_ids,
        )
        job = JobRecord(
            id=job_id,
            external_id=external_id,
            command=command,
            switches=switches,
            dependent_ids=dependent_ids,
            dependent_external_ids=dependent_external_ids,
            submitted_at=self._clock(),
        )
        self.jobs[job_id] = job
        return job

    def submit_app_job(
        self,
        command: str,
        *,
        action: str | None = None,
        dependents: JobRef | Iterable[JobRef] | None = None,
        option_string: str = "",
    ) -> JobRecord:
        """Submit a host application command flagged as running remotely."""

        return self.submit_job(
            self.templater.app_command(command, action=action),
            dependents=dependents,
            option_string=option_string,
        )

    def resubmit_job(self, job: JobRecord) -> JobRecord:
        """Clear the job's markers and submit its stored payload again."""

        self.markers.remove_all(job.id)
        job.dependent_external_ids = [
            self.jobs[dep_id].external_id if dep_id in self.jobs else stale
            for dep_id, stale in zip(job.dependent_ids, job.dependent_external_ids, strict=False)
        ]
        job.external_id = self._issue(
            job_id=job.id,
            command=job.command,
            switches=job.switches,
            dependent_ids=job.dependent_ids,
            dependent_external_ids=job.dependent_external_ids,
        )
        job.status = None
        job.completed_at = None
        job.submitted_at = self._clock()
        job.submission_count += 1
        return job

    def resubmit_ids(self, job_ids: Iterable[str]) -> list[JobRecord]:
        return [self.resubmit_job(self.get(job_id)) for job_id in job_ids]

    def remove(self, job_ids: Iterable[str]) -> int:
        removed = 0
        for job_id in job_ids:
            if self.jobs.pop(job_id, None) is not None:
                removed += 1
        return removed

    def clear(
        self,
        *,
        bucket: str | None = None,
        job_id: str | None = None,
        jobs: Iterable[JobRecord] | None = None,
    ) -> int:
        """Forget jobs by id, by classified bucket, or everything for ``all``.

        ``jobs`` supplies the classified records of ``bucket``.
        """

        if bucket == "all":
            removed = len(self.jobs)
            self.path.unlink(missing_ok=True)
            self.jobs = {}
            return removed
        if bucket is not None:
            JobBucket(bucket)  # rejects unknown bucket names
            return self.remove(job.id for job in (jobs or []))
        if job_id is None:
            raise ValueError("A bucket or a job id is required.")
        self.get(job_id)
        return self.remove([job_id])

    def clear_all(self) -> None:
        """Full reset: registry file, every marker file, and memory."""

        self.path.unlink(missing_ok=True)
        self.markers.reset()
        self.jobs = {}

    def _issue(  # noqa: PLR0913
        self,
        *,
        job_id: str,
        command: str,
        switches: str,
        dependent_ids: list[str],
        dependent_external_ids: list[str],
    ) -> str:
        rendered = self.templater.render(
            job_id=job_id,
            dependent_ids=dependent_ids,
            command=command,
            switches=switches,
        )
        return self.scheduler.submit(
            SubmitRequest(
                command=rendered,
                dependent_external_ids=tuple(dependent_external_ids),
                rerunnable=self.scheduler_settings.rerunnable,
            ),
        )


def _read_registry(path: Path) -> dict[str, JobRecord]:
    if not path.exists():
        return {}
    try:
        raw: Any = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as error:
        logger.warning("Ignoring unreadable job registry %s: %s", path, error)
        return {}
    if not isinstance(raw, dict) or raw.get("schema_version") != REGISTRY_SCHEMA_VERSION:
        logger.warning("Ignoring job registry %s with unsupported schema", path)
        return {}
    raw_jobs = raw.get("jobs")
    if not isinstance(raw_jobs, dict):
        logger.warning("Ignoring job registry %s without a jobs object", path)
        return {}
    jobs: dict[str, JobRecord] = {}
    try:
        for job_id, raw_job in raw_jobs.items():
            if not isinstance(raw_job, dict):
                raise TypeError(f"job {job_id} is not an object")
            jobs[job_id] = JobRecord.from_dict(raw_job)
    except (KeyError, TypeError, ValueError) as error:
        logger.warning("Ignoring corrupt job registry %s: %s", path, error)
        return {}
    return jobs
