"""Domain models for tracked farm jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

SUBMISSION_ERROR = "error"
"""External id recorded when the scheduler did not confirm a submission."""


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def from_iso(value: str) -> datetime:
    """Parse ISO datetime and ensure timezone-aware UTC fallback."""

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


class JobBucket(str, Enum):
    """Lifecycle buckets assigned by one classification pass."""

    QUEUING = "queuing"
    RUNNING = "running"
    LOST = "lost"
    PASSED = "passed"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Cached statuses that are never recomputed once set."""

    PASSED = "passed"
    FAILED = "failed"
    LOST = "lost"

    @property
    def bucket(self) -> JobBucket:
        return JobBucket(self.value)


@dataclass(slots=True)
class JobRecord:
    """Registry entry for one submitted unit of work."""

    id: str
    external_id: str
    command: str
    switches: str
    submitted_at: datetime
    dependent_ids: list[str] = field(default_factory=list)
    dependent_external_ids: list[str] = field(default_factory=list)
    completed_at: datetime | None = None
    submission_count: int = 1
    status: JobStatus | None = None

    @property
    def submission_failed(self) -> bool:
        return self.external_id == SUBMISSION_ERROR

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the registry file schema."""

        return {
            "id": self.id,
            "external_id": self.external_id,
            "command": self.command,
            "switches": self.switches,
            "dependent_ids": list(self.dependent_ids),
            "dependent_external_ids": list(self.dependent_external_ids),
            "submitted_at": self.submitted_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "submission_count": self.submission_count,
            "status": self.status.value if self.status is not None else None,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> JobRecord:
        """Deserialize and validate one registry entry."""

        job_id = raw.get("id")
        external_id = raw.get("external_id")
        command = raw.get("command")
        if not isinstance(job_id, str) or not job_id:
            raise ValueError("job.id must be a non-empty string")
        if not isinstance(external_id, str):
            raise TypeError("job.external_id must be a string")
        if not isinstance(command, str):
            raise TypeError("job.command must be a string")
        completed_at = raw.get("completed_at")
        status = raw.get("status")
        return cls(
            id=job_id,
            external_id=external_id,
            command=command,
            switches=str(raw.get("switches", "")),
            dependent_ids=[str(item) for item in raw.get("dependent_ids", [])],
            dependent_external_ids=[str(item) for item in raw.get("dependent_external_ids", [])],
            submitted_at=from_iso(str(raw["submitted_at"])),
            completed_at=from_iso(completed_at) if completed_at else None,
            submission_count=int(raw.get("submission_count", 1)),
            status=JobStatus(status) if status else None,
        )


@dataclass(slots=True)
class QueueSnapshot:
    """External ids the scheduler reported as pending or running."""

    queued_ids: frozenset[str] = frozenset()
    running_ids: frozenset[str] = frozenset()

    @property
    def outstanding_count(self) -> int:
        return len(self.queued_ids) + len(self.running_ids)


@dataclass(slots=True)
class Classification:
    """Result of one classification pass over the registry."""

    queuing: list[JobRecord] = field(default_factory=list)
    running: list[JobRecord] = field(default_factory=list)
    lost: list[JobRecord] = field(default_factory=list)
    passed: list[JobRecord] = field(default_factory=list)
    failed: list[JobRecord] = field(default_factory=list)

    def bucket(self, bucket: JobBucket) -> list[JobRecord]:
        return getattr(self, bucket.value)

    def add(self, bucket: JobBucket, job: JobRecord) -> None:
        self.bucket(bucket).append(job)

    @property
    def completed(self) -> list[JobRecord]:
        return self.passed + self.failed

    @property
    def outstanding(self) -> bool:
        return bool(self.running or self.queuing)

    def counts(self) -> dict[str, int]:
        return {bucket.value: len(self.bucket(bucket)) for bucket in JobBucket}
