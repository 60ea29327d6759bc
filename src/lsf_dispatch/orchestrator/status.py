"""Operator-facing status and detail lines for classified jobs."""

from __future__ import annotations

from datetime import datetime

from lsf_dispatch.orchestrator.models import Classification, JobBucket, JobRecord, utc_now
from lsf_dispatch.orchestrator.templater import display_command

BUCKET_TYPES: tuple[str, ...] = tuple(bucket.value for bucket in JobBucket) + ("all",)

_CLI = "lsf-dispatch"


def render_status_lines(
    classification: Classification,
    *,
    instructions: bool = True,
) -> list[str]:
    """Bucket counts, optionally followed by the commands that act on them."""

    lines = [
        "",
        "LSF Status",
        "----------",
        f"Queuing:    {len(classification.queuing)}",
        f"Running:    {len(classification.running)}",
        f"Lost:       {len(classification.lost)}",
        "",
        f"Passed:     {len(classification.passed)}",
        f"Failed:     {len(classification.failed)}",
        "",
    ]
    if not instructions:
        return lines

    lines += ["Common tasks", "------------"]
    for bucket in (JobBucket.QUEUING, JobBucket.RUNNING, JobBucket.LOST):
        if classification.bucket(bucket):
            lines += [
                bucket.value.capitalize(),
                f" Show details: {_CLI} status -v -t {bucket.value}",
                f" Re-submit:    {_CLI} resubmit -t {bucket.value}",
            ]
    if classification.passed:
        lines += ["Passed", f" Build log:    {_CLI} log"]
    if classification.failed:
        lines += [
            "Failed",
            f" Show details: {_CLI} status -v -t failed",
            f" Re-submit:    {_CLI} resubmit -t failed",
        ]
    lines += ["", f"Reset the job manager (clear all jobs): {_CLI} clear -t all", ""]
    return lines


def render_details_lines(
    classification: Classification,
    *,
    bucket: str = "all",
    job: JobRecord | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Per-job details for one job, one bucket, or every bucket."""

    now = now or utc_now()
    if job is not None:
        header = f"Job: {job.id}"
        return [header, "-" * len(header), *_details_of(job, now=now)]

    lines: list[str] = []
    for candidate in JobBucket:
        if bucket not in ("all", candidate.value):
            continue
        title = candidate.value.capitalize()
        lines += ["", title, "-" * len(title)]
        for item in classification.bucket(candidate):
            lines += _details_of(item, now=now)
    return lines


def _details_of(job: JobRecord, *, now: datetime) -> list[str]:
    return [
        display_command(job.command, job.switches),
        f"ID: {job.id}",
        f"External ID: {job.external_id}",
        f"Submissions: {job.submission_count}",
        f"Submitted: {time_ago(job.submitted_at, now=now)}",
        "",
    ]


def time_ago(moment: datetime, *, now: datetime | None = None) -> str:
    """Humanized elapsed time, e.g. ``3 minutes ago``."""

    seconds = max(0, int(((now or utc_now()) - moment).total_seconds()))
    if seconds < 60:
        unit, number = "second", seconds
    elif seconds < 3600:
        unit, number = "minute", seconds // 60
    elif seconds < 86_400:
        unit, number = "hour", seconds // 3600
    else:
        unit, number = "day", seconds // 86_400
    return f"{number} {unit}{'s' if number > 1 else ''} ago"
