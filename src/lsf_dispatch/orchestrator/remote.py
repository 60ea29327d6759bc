"""Worker-side harness that runs one farm job and reports through marker files."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.waiter import wait_for_markers

logger = logging.getLogger(__name__)

DEPENDENTS_POLL_SECONDS = 1.0
DEPENDENTS_TIMEOUT_SECONDS = 120.0


@dataclass(slots=True)
class RemoteRunResult:
    """What the harness recorded for the job."""

    passed: bool
    exit_code: int | None
    skipped: bool = False


def execute_remotely(  # noqa: PLR0913
    *,
    markers: MarkerStore,
    job_id: str,
    command: str | Sequence[str],
    dependent_ids: Sequence[str] | None = None,
    dependents_timeout_seconds: float = DEPENDENTS_TIMEOUT_SECONDS,
    dependents_poll_seconds: float = DEPENDENTS_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> RemoteRunResult:
    """Mark the job started, check dependents, run the payload, mark the result.

    Never raises: every failure ends up as a ``failed`` marker.
    """

    cmd = command if isinstance(command, str) else " ".join(command)
    try:
        markers.mark_started(job_id)
        if dependent_ids:
            # The scheduler's wait clause should already hold; keep the wait short.
            wait_for_markers(
                markers,
                dependent_ids,
                poll_seconds=dependents_poll_seconds,
                timeout_seconds=dependents_timeout_seconds,
                sleep=sleep,
            )
            if not all(markers.is_passed(dep_id) for dep_id in dependent_ids):
                markers.write_log(job_id, f"*** ERROR! *** {cmd} ***\nDependents failed!\n")
                markers.mark_failed(job_id)
                return RemoteRunResult(passed=False, exit_code=None, skipped=True)

        with markers.log_file(job_id).open("w", encoding="utf-8") as log_handle:
            completed = subprocess.run(  # noqa: S602
                cmd,
                shell=True,
                stdout=log_handle,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        if completed.returncode == 0:
            markers.mark_passed(job_id)
            return RemoteRunResult(passed=True, exit_code=0)
        markers.mark_failed(job_id)
        return RemoteRunResult(passed=False, exit_code=completed.returncode)
    except Exception:  # noqa: BLE001
        logger.exception("Remote execution of job %s failed", job_id)
        try:
            markers.mark_failed(job_id)
        except OSError:
            logger.exception("Could not record failure marker for job %s", job_id)
        return RemoteRunResult(passed=False, exit_code=None)
