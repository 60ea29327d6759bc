"""LSF client that drives ``bsub``/``bjobs`` through subprocesses."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import time
from collections.abc import Callable, Iterable

from lsf_dispatch.config import SchedulerSettings, ThrottleSettings
from lsf_dispatch.orchestrator.models import SUBMISSION_ERROR, QueueSnapshot
from lsf_dispatch.orchestrator.scheduler.base import SchedulerError, SubmitRequest

logger = logging.getLogger(__name__)

DEBUG_EXTERNAL_ID = "496212"
_SUBMITTED_PATTERN = re.compile(r"Job <(\d+)> is submitted")
_STATUS_LINE_PATTERN = re.compile(r"^(\d+)\b.*?\b(PEND|RUN)\b")


class LsfScheduler:
    """Builds and issues LSF submit/query commands; holds no persistent state.

    Every ``throttle.batch_size`` submissions the client blocks until the
    number of the user's outstanding farm jobs drops below
    ``throttle.ceiling``. The counter is local to this instance.
    """

    def __init__(
        self,
        settings: SchedulerSettings,
        throttle: ThrottleSettings | None = None,
        *,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings
        self.throttle = throttle or ThrottleSettings()
        self._runner = runner
        self._sleep = sleep
        self._echo = echo
        self._local_job_count = 0

    def build_submit_args(self, request: SubmitRequest) -> list[str]:
        """Compose the ``bsub`` argument vector for one request."""

        args = [self.settings.submit_command, "-oo", "/dev/null"]
        if request.dependent_external_ids:
            args += ["-w", wait_expression(request.dependent_external_ids)]
        if request.rerunnable:
            args.append("-r")
        for flag, value in (
            ("-G", request.group or self.settings.group),
            ("-P", request.project or self.settings.project),
            ("-R", request.resource or self.settings.resource),
            ("-q", request.queue or self.settings.queue),
            ("-n", request.cores or self.settings.cores),
        ):
            if value:
                args += [flag, value]
        args.append(request.command)
        return args

    def submit(self, request: SubmitRequest) -> str:
        self._limit_job_submissions()
        args = self.build_submit_args(request)
        if self.settings.debug:
            self._echo(shlex.join(args))
            return DEBUG_EXTERNAL_ID

        try:
            completed = self._runner(  # noqa: S603
                args,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as error:
            logger.error("Failed to run %s: %s", self.settings.submit_command, error)
            return SUBMISSION_ERROR

        output = f"{completed.stdout or ''}{completed.stderr or ''}".strip()
        logger.info("%s", output)
        external_id = parse_submitted_id(output)
        if external_id is None:
            logger.warning("Submission was not confirmed by the scheduler: %r", output)
            return SUBMISSION_ERROR
        return external_id

    def probe(self) -> QueueSnapshot:
        try:
            completed = self._runner(  # noqa: S603
                [self.settings.status_command],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as error:
            raise SchedulerError(
                f"Failed to query scheduler status with {self.settings.status_command!r}: {error}",
            ) from error
        return parse_status_output(completed.stdout or "")

    def queued_ids(self) -> frozenset[str]:
        return self.probe().queued_ids

    def running_ids(self) -> frozenset[str]:
        return self.probe().running_ids

    def outstanding_count(self) -> int:
        return self.probe().outstanding_count

    def _limit_job_submissions(self) -> None:
        if self._local_job_count < self.throttle.batch_size:
            self._local_job_count += 1
            return
        while self.outstanding_count() >= self.throttle.ceiling:
            logger.info("Waiting for submitted jobs count to fall below limit...")
            self._sleep(self.throttle.poll_seconds)
        self._local_job_count = 1


def wait_expression(dependent_external_ids: Iterable[str]) -> str:
    """Dependency clause gating a job on the end of every dependent."""

    return " && ".join(f"ended({external_id})" for external_id in dependent_external_ids)


def parse_submitted_id(output: str) -> str | None:
    """Extract the job number from the last confirmation line of ``bsub`` output."""

    for line in reversed(output.splitlines()):
        match = _SUBMITTED_PATTERN.search(line)
        if match:
            return match.group(1)
    return None


def parse_status_output(output: str) -> QueueSnapshot:
    """Classify ``bjobs`` lines by state token; anything else is ignored."""

    queued: set[str] = set()
    running: set[str] = set()
    for line in output.splitlines():
        match = _STATUS_LINE_PATTERN.match(line.strip())
        if match is None:
            continue
        external_id, state = match.groups()
        if state == "PEND":
            queued.add(external_id)
        else:
            running.add(external_id)
    return QueueSnapshot(queued_ids=frozenset(queued), running_ids=frozenset(running))
