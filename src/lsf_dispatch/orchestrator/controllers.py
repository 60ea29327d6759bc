"""Controllers for job management CLI commands."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from lsf_dispatch.config import Settings
from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.remote import RemoteRunResult, execute_remotely
from lsf_dispatch.orchestrator.scheduler import SchedulerAdapter
from lsf_dispatch.orchestrator.services import Orchestrator, build_orchestrator
from lsf_dispatch.orchestrator.status import render_details_lines, render_status_lines
from lsf_dispatch.orchestrator.waiter import wait_for_markers


@dataclass(slots=True)
class StatusCommand:
    """CLI input for the status summary."""

    root: Path | None
    verbose: bool = False
    bucket: str | None = None
    job_id: str | None = None
    instructions: bool = True


@dataclass(slots=True)
class MutateJobsCommand:
    """CLI input for clear/resubmit operations."""

    root: Path | None
    bucket: str | None = None
    job_id: str | None = None
    full_reset: bool = False


@dataclass(slots=True)
class WaitCommand:
    """CLI input for the blocking wait."""

    root: Path | None
    job_ids: tuple[str, ...] = ()
    poll_seconds: float | None = None
    timeout_seconds: float | None = None
    max_lost_retries: int | None = None
    max_fail_retries: int | None = None


@dataclass(slots=True)
class BuildLogCommand:
    """CLI input for the consolidated log."""

    root: Path | None
    output_path: Path | None = None


@dataclass(slots=True)
class SubmitCommand:
    """CLI input for a raw command submission."""

    root: Path | None
    command: str
    dependents: tuple[str, ...] = ()
    option_string: str = ""


@dataclass(slots=True)
class ExecuteCommand:
    """CLI input for the worker-side harness."""

    root: Path | None
    job_id: str
    command: tuple[str, ...]
    dependents: tuple[str, ...] = ()


@dataclass(slots=True)
class WaitResult:
    """Wait report to render in CLI."""

    lines: list[str]
    success: bool


class JobsCliController:
    """Loads the registry, runs one operation, and saves it back."""

    def __init__(
        self,
        *,
        scheduler_factory: Callable[[Settings], SchedulerAdapter] | None = None,
    ) -> None:
        self.scheduler_factory = scheduler_factory

    def status(self, command: StatusCommand) -> list[str]:
        with self._orchestrator(command.root) as orchestrator:
            classification = orchestrator.classify()
            lines: list[str] = []
            if command.job_id is not None:
                lines += render_details_lines(
                    classification,
                    job=orchestrator.registry.get(command.job_id),
                )
            elif command.verbose:
                lines += render_details_lines(classification, bucket=command.bucket or "all")
            lines += render_status_lines(classification, instructions=command.instructions)
            return lines

    def clear(self, command: MutateJobsCommand) -> list[str]:
        with self._orchestrator(command.root) as orchestrator:
            if command.full_reset:
                count = len(orchestrator.registry)
                orchestrator.registry.clear_all()
                return [f"Cleared all {count} job(s) and removed their logs."]
            count = orchestrator.clear(bucket=command.bucket, job_id=command.job_id)
            return [
                f"Cleared {count} job(s).",
                *render_status_lines(orchestrator.classify(), instructions=False),
            ]

    def resubmit(self, command: MutateJobsCommand) -> list[str]:
        with self._orchestrator(command.root) as orchestrator:
            jobs = orchestrator.resubmit(bucket=command.bucket, job_id=command.job_id)
            lines = [f"Resubmitted {job.id} as {job.external_id}" for job in jobs]
            return lines + render_status_lines(orchestrator.classify(), instructions=False)

    def wait(
        self,
        command: WaitCommand,
        *,
        reporter: Callable[[list[str]], None] | None = None,
    ) -> WaitResult:
        if command.job_ids:
            return self._wait_for_ids(command)
        with self._orchestrator(command.root) as orchestrator:
            if reporter is not None:
                orchestrator.waiter.reporter = reporter
            summary = orchestrator.waiter.wait_for_all(
                poll_seconds=command.poll_seconds,
                timeout_seconds=command.timeout_seconds,
                max_lost_retries=command.max_lost_retries,
                max_fail_retries=command.max_fail_retries,
            )
            lines = [
                f"Passes: {summary.passes}",
                f"Resubmitted: {summary.resubmitted}",
            ]
            if summary.timed_out:
                lines.append("Timed out before all jobs completed.")
            return WaitResult(lines=lines, success=not summary.timed_out)

    def build_log(self, command: BuildLogCommand) -> list[str]:
        with self._orchestrator(command.root) as orchestrator:
            report = orchestrator.build_log()
            if command.output_path is not None:
                report.write(command.output_path)
                return [f"Log written to {command.output_path}", *report.stats.summary_lines()]
            return report.lines

    def submit(self, command: SubmitCommand) -> list[str]:
        with self._orchestrator(command.root) as orchestrator:
            job = orchestrator.registry.submit_job(
                command.command,
                dependents=command.dependents,
                option_string=command.option_string,
            )
            return [f"Submitted {job.id} as {job.external_id}"]

    def execute(self, command: ExecuteCommand) -> RemoteRunResult:
        settings = Settings.from_env(root=command.root)
        return execute_remotely(
            markers=MarkerStore(settings.logs_dir),
            job_id=command.job_id,
            command=command.command,
            dependent_ids=list(command.dependents),
        )

    def _wait_for_ids(self, command: WaitCommand) -> WaitResult:
        settings = Settings.from_env(root=command.root)
        settings.validate()
        done = wait_for_markers(
            MarkerStore(settings.logs_dir),
            command.job_ids,
            poll_seconds=(
                settings.wait.poll_seconds if command.poll_seconds is None else command.poll_seconds
            ),
            timeout_seconds=(
                settings.wait.timeout_seconds
                if command.timeout_seconds is None
                else command.timeout_seconds
            ),
        )
        state = "completed" if done else "still outstanding"
        return WaitResult(lines=[f"Jobs {state}: {', '.join(command.job_ids)}"], success=done)

    @contextmanager
    def _orchestrator(self, root: Path | None) -> Iterator[Orchestrator]:
        settings = Settings.from_env(root=root)
        settings.validate()
        scheduler = self.scheduler_factory(settings) if self.scheduler_factory else None
        orchestrator = build_orchestrator(settings, scheduler=scheduler)
        orchestrator.registry.load()
        try:
            yield orchestrator
        finally:
            orchestrator.registry.save()
