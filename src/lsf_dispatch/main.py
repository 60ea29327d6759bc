"""CLI entrypoint for lsf-dispatch."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import rich_click as click

from lsf_dispatch import __version__
from lsf_dispatch.orchestrator.controllers import (
    BuildLogCommand,
    ExecuteCommand,
    JobsCliController,
    MutateJobsCommand,
    StatusCommand,
    SubmitCommand,
    WaitCommand,
)
from lsf_dispatch.orchestrator.markers import WorkspaceError
from lsf_dispatch.orchestrator.registry import RegistryError
from lsf_dispatch.orchestrator.scheduler import SchedulerError
from lsf_dispatch.orchestrator.status import BUCKET_TYPES

click.rich_click.USE_MARKDOWN = True
CONTROLLER = JobsCliController()
T = TypeVar("T")

_ROOT_OPTION = click.option(
    "--root",
    type=click.Path(path_type=Path),
    default=None,
    help="Workspace root holding the .lsf directory. Defaults to LSF_DISPATCH_ROOT or cwd.",
)
_TYPE_CHOICE = click.Choice(list(BUCKET_TYPES), case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="lsf-dispatch")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging level for orchestrator diagnostics.",
)
def lsf_dispatch(log_level: str) -> None:
    """Submit, track, and collect jobs on an LSF compute farm."""

    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@lsf_dispatch.command("status")
@_ROOT_OPTION
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show job details.")
@click.option(
    "-t",
    "--type",
    "bucket",
    type=_TYPE_CHOICE,
    default=None,
    help="Limit details to one job type.",
)
@click.option("-i", "--id", "job_id", default=None, help="Show details of one job id.")
@click.option(
    "--instructions/--no-instructions",
    default=True,
    show_default=True,
    help="Print the commands that act on each non-empty job type.",
)
def status(
    root: Path | None,
    verbose: bool,
    bucket: str | None,
    job_id: str | None,
    instructions: bool,
) -> None:
    """Classify tracked jobs and print the status summary."""

    _emit_lines(
        _guarded(
            CONTROLLER.status,
            StatusCommand(
                root=root,
                verbose=verbose,
                bucket=bucket.lower() if bucket else None,
                job_id=job_id,
                instructions=instructions,
            ),
        ),
    )


@lsf_dispatch.command("clear")
@_ROOT_OPTION
@click.option("-t", "--type", "bucket", type=_TYPE_CHOICE, default=None, help="Job type to clear.")
@click.option("-i", "--id", "job_id", default=None, help="Job id to clear.")
@click.option(
    "--all-logs",
    is_flag=True,
    default=False,
    help="With --type all, also delete every captured log and marker file.",
)
def clear(root: Path | None, bucket: str | None, job_id: str | None, all_logs: bool) -> None:
    """Stop tracking jobs by type or id."""

    bucket = _require_type_or_id(bucket, job_id)
    _emit_lines(
        _guarded(
            CONTROLLER.clear,
            MutateJobsCommand(
                root=root,
                bucket=bucket,
                job_id=job_id,
                full_reset=all_logs and bucket == "all",
            ),
        ),
    )


@lsf_dispatch.command("resubmit")
@_ROOT_OPTION
@click.option(
    "-t",
    "--type",
    "bucket",
    type=_TYPE_CHOICE,
    default=None,
    help="Job type to resubmit.",
)
@click.option("-i", "--id", "job_id", default=None, help="Job id to resubmit.")
def resubmit(root: Path | None, bucket: str | None, job_id: str | None) -> None:
    """Resubmit jobs by type or id."""

    bucket = _require_type_or_id(bucket, job_id)
    _emit_lines(
        _guarded(CONTROLLER.resubmit, MutateJobsCommand(root=root, bucket=bucket, job_id=job_id)),
    )


@lsf_dispatch.command("wait")
@_ROOT_OPTION
@click.option(
    "-i",
    "--id",
    "job_ids",
    multiple=True,
    help="Wait only for these job ids (marker files only). Can be repeated.",
)
@click.option(
    "--poll-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds between classification passes. Defaults to LSF_DISPATCH_POLL_SECONDS.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up after this many seconds. Defaults to LSF_DISPATCH_TIMEOUT_SECONDS.",
)
@click.option(
    "--max-lost-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Resubmit lost jobs up to this many times. Defaults to LSF_DISPATCH_MAX_LOST_RETRIES.",
)
@click.option(
    "--max-fail-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Resubmit failed jobs up to this many times. Defaults to LSF_DISPATCH_MAX_FAIL_RETRIES.",
)
def wait(  # noqa: PLR0913
    root: Path | None,
    job_ids: tuple[str, ...],
    poll_seconds: float | None,
    timeout_seconds: float | None,
    max_lost_retries: int | None,
    max_fail_retries: int | None,
) -> None:
    """Block until tracked jobs complete, resubmitting lost ones."""

    result = _guarded(
        CONTROLLER.wait,
        WaitCommand(
            root=root,
            job_ids=job_ids,
            poll_seconds=poll_seconds,
            timeout_seconds=timeout_seconds,
            max_lost_retries=max_lost_retries,
            max_fail_retries=max_fail_retries,
        ),
        reporter=_emit_lines,
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Timed out waiting for farm jobs.")


@lsf_dispatch.command("log")
@_ROOT_OPTION
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Write the consolidated log to this file instead of printing it.",
)
def build_log(root: Path | None, output_path: Path | None) -> None:
    """Build a consolidated log from passed and failed jobs."""

    _emit_lines(_guarded(CONTROLLER.build_log, BuildLogCommand(root=root, output_path=output_path)))


@lsf_dispatch.command("submit")
@_ROOT_OPTION
@click.argument("command")
@click.option(
    "--dependent",
    "dependents",
    multiple=True,
    help="Job id that must finish first. Can be repeated.",
)
@click.option(
    "--option-string",
    default="",
    help="Extra switches appended to the command and kept for resubmission.",
)
def submit(
    root: Path | None,
    command: str,
    dependents: tuple[str, ...],
    option_string: str,
) -> None:
    """Submit a shell command as a tracked farm job."""

    _emit_lines(
        _guarded(
            CONTROLLER.submit,
            SubmitCommand(
                root=root,
                command=command,
                dependents=dependents,
                option_string=option_string,
            ),
        ),
    )


@lsf_dispatch.command("execute", hidden=True, context_settings={"ignore_unknown_options": True})
@_ROOT_OPTION
@click.option("--id", "job_id", required=True, help="Local job id.")
@click.option("--dependents", default=None, help="Comma separated job ids to double-check.")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def execute(
    root: Path | None,
    job_id: str,
    dependents: str | None,
    command: tuple[str, ...],
) -> None:
    """Run a job payload on the worker host and record its outcome."""

    CONTROLLER.execute(
        ExecuteCommand(
            root=root,
            job_id=job_id,
            command=command,
            dependents=tuple(item for item in (dependents or "").split(",") if item),
        ),
    )


def _require_type_or_id(bucket: str | None, job_id: str | None) -> str | None:
    if bucket is None and job_id is None:
        raise click.UsageError("You must supply a job type or ID.")
    return bucket.lower() if bucket else None


def _guarded(handler: Callable[..., T], command: object, **kwargs: Any) -> T:
    try:
        return handler(command, **kwargs)
    except (RegistryError, SchedulerError, WorkspaceError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    lsf_dispatch()
