from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path

import allure
import pytest

import lsf_dispatch
from lsf_dispatch.config import Settings, TemplateSettings
from lsf_dispatch.orchestrator import remote
from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.remote import execute_remotely
from lsf_dispatch.orchestrator.services import build_orchestrator

pytestmark = [
    allure.epic("Farm Jobs"),
    allure.feature("Worker Harness"),
]


@pytest.fixture()
def markers(tmp_path: Path) -> MarkerStore:
    store = MarkerStore(tmp_path / "remote_logs")
    store.ensure_dir()
    return store


def test_successful_payload_marks_passed_and_captures_output(markers: MarkerStore) -> None:
    result = execute_remotely(markers=markers, job_id="11", command=("echo", "hello", "farm"))

    assert result.passed
    assert result.exit_code == 0
    assert markers.is_started("11")
    assert markers.is_passed("11")
    assert not markers.is_failed("11")
    assert markers.log_file("11").read_text("utf-8") == "hello farm\n"


def test_non_zero_exit_marks_failed(markers: MarkerStore) -> None:
    result = execute_remotely(markers=markers, job_id="12", command="echo oops >&2; exit 3")

    assert not result.passed
    assert result.exit_code == 3
    assert markers.is_failed("12")
    assert not markers.is_passed("12")
    assert "oops" in markers.log_file("12").read_text("utf-8")


def test_failed_dependent_skips_payload(markers: MarkerStore, tmp_path: Path) -> None:
    markers.mark_started("1")
    markers.mark_failed("1")
    witness = tmp_path / "ran"

    result = execute_remotely(
        markers=markers,
        job_id="13",
        command=f"touch {witness}",
        dependent_ids=["1"],
    )

    assert result.skipped
    assert not witness.exists()
    assert markers.is_failed("13")
    log = markers.log_file("13").read_text("utf-8")
    assert log == f"*** ERROR! *** touch {witness} ***\nDependents failed!\n"


def test_unfinished_dependent_fails_after_short_wait(markers: MarkerStore) -> None:
    sleeps: list[float] = []

    result = execute_remotely(
        markers=markers,
        job_id="14",
        command="true",
        dependent_ids=["2"],
        dependents_timeout_seconds=0,
        sleep=sleeps.append,
    )

    assert result.skipped
    assert sleeps == []
    assert markers.is_failed("14")


def test_passed_dependents_let_payload_run(markers: MarkerStore) -> None:
    for dep_id in ("3", "4"):
        markers.mark_started(dep_id)
        markers.mark_passed(dep_id)

    result = execute_remotely(
        markers=markers,
        job_id="15",
        command="true",
        dependent_ids=["3", "4"],
    )

    assert result.passed
    assert not result.skipped


def test_harness_error_is_recorded_as_failure(
    markers: MarkerStore,
    monkeypatch,
    caplog,
) -> None:
    def broken_run(*args, **kwargs):
        raise RuntimeError("fork failed")

    monkeypatch.setattr(remote.subprocess, "run", broken_run)

    with caplog.at_level(logging.ERROR):
        result = execute_remotely(markers=markers, job_id="16", command="true")

    assert not result.passed
    assert result.exit_code is None
    assert markers.is_started("16")
    assert markers.is_failed("16")
    assert "Remote execution of job 16 failed" in caplog.text


def test_compound_submitted_command_is_judged_by_its_last_exit_status(
    tmp_path: Path,
    fake_scheduler,
    monkeypatch,
) -> None:
    monkeypatch.delenv("LSF_DISPATCH_ROOT", raising=False)
    harness = f"{shlex.quote(sys.executable)} -m lsf_dispatch.main"
    orchestrator = build_orchestrator(
        Settings(root=tmp_path, template=TemplateSettings(executable=harness)),
        scheduler=fake_scheduler,
    )
    job = orchestrator.registry.submit_job("echo payload && exit 3")
    source_dir = Path(lsf_dispatch.__file__).resolve().parents[1]
    python_path = os.pathsep.join([str(source_dir), os.getenv("PYTHONPATH", "")])
    rendered = fake_scheduler.requests[0].command

    subprocess.run(  # noqa: S602
        rendered,
        shell=True,
        check=False,
        env={**os.environ, "PYTHONPATH": python_path},
    )

    assert orchestrator.markers.is_started(job.id)
    assert orchestrator.markers.is_failed(job.id)
    assert not orchestrator.markers.is_passed(job.id)
    assert orchestrator.markers.log_file(job.id).read_text("utf-8") == "payload\n"
