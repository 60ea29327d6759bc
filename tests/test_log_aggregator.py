from __future__ import annotations

import logging
from pathlib import Path

import allure

from lsf_dispatch.orchestrator.log_aggregator import SEPARATOR, LogAggregator, RunStatistics
from lsf_dispatch.orchestrator.services import Orchestrator

pytestmark = [
    allure.epic("Farm Jobs"),
    allure.feature("Log Aggregation"),
]


def _finish(orchestrator: Orchestrator, command: str, log: str | bytes, *, passed: bool = True):
    job = orchestrator.registry.submit_job(command)
    path = orchestrator.markers.log_file(job.id)
    if isinstance(log, bytes):
        path.write_bytes(log)
    else:
        path.write_text(log, "utf-8")
    orchestrator.markers.mark_started(job.id)
    if passed:
        orchestrator.markers.mark_passed(job.id)
    else:
        orchestrator.markers.mark_failed(job.id)
    return job


def test_item_totals_are_summed_across_completed_jobs(orchestrator: Orchestrator) -> None:
    _finish(orchestrator, "gen a", "Generating a\nTotal items:   5\n")
    _finish(orchestrator, "gen b", "\x1b[32mTotal patterns: 3\x1b[0m\n", passed=False)

    report = orchestrator.build_log()

    assert report.stats.completed_items == 8
    assert "Total items:      8" in report.lines
    assert "Total patterns: 3" not in "\n".join(report.lines)
    assert report.lines[0] == SEPARATOR
    assert report.lines[-1] == SEPARATOR


def test_outstanding_jobs_are_left_out(orchestrator: Orchestrator, fake_scheduler) -> None:
    _finish(orchestrator, "gen a", "from finished job\n")
    running = orchestrator.registry.submit_job("gen b")
    orchestrator.markers.write_log(running.id, "from running job\n")
    fake_scheduler.running.add(running.external_id)

    lines = orchestrator.build_log().lines

    assert "from finished job" in lines
    assert "from running job" not in lines


def test_noise_is_dropped_and_blank_runs_are_compressed(orchestrator: Orchestrator) -> None:
    log = (
        "first line\n"
        "\n"
        "   \n"
        "table row ||\n"
        "  origen save all\n"
        "Insecure world writable dir /tools in PATH\n"
        "To save all of these patterns run\n"
        "last line\n"
    )
    _finish(orchestrator, "gen a", log)

    lines = orchestrator.build_log().lines

    assert lines[1:4] == ["first line", "", "last line"]
    assert not any("origen save" in line for line in lines)
    assert not any("Insecure" in line for line in lines)


def test_error_lines_are_kept_and_counted(orchestrator: Orchestrator) -> None:
    _finish(orchestrator, "gen a", "  ERROR! pattern x did not compile  \n", passed=False)

    report = orchestrator.build_log()

    assert "ERROR! pattern x did not compile" in report.lines
    assert report.stats.errors == 1
    assert not report.stats.clean_run
    assert "ERRORS:           1" in report.lines


def test_undecodable_lines_are_kept_and_logged(orchestrator: Orchestrator, caplog) -> None:
    _finish(orchestrator, "gen a", b"good line\n\xff\xfe core dump\nafter\n", passed=False)

    with caplog.at_level(logging.ERROR):
        lines = orchestrator.build_log().lines

    assert "good line" in lines
    assert "after" in lines
    assert any("core dump" in line for line in lines)
    assert "Unreadable log line" in caplog.text


def test_missing_log_is_skipped_with_warning(orchestrator: Orchestrator, caplog) -> None:
    job = orchestrator.registry.submit_job("gen a")

    with caplog.at_level(logging.WARNING):
        report = LogAggregator(orchestrator.markers).build_log([job])

    assert report.lines == [SEPARATOR, SEPARATOR, SEPARATOR]
    assert f"Missing log for job {job.id}" in caplog.text


def test_report_write_creates_file(tmp_path: Path, orchestrator: Orchestrator) -> None:
    _finish(orchestrator, "gen a", "Total files: 2\nNew files: 1\n")
    output = tmp_path / "out" / "summary.txt"

    report = orchestrator.build_log()
    report.write(output)

    text = output.read_text("utf-8")
    assert "Total files:      2" in text
    assert "New files:        1" in text


def test_clean_run_without_changes() -> None:
    stats = RunStatistics()
    stats.add("completed_items", "4")
    stats.add("total_duration", "1.5")

    assert stats.clean_run
    assert stats.as_dict()["total_duration"] == 1.5
