"""Merges captured job output into one report with combined run statistics."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, fields
from pathlib import Path

from lsf_dispatch.orchestrator.markers import MarkerStore
from lsf_dispatch.orchestrator.models import JobRecord

logger = logging.getLogger(__name__)

SEPARATOR = "*" * 70

_COLOR_CODE = re.compile(r"\x1b\[\d+(?:;\d+)*m")
_BLANK_LINE = re.compile(r"^\s*$|.*\|\|\s*$")
_NOISE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"  origen save"),
    re.compile(r"Insecure world writable dir"),
    re.compile(r"To save all of"),
)
_ERROR_MARKER = "ERROR!"

# First match wins, so the order mirrors how a job prints its summary.
_METRIC_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"Total (?:patterns|items):\s+(\d+)"), "completed_items"),
    (re.compile(r"Total vectors:\s+(\d+)"), "total_vectors"),
    (re.compile(r"Total duration:\s+(\d+(?:\.\d+)?)"), "total_duration"),
    (re.compile(r"Total files:\s+(\d+)"), "completed_files"),
    (re.compile(r"Changed (?:patterns|items):\s+(\d+)"), "changed_items"),
    (re.compile(r"Changed files:\s+(\d+)"), "changed_files"),
    (re.compile(r"New (?:patterns|items):\s+(\d+)"), "new_items"),
    (re.compile(r"New files:\s+(\d+)"), "new_files"),
    (re.compile(r"FAILED (?:patterns|items):\s+(\d+)"), "failed_items"),
    (re.compile(r"FAILED files:\s+(\d+)"), "failed_files"),
)


@dataclass(slots=True)
class RunStatistics:
    """Totals accumulated from the summary lines of every completed job."""

    completed_items: int = 0
    total_vectors: int = 0
    total_duration: float = 0.0
    new_items: int = 0
    changed_items: int = 0
    failed_items: int = 0
    completed_files: int = 0
    new_files: int = 0
    changed_files: int = 0
    failed_files: int = 0
    errors: int = 0

    @property
    def clean_run(self) -> bool:
        return not any(
            (
                self.changed_files,
                self.changed_items,
                self.new_files,
                self.new_items,
                self.failed_files,
                self.failed_items,
                self.errors,
            ),
        )

    def add(self, name: str, raw_value: str) -> None:
        current = getattr(self, name)
        setattr(self, name, current + type(current)(float(raw_value)))

    def summary_lines(self) -> list[str]:
        lines: list[str] = []
        if self.completed_items or self.failed_items:
            lines += [
                f"Total items:      {self.completed_items}",
                f"Total vectors:    {self.total_vectors}",
                f"Total duration:   {self.total_duration:.6f}",
                f"New items:        {self.new_items}",
                f"Changed items:    {self.changed_items}",
            ]
            if self.failed_items:
                lines.append(f"FAILED items:     {self.failed_items}")
            lines.append("")
        if self.completed_files or self.failed_files:
            lines += [
                f"Total files:      {self.completed_files}",
                f"New files:        {self.new_files}",
                f"Changed files:    {self.changed_files}",
            ]
            if self.failed_files:
                lines.append(f"FAILED files:     {self.failed_files}")
            lines.append("")
        if self.errors:
            lines.append(f"ERRORS:           {self.errors}")
        return lines

    def as_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class LogReport:
    """Combined log lines plus the statistics scraped from them."""

    lines: list[str] = field(default_factory=list)
    stats: RunStatistics = field(default_factory=RunStatistics)

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(self.lines) + "\n", "utf-8")


class LogAggregator:
    """Reads the captured output of completed jobs."""

    def __init__(self, markers: MarkerStore) -> None:
        self.markers = markers

    def build_log(self, jobs: Iterable[JobRecord]) -> LogReport:
        """Combine logs of the given (passed and failed) jobs."""

        report = LogReport()
        report.lines.append(SEPARATOR)
        for job in jobs:
            path = self.markers.log_file(job.id)
            try:
                raw_lines = path.read_bytes().splitlines()
            except OSError as error:
                logger.warning("Missing log for job %s: %s", job.id, error)
                continue
            self._consume(raw_lines, report)
        report.lines.append(SEPARATOR)
        report.lines += report.stats.summary_lines()
        report.lines.append(SEPARATOR)
        return report

    def _consume(self, raw_lines: list[bytes], report: LogReport) -> None:
        last_line_blank = False
        for raw in raw_lines:
            try:
                line = _COLOR_CODE.sub("", raw.decode("utf-8"))
                if self._record_metric(line, report.stats):
                    continue
                if _ERROR_MARKER in line:
                    report.stats.errors += 1
                    report.lines.append(line.strip())
                    last_line_blank = False
                elif _BLANK_LINE.match(line):
                    if not last_line_blank:
                        report.lines.append("")
                        last_line_blank = True
                elif not any(pattern.search(line) for pattern in _NOISE_PATTERNS):
                    report.lines.append(line.strip())
                    last_line_blank = False
            except (UnicodeDecodeError, ValueError) as error:
                # Crash dumps can carry bytes that are not valid text.
                text = raw.decode("utf-8", errors="replace")
                logger.error("Unreadable log line %r: %s", text, error)
                report.lines.append(text)
                last_line_blank = False

    @staticmethod
    def _record_metric(line: str, stats: RunStatistics) -> bool:
        for pattern, name in _METRIC_PATTERNS:
            match = pattern.search(line)
            if match:
                stats.add(name, match.group(1))
                return True
        return False
