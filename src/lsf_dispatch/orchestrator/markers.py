"""Per-job marker files shared between the orchestrator and worker hosts.

Each job id owns four files under the logs directory::

    <id>.txt          captured stdout/stderr of the payload
    <id>.txt.started  presence flag written when the worker picks the job up
    <id>.txt.passed   presence flag written when the payload exits with 0
    <id>.txt.failed   presence flag written on any other outcome

Presence is the only signal carried by the flags. There is no locking: a
flag is created through a temporary file and an atomic rename so readers on
a shared filesystem never see a half-written entry, but concurrent writers
for the same id are not serialized.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

LOG_SUFFIX = ".txt"
STARTED_SUFFIX = ".started"
PASSED_SUFFIX = ".passed"
FAILED_SUFFIX = ".failed"


class WorkspaceError(RuntimeError):
    """Workspace layout is missing or unusable."""


class MarkerStore:
    """Deterministic marker file layout for job ids."""

    def __init__(self, logs_dir: Path) -> None:
        self.logs_dir = logs_dir

    def ensure_dir(self) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def log_file(self, job_id: str) -> Path:
        return self.logs_dir / f"{job_id}{LOG_SUFFIX}"

    def started_file(self, job_id: str) -> Path:
        return self.logs_dir / f"{job_id}{LOG_SUFFIX}{STARTED_SUFFIX}"

    def passed_file(self, job_id: str) -> Path:
        return self.logs_dir / f"{job_id}{LOG_SUFFIX}{PASSED_SUFFIX}"

    def failed_file(self, job_id: str) -> Path:
        return self.logs_dir / f"{job_id}{LOG_SUFFIX}{FAILED_SUFFIX}"

    def all_files(self, job_id: str) -> tuple[Path, Path, Path, Path]:
        return (
            self.log_file(job_id),
            self.passed_file(job_id),
            self.failed_file(job_id),
            self.started_file(job_id),
        )

    def is_started(self, job_id: str) -> bool:
        return self.started_file(job_id).exists()

    def is_passed(self, job_id: str) -> bool:
        return self.passed_file(job_id).exists()

    def is_failed(self, job_id: str) -> bool:
        return self.failed_file(job_id).exists()

    def is_completed(self, job_id: str) -> bool:
        """True once the job started and produced a pass or fail flag."""

        return self.is_started(job_id) and (self.is_passed(job_id) or self.is_failed(job_id))

    def mark_started(self, job_id: str) -> None:
        self._touch(self.started_file(job_id))

    def mark_passed(self, job_id: str) -> None:
        self._touch(self.passed_file(job_id))

    def mark_failed(self, job_id: str) -> None:
        self._touch(self.failed_file(job_id))

    def write_log(self, job_id: str, text: str) -> None:
        path = self.log_file(job_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, "utf-8")

    def remove_all(self, job_id: str) -> None:
        """Delete the captured log and every flag for one id."""

        for path in self.all_files(job_id):
            path.unlink(missing_ok=True)

    def reset(self) -> None:
        """Delete every marker and recreate an empty logs directory."""

        if self.logs_dir.exists():
            shutil.rmtree(self.logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def _touch(self, path: Path) -> None:
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        os.close(fd)
        try:
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
