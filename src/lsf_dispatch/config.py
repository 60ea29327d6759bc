"""Runtime configuration for job submission, classification, and waiting."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

STATE_DIR_NAME = ".lsf"
REGISTRY_FILE_NAME = "remote_jobs.json"
LOGS_DIR_NAME = "remote_logs"


@dataclass(slots=True)
class SchedulerSettings:
    """Resource parameters passed to the external scheduler on submit."""

    group: str | None = None
    project: str | None = "msg.te"
    resource: str | None = "linux"
    queue: str | None = "short"
    cores: str | None = "1"
    rerunnable: bool = True
    debug: bool = False
    submit_command: str = "bsub"
    status_command: str = "bjobs"


@dataclass(slots=True)
class ThrottleSettings:
    """Local admission control applied to submissions from one process."""

    batch_size: int = 100
    ceiling: int = 400
    poll_seconds: float = 5.0


@dataclass(slots=True)
class ClassifierSettings:
    """Timing windows used to resolve ambiguous job states."""

    queue_grace_seconds: float = 60.0
    lost_after_seconds: float = 60.0


@dataclass(slots=True)
class WaitSettings:
    """Defaults for the blocking completion wait."""

    poll_seconds: float = 10.0
    timeout_seconds: float = 3600.0
    max_lost_retries: int = 10
    max_fail_retries: int = 0


@dataclass(slots=True)
class TemplateSettings:
    """Inputs for the command string run on the worker host."""

    command_prefix: str = ""
    executable: str = "lsf-dispatch"
    app_executable: str = "origen"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    root: Path = field(default_factory=Path.cwd)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    throttle: ThrottleSettings = field(default_factory=ThrottleSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    wait: WaitSettings = field(default_factory=WaitSettings)
    template: TemplateSettings = field(default_factory=TemplateSettings)

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIR_NAME

    @property
    def registry_path(self) -> Path:
        return self.state_dir / REGISTRY_FILE_NAME

    @property
    def logs_dir(self) -> Path:
        return self.state_dir / LOGS_DIR_NAME

    @classmethod
    def from_env(cls, root: Path | None = None) -> Settings:
        """Load settings from environment with defaults matching the farm setup."""

        return cls(
            root=root or Path(os.getenv("LSF_DISPATCH_ROOT", str(Path.cwd()))),
            scheduler=SchedulerSettings(
                group=_env_optional("LSF_DISPATCH_GROUP", None),
                project=_env_optional("LSF_DISPATCH_PROJECT", "msg.te"),
                resource=_env_optional("LSF_DISPATCH_RESOURCE", "linux"),
                queue=_env_optional("LSF_DISPATCH_QUEUE", "short"),
                cores=_env_optional("LSF_DISPATCH_CORES", "1"),
                rerunnable=_env_bool("LSF_DISPATCH_RERUNNABLE", default=True),
                debug=_env_bool("LSF_DISPATCH_DEBUG", default=False),
                submit_command=os.getenv("LSF_DISPATCH_SUBMIT_COMMAND", "bsub"),
                status_command=os.getenv("LSF_DISPATCH_STATUS_COMMAND", "bjobs"),
            ),
            throttle=ThrottleSettings(
                batch_size=_env_int("LSF_DISPATCH_THROTTLE_BATCH", 100),
                ceiling=_env_int("LSF_DISPATCH_THROTTLE_CEILING", 400),
                poll_seconds=_env_float("LSF_DISPATCH_THROTTLE_POLL_SECONDS", 5.0),
            ),
            classifier=ClassifierSettings(
                queue_grace_seconds=_env_float("LSF_DISPATCH_QUEUE_GRACE_SECONDS", 60.0),
                lost_after_seconds=_env_float("LSF_DISPATCH_LOST_AFTER_SECONDS", 60.0),
            ),
            wait=WaitSettings(
                poll_seconds=_env_float("LSF_DISPATCH_POLL_SECONDS", 10.0),
                timeout_seconds=_env_float("LSF_DISPATCH_TIMEOUT_SECONDS", 3600.0),
                max_lost_retries=_env_int("LSF_DISPATCH_MAX_LOST_RETRIES", 10),
                max_fail_retries=_env_int("LSF_DISPATCH_MAX_FAIL_RETRIES", 0),
            ),
            template=TemplateSettings(
                command_prefix=os.getenv("LSF_DISPATCH_COMMAND_PREFIX", ""),
                executable=os.getenv("LSF_DISPATCH_EXECUTABLE", "lsf-dispatch"),
                app_executable=os.getenv("LSF_DISPATCH_APP_EXECUTABLE", "origen"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the orchestrator cannot work with."""

        if self.throttle.batch_size <= 0:
            raise ValueError("LSF_DISPATCH_THROTTLE_BATCH must be > 0.")
        if self.throttle.ceiling <= 0:
            raise ValueError("LSF_DISPATCH_THROTTLE_CEILING must be > 0.")
        if self.throttle.poll_seconds < 0:
            raise ValueError("LSF_DISPATCH_THROTTLE_POLL_SECONDS must be >= 0.")
        if self.classifier.queue_grace_seconds < 0:
            raise ValueError("LSF_DISPATCH_QUEUE_GRACE_SECONDS must be >= 0.")
        if self.classifier.lost_after_seconds < 0:
            raise ValueError("LSF_DISPATCH_LOST_AFTER_SECONDS must be >= 0.")
        if self.wait.poll_seconds < 0:
            raise ValueError("LSF_DISPATCH_POLL_SECONDS must be >= 0.")
        if self.wait.timeout_seconds <= 0:
            raise ValueError("LSF_DISPATCH_TIMEOUT_SECONDS must be > 0.")
        if self.wait.max_lost_retries < 0:
            raise ValueError("LSF_DISPATCH_MAX_LOST_RETRIES must be >= 0.")
        if self.wait.max_fail_retries < 0:
            raise ValueError("LSF_DISPATCH_MAX_FAIL_RETRIES must be >= 0.")
        if not self.template.executable.strip():
            raise ValueError("LSF_DISPATCH_EXECUTABLE must not be empty.")


def _env_optional(name: str, default: str | None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip()
    return normalized or None


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid numeric value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
