from __future__ import annotations

from pathlib import Path

import allure
import pytest

from lsf_dispatch.config import Settings, ThrottleSettings, WaitSettings

pytestmark = [
    allure.epic("Farm Jobs"),
    allure.feature("Configuration"),
]


def test_from_env_uses_farm_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LSF_DISPATCH_ROOT", str(tmp_path))
    for name in ("LSF_DISPATCH_QUEUE", "LSF_DISPATCH_LOST_AFTER_SECONDS", "LSF_DISPATCH_GROUP"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.root == tmp_path
    assert settings.registry_path == tmp_path / ".lsf" / "remote_jobs.json"
    assert settings.logs_dir == tmp_path / ".lsf" / "remote_logs"
    assert settings.scheduler.queue == "short"
    assert settings.scheduler.project == "msg.te"
    assert settings.scheduler.group is None
    assert settings.throttle.batch_size == 100
    assert settings.throttle.ceiling == 400
    assert settings.classifier.queue_grace_seconds == 60.0
    assert settings.classifier.lost_after_seconds == 60.0
    assert settings.wait.max_lost_retries == 10


def test_from_env_reads_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LSF_DISPATCH_QUEUE", "long")
    monkeypatch.setenv("LSF_DISPATCH_PROJECT", "  ")
    monkeypatch.setenv("LSF_DISPATCH_DEBUG", "yes")
    monkeypatch.setenv("LSF_DISPATCH_LOST_AFTER_SECONDS", "90")
    monkeypatch.setenv("LSF_DISPATCH_MAX_FAIL_RETRIES", "2")

    settings = Settings.from_env(root=tmp_path)

    assert settings.root == tmp_path
    assert settings.scheduler.queue == "long"
    assert settings.scheduler.project is None
    assert settings.scheduler.debug is True
    assert settings.classifier.lost_after_seconds == 90.0
    assert settings.wait.max_fail_retries == 2


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("LSF_DISPATCH_THROTTLE_BATCH", "many"),
        ("LSF_DISPATCH_POLL_SECONDS", "soon"),
        ("LSF_DISPATCH_RERUNNABLE", "maybe"),
    ],
)
def test_from_env_rejects_malformed_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=name):
        Settings.from_env()


def test_validate_rejects_non_positive_throttle_ceiling() -> None:
    settings = Settings(throttle=ThrottleSettings(ceiling=0))

    with pytest.raises(ValueError, match="THROTTLE_CEILING"):
        settings.validate()


def test_validate_rejects_non_positive_timeout() -> None:
    settings = Settings(wait=WaitSettings(timeout_seconds=0))

    with pytest.raises(ValueError, match="TIMEOUT_SECONDS"):
        settings.validate()
