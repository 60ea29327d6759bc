"""Builds the exact command string a farm job runs on the worker host."""

from __future__ import annotations

import re
import shlex
from collections.abc import Iterable, Sequence
from pathlib import Path

from lsf_dispatch.config import TemplateSettings

REMOTE_FLAG = "--exec_remote"

COMMAND_ALIASES: dict[str, str] = {
    "g": "generate",
    "p": "program",
    "c": "compile",
    "i": "interactive",
    "l": "lsf",
    "pl": "plugin",
}

# Flag names mapped to the values that are dropped together with them.
# False drops only the flag, "*" drops the flag and whatever follows it,
# a tuple drops the following token only when it is one of the listed values.
_UNFORWARDED_OPTIONS: tuple[tuple[tuple[str, ...], bool | str | tuple[str, ...]], ...] = (
    (("-h", "--help"), False),
    (("-w", "--wait"), False),
    (("-d", "--debug"), False),
    (("-c", "--continue"), False),
    ((REMOTE_FLAG,), False),
    (("-t", "--target"), "*"),
    (("-e", "--environment"), "*"),
    (("--id",), "*"),
    (("-l", "--lsf"), ("add", "clear")),
)


def strip_unforwarded_options(options: Sequence[str]) -> list[str]:
    """Remove parent-process flags that must not reach child jobs.

    Target and environment selectors are removed with their value since the
    child receives its own through the forwarded option string.
    """

    remaining = list(options)
    for names, values in _UNFORWARDED_OPTIONS:
        for name in names:
            if name not in remaining:
                continue
            index = remaining.index(name)
            del remaining[index]
            if values is False or index >= len(remaining):
                continue
            if values == "*" or remaining[index] in values:
                del remaining[index]
    return remaining


class CommandTemplater:
    """Composes the remote command and tracks options of the running command."""

    def __init__(self, settings: TemplateSettings, root: Path) -> None:
        self.settings = settings
        self.root = root
        self.current_command: str | None = None
        self._command_options: list[str] = []

    @property
    def command_options(self) -> list[str]:
        return list(self._command_options)

    def record_command_options(self, options: Sequence[str]) -> None:
        """Remember the filtered options the current command was launched with."""

        self._command_options += strip_unforwarded_options(options)

    def add_command_option(self, *options: str) -> None:
        self._command_options += list(options)

    def forwarded_options(self, command: str) -> str:
        """Options to append when ``command`` re-runs the current command remotely."""

        verb = _command_verb(command, self.settings.app_executable)
        if verb is None or self.current_command is None:
            return ""
        verb = COMMAND_ALIASES.get(verb, verb)
        if verb != self.current_command:
            return ""
        return " ".join(self._command_options)

    def build_switches(self, command: str, option_string: str = "") -> str:
        parts = [part for part in (option_string.strip(), self.forwarded_options(command)) if part]
        return f" {' '.join(parts)}" if parts else ""

    def command_prefix(self, job_id: str, dependent_ids: Iterable[str]) -> str:
        """Site prefix, change into the workspace, and tag the harness with the job id."""

        dependents = list(dependent_ids)
        prefix = self.settings.command_prefix or ""
        prefix += (
            f"cd {shlex.quote(str(self.root))}; "
            f"{self.settings.executable} execute --id {job_id} "
        )
        if dependents:
            prefix += f"--dependents {','.join(dependents)} "
        return prefix + "-- "

    def render(
        self,
        *,
        job_id: str,
        dependent_ids: Iterable[str],
        command: str,
        switches: str,
    ) -> str:
        """Worker command line; the payload is a single quoted argument to the harness."""

        return self.command_prefix(job_id, dependent_ids) + shlex.quote(command + switches)

    def app_command(self, command: str, action: str | None = None) -> str:
        """Host application invocation for ``command`` marked as running remotely."""

        if action == "pattern":
            verb = " generate"
        elif action:
            verb = f" {action}"
        else:
            verb = ""
        executable = self.settings.app_executable
        text = f"{verb} {command}".strip()
        if text.startswith(f"{executable} "):
            text = text[len(executable) + 1 :]
        return f"{executable} {text} {REMOTE_FLAG}"


def _command_verb(command: str, executable: str) -> str | None:
    stripped = re.sub(rf"^\s*{re.escape(executable)}\s*", "", command)
    match = re.search(r"([\w-]+)", stripped)
    return match.group(1) if match else None


def display_command(command: str, switches: str) -> str:
    """Command and switches as an operator would type them."""

    return f"{command} {switches}".replace(f" {REMOTE_FLAG}", "").strip()
