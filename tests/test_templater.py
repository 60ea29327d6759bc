from __future__ import annotations

import shlex
from pathlib import Path

import allure
import pytest

from lsf_dispatch.config import TemplateSettings
from lsf_dispatch.orchestrator.templater import (
    CommandTemplater,
    display_command,
    strip_unforwarded_options,
)

pytestmark = [
    allure.epic("Farm Jobs"),
    allure.feature("Command Rendering"),
]


def test_strip_removes_parent_only_flags_and_keeps_custom_flag() -> None:
    options = ["-d", "--exec_remote", "-w", "--custom-flag", "--debug", "--wait"]

    assert strip_unforwarded_options(options) == ["--custom-flag"]


def test_strip_removes_target_and_environment_with_their_values() -> None:
    options = ["-t", "v93k.rb", "--mode", "production", "--environment", "j750.rb"]

    assert strip_unforwarded_options(options) == ["--mode", "production"]


@pytest.mark.parametrize(
    ("options", "expected"),
    [
        (["-l", "add", "--fast"], ["--fast"]),
        (["--lsf", "clear"], []),
        (["-l", "status"], ["status"]),
    ],
)
def test_strip_drops_lsf_value_only_for_add_and_clear(
    options: list[str],
    expected: list[str],
) -> None:
    assert strip_unforwarded_options(options) == expected


def test_command_prefix_changes_into_root_and_tags_job_id() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work/my proj"))

    assert templater.command_prefix("17", []) == (
        "cd '/work/my proj'; lsf-dispatch execute --id 17 -- "
    )
    assert templater.command_prefix("17", ["3", "4"]) == (
        "cd '/work/my proj'; lsf-dispatch execute --id 17 --dependents 3,4 -- "
    )


def test_command_prefix_starts_with_site_prefix() -> None:
    templater = CommandTemplater(
        TemplateSettings(command_prefix="source /site/env.sh; "),
        Path("/work"),
    )

    assert templater.command_prefix("9", []).startswith("source /site/env.sh; cd /work; ")


def test_forwarded_options_apply_only_to_the_current_command() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))
    templater.current_command = "generate"
    templater.record_command_options(["-t", "v93k.rb", "--mode", "debug", "-d"])

    assert templater.command_options == ["--mode", "debug"]
    assert templater.forwarded_options("origen g my_pattern --exec_remote") == "--mode debug"
    assert templater.forwarded_options("origen generate my_pattern") == "--mode debug"
    assert templater.forwarded_options("origen program flow.rb") == ""


def test_forwarded_options_empty_without_current_command() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))
    templater.add_command_option("--fast")

    assert templater.forwarded_options("origen g my_pattern") == ""


def test_build_switches_combines_option_string_and_forwarded_options() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))
    templater.current_command = "program"
    templater.add_command_option("--fast")

    switches = templater.build_switches("origen p flow.rb", "-o out")

    assert switches == " -o out --fast"


def test_build_switches_is_empty_without_options() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))

    assert templater.build_switches("make") == ""
    assert templater.build_switches("make", "  -j4  ") == " -j4"


def test_render_is_prefix_command_and_switches() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))

    rendered = templater.render(job_id="5", dependent_ids=[], command="make", switches=" -j4")

    assert rendered == "cd /work; lsf-dispatch execute --id 5 -- 'make -j4'"


def test_render_keeps_compound_payload_inside_the_harness() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))

    rendered = templater.render(
        job_id="5",
        dependent_ids=["3"],
        command="echo payload && exit 3",
        switches="",
    )

    assert shlex.split(rendered.split("; ", 1)[1]) == [
        "lsf-dispatch",
        "execute",
        "--id",
        "5",
        "--dependents",
        "3",
        "--",
        "echo payload && exit 3",
    ]


def test_app_command_maps_pattern_action_and_marks_remote() -> None:
    templater = CommandTemplater(TemplateSettings(), Path("/work"))

    assert templater.app_command("my_pattern", action="pattern") == (
        "origen generate my_pattern --exec_remote"
    )
    assert templater.app_command("origen program flow.rb") == (
        "origen program flow.rb --exec_remote"
    )


def test_display_command_hides_remote_flag() -> None:
    shown = display_command("origen generate my_pattern --exec_remote", " --fast")

    assert "--exec_remote" not in shown
    assert shown.startswith("origen generate my_pattern")
    assert shown.endswith("--fast")
