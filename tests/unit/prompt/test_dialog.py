"""
ddm-reminder — unit tests for the swiftDialog adapter

File: tests/unit/prompt/test_dialog.py

Purpose
- Validate argument construction, exit-code decoding, and the version gate, using a fake
  process runner in place of swiftDialog.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from ddm_reminder.domain.models import ExhaustedBehavior, PromptOutcome
from ddm_reminder.prompt import (
    DialogPrompt,
    PromptRequest,
    build_dialog_arguments,
    decode_dialog_result,
    parse_selected_option,
)


class _FakeRunner:
    def __init__(self, *, version: str = "2.5.2", returncode: int = 0, stdout: str = "") -> None:
        self.version = version
        self.returncode = returncode
        self.stdout = stdout
        self.calls: list[list[str]] = []

    def __call__(self, argv: list[str], **kwargs: Any) -> SimpleNamespace:
        self.calls.append(list(argv))
        if argv[1:] == ["--version"]:
            return SimpleNamespace(returncode=0, stdout=f"{self.version}\n")
        return SimpleNamespace(returncode=self.returncode, stdout=self.stdout)


def _request(**overrides: Any) -> PromptRequest:
    values: dict[str, Any] = {
        "title": "macOS Update Required",
        "message": "Please update",
        "infobox": "**Days Remaining:** 5",
        "help_message": "Call IT",
        "button1_text": "Open Software Update",
        "button2_text": "Remind Me Later",
        "info_button_text": "Help",
        "snooze_option": "Snooze 120 Minutes",
        "exhausted": False,
        "exhausted_behavior": ExhaustedBehavior.NO_REMIND_BUTTON,
        "auto_open_delay_seconds": 60,
        "blur_screen": False,
        "timeout_seconds": 300,
    }
    values.update(overrides)
    return PromptRequest(**values)


def _binary(tmp_path: Path) -> Path:
    binary = tmp_path / "dialog"
    binary.write_text("#!/bin/sh\n", encoding="utf-8")
    return binary


def _value_after(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


def test_arguments_for_regular_reminder_with_snooze() -> None:
    args = build_dialog_arguments(_request())

    assert _value_after(args, "--title") == "macOS Update Required"
    assert _value_after(args, "--button1text") == "Open Software Update"
    assert _value_after(args, "--button2text") == "Remind Me Later"
    assert _value_after(args, "--infobuttontext") == "Help"
    assert _value_after(args, "--helpmessage") == "Call IT"
    assert _value_after(args, "--selectvalues") == "Remind Me Later,Snooze 120 Minutes"
    assert _value_after(args, "--selectdefault") == "Remind Me Later"
    assert "--json" in args
    assert _value_after(args, "--timer") == "300"
    assert "--hidetimerbar" in args
    assert "--button2disabled" not in args
    assert "--blurscreen" not in args
    assert _value_after(args, "--messagefont") == "size=14"
    assert args[-1] == "--ontop"


def test_arguments_for_exhausted_reminder() -> None:
    args = build_dialog_arguments(
        _request(
            exhausted=True,
            button2_text="No Deferrals Remaining",
            snooze_option=None,
            timeout_seconds=None,
            blur_screen=True,
        )
    )

    assert _value_after(args, "--button2text") == "No Deferrals Remaining"
    assert "--button2disabled" in args
    assert "--selectvalues" not in args
    assert "--timer" not in args
    assert "--blurscreen" in args


def test_arguments_for_auto_open_countdown() -> None:
    args = build_dialog_arguments(
        _request(
            exhausted=True,
            exhausted_behavior=ExhaustedBehavior.AUTO_OPEN_UPDATE,
            button2_text=None,
            snooze_option=None,
            timeout_seconds=60,
        )
    )

    assert "--button2text" not in args
    assert _value_after(args, "--timer") == "60"
    # The countdown bar stays visible when the dialog will act on its own.
    assert "--hidetimerbar" not in args


@pytest.mark.parametrize(
    ("exit_code", "outcome"),
    [
        (0, PromptOutcome.OPEN_UPDATE),
        (2, PromptOutcome.DEFERRED),
        (3, PromptOutcome.INFO),
        (4, PromptOutcome.TIMEOUT),
        (20, PromptOutcome.TIMEOUT),
        (10, PromptOutcome.ERROR),
        (255, PromptOutcome.ERROR),
    ],
)
def test_decode_exit_codes(exit_code: int, outcome: PromptOutcome) -> None:
    assert decode_dialog_result(exit_code, "", "Snooze 120 Minutes").outcome is outcome


def test_decode_do_not_disturb_and_unknown_codes_carry_detail() -> None:
    assert decode_dialog_result(20, "", None).detail == "do not disturb enabled"
    assert decode_dialog_result(10, "", None).detail == "unknown exit code: 10"


def test_button2_with_snooze_selection_is_snooze() -> None:
    stdout = '{"SelectedOption": "Snooze 120 Minutes", "SelectedIndex": 1}'

    result = decode_dialog_result(2, stdout, "Snooze 120 Minutes")

    assert result.outcome is PromptOutcome.SNOOZED
    assert result.selected_option == "Snooze 120 Minutes"


def test_button2_with_default_selection_is_deferral() -> None:
    result = decode_dialog_result(2, '{"SelectedOption": "Remind Me Later"}', "Snooze 120 Minutes")
    assert result.outcome is PromptOutcome.DEFERRED


@pytest.mark.parametrize(
    ("stdout", "expected"),
    [
        ('{"SelectedOption": "Snooze"}', "Snooze"),
        ('SelectedOption : "Snooze"\nSelectedIndex : 1', "Snooze"),
        ("[]", None),
        ("", None),
        ("garbage", None),
    ],
)
def test_parse_selected_option(stdout: str, expected: str | None) -> None:
    assert parse_selected_option(stdout) == expected


def test_present_checks_version_then_runs_dialog(tmp_path: Path) -> None:
    binary = _binary(tmp_path)
    runner = _FakeRunner(returncode=2, stdout='{"SelectedOption": "Snooze 120 Minutes"}')
    prompt = DialogPrompt(binary, "2.4.0", runner=runner)

    result = prompt.present(_request())

    assert result.outcome is PromptOutcome.SNOOZED
    version_call, dialog_call = runner.calls
    assert version_call == [str(binary), "--version"]
    assert dialog_call[0] == str(binary)
    assert dialog_call[1:] == build_dialog_arguments(_request())


def test_present_missing_binary_is_error(tmp_path: Path) -> None:
    runner = _FakeRunner()
    prompt = DialogPrompt(tmp_path / "missing", "2.4.0", runner=runner)

    result = prompt.present(_request())

    assert result.outcome is PromptOutcome.ERROR
    assert result.detail is not None
    assert "not found" in result.detail
    assert runner.calls == []


def test_present_old_dialog_is_error(tmp_path: Path) -> None:
    runner = _FakeRunner(version="2.3.1")
    prompt = DialogPrompt(_binary(tmp_path), "2.4.0", runner=runner)

    result = prompt.present(_request())

    assert result.outcome is PromptOutcome.ERROR
    assert result.detail == "swiftDialog version 2.3.1 below minimum 2.4.0"
    assert len(runner.calls) == 1


def test_present_spawn_failure_is_error(tmp_path: Path) -> None:
    def _runner(argv: list[str], **kwargs: Any) -> SimpleNamespace:
        if argv[1:] == ["--version"]:
            raise subprocess.TimeoutExpired(argv, 10)
        raise PermissionError("not executable")

    prompt = DialogPrompt(_binary(tmp_path), "2.4.0", runner=_runner)

    result = prompt.present(_request())

    assert result.outcome is PromptOutcome.ERROR
    assert result.detail == "not executable"
    assert prompt.installed_version() == ""
