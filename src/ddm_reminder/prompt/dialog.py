"""
ddm-reminder — swiftDialog prompt adapter.

File: src/ddm_reminder/prompt/dialog.py

Purpose
- Present a :class:`PromptRequest` with the swiftDialog binary and decode how the user
  responded into a :class:`PromptResult`.

Exit code contract
- 0 button 1 (open Software Update), 2 button 2 (defer, or snooze when the selected
  option is the snooze option), 3 info button, 4 timer expired, 20 Do Not Disturb.
- Anything else, a missing binary, a binary older than the configured minimum, or a
  failure to spawn is reported as an error result. Nothing is retried.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any, Final, Protocol

from ddm_reminder.domain.models import PromptOutcome, PromptResult
from ddm_reminder.enforcement.versions import is_version_sufficient
from ddm_reminder.prompt.templates import PromptRequest

_VERSION_TIMEOUT_SECONDS: Final[float] = 10.0
_SELECTED_OPTION_LINE: Final[re.Pattern[str]] = re.compile(
    r'"?SelectedOption"?\s*:\s*"([^"]*)"'
)

Runner = Callable[..., Any]


class PromptCollaborator(Protocol):
    def present(self, request: PromptRequest) -> PromptResult: ...


class DialogPrompt:
    """Runs swiftDialog synchronously for one reminder."""

    def __init__(
        self,
        binary: Path | str,
        min_version: str,
        *,
        runner: Runner = subprocess.run,
        logger: logging.Logger | None = None,
    ) -> None:
        self._binary = Path(binary)
        self._min_version = min_version
        self._runner = runner
        self._logger = logger or logging.getLogger("ddm_reminder.dialog")

    @property
    def binary(self) -> Path:
        return self._binary

    def installed_version(self) -> str:
        """Version reported by ``dialog --version``; empty when unavailable."""

        try:
            completed = self._runner(
                [str(self._binary), "--version"],
                capture_output=True,
                text=True,
                timeout=_VERSION_TIMEOUT_SECONDS,
                check=False,
            )
        except (subprocess.TimeoutExpired, OSError):
            return ""
        return str(completed.stdout or "").strip()

    def present(self, request: PromptRequest) -> PromptResult:
        if not self._binary.exists():
            return PromptResult.error(f"swiftDialog not found at {self._binary}")

        version = self.installed_version()
        if version and not is_version_sufficient(version, self._min_version):
            return PromptResult.error(
                f"swiftDialog version {version} below minimum {self._min_version}"
            )
        if version:
            self._logger.info(
                "swiftDialog version %s meets minimum %s", version, self._min_version
            )

        argv = [str(self._binary), *build_dialog_arguments(request)]
        self._logger.info("presenting reminder dialog", extra={"exhausted": request.exhausted})
        try:
            completed = self._runner(argv, capture_output=True, text=True, check=False)
        except OSError as exc:
            self._logger.error("failed to run dialog: %s", exc)
            return PromptResult.error(str(exc))

        exit_code = int(completed.returncode)
        self._logger.info("dialog exited", extra={"exit_code": exit_code})
        return decode_dialog_result(exit_code, str(completed.stdout or ""), request.snooze_option)


def build_dialog_arguments(request: PromptRequest) -> list[str]:
    """swiftDialog command-line arguments for ``request`` (binary excluded)."""

    args = [
        "--title", request.title,
        "--message", request.message,
        "--infobox", request.infobox,
        "--button1text", request.button1_text,
    ]
    if request.button2_text is not None:
        args += ["--button2text", request.button2_text]
        if request.exhausted:
            args.append("--button2disabled")
    args += ["--infobuttontext", request.info_button_text]
    args += ["--helpmessage", request.help_message]

    if request.snooze_option is not None and request.button2_text is not None:
        args += [
            "--selecttitle", "Remind me",
            "--selectvalues", f"{request.button2_text},{request.snooze_option}",
            "--selectdefault", request.button2_text,
            "--json",
        ]
    if request.timeout_seconds is not None:
        args += ["--timer", str(request.timeout_seconds)]
        if not request.exhausted:
            args.append("--hidetimerbar")

    args += ["--messagefont", "size=14"]
    if request.blur_screen:
        args.append("--blurscreen")
    args.append("--ontop")
    return args


def decode_dialog_result(
    exit_code: int, stdout: str, snooze_option: str | None
) -> PromptResult:
    if exit_code == 0:
        return PromptResult(outcome=PromptOutcome.OPEN_UPDATE)
    if exit_code == 2:
        selected = parse_selected_option(stdout)
        if snooze_option is not None and selected == snooze_option:
            return PromptResult(outcome=PromptOutcome.SNOOZED, selected_option=selected)
        return PromptResult(outcome=PromptOutcome.DEFERRED, selected_option=selected)
    if exit_code == 3:
        return PromptResult(outcome=PromptOutcome.INFO)
    if exit_code == 4:
        return PromptResult(outcome=PromptOutcome.TIMEOUT)
    if exit_code == 20:
        return PromptResult(outcome=PromptOutcome.TIMEOUT, detail="do not disturb enabled")
    return PromptResult.error(f"unknown exit code: {exit_code}")


def parse_selected_option(stdout: str) -> str | None:
    """``SelectedOption`` from swiftDialog JSON output, or its plain-text form."""

    text = stdout.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        match = _SELECTED_OPTION_LINE.search(text)
        return match.group(1) if match else None
    if isinstance(payload, dict):
        selected = payload.get("SelectedOption")
        if isinstance(selected, str):
            return selected
    return None


__all__ = [
    "DialogPrompt",
    "PromptCollaborator",
    "build_dialog_arguments",
    "decode_dialog_result",
    "parse_selected_option",
]
