"""System fact probes for the reminder engine.

File: src/ddm_reminder/probes.py

Purpose
- Expose each system fact (installed OS version, display assertions, console user,
  machine identity) as a small capability protocol the engine depends on.
- Provide macOS implementations backed by the stock command-line tools.

Security
- Commands are invoked with fixed argument vectors (no shell).
- Failures never raise; they degrade to empty output so the engine can decide.
"""

from __future__ import annotations

import re
import subprocess
from collections.abc import Sequence
from typing import Final, Protocol

from ddm_reminder.constants import SOFTWARE_UPDATE_URL
from ddm_reminder.domain.models import UserInfo

_COMMAND_TIMEOUT_SECONDS: Final[float] = 10.0

# Assertion names that indicate a meeting, presentation, or video playback.
DISPLAY_ASSERTION_NAMES: Final[tuple[str, ...]] = (
    "NoDisplaySleepAssertion",
    "PreventUserIdleDisplaySleep",
)
# Audio-only holders that keep the display awake without a user-visible meeting.
IGNORED_ASSERTION_OWNERS: Final[tuple[str, ...]] = ("coreaudiod",)

_SERIAL_PATTERN: Final[re.Pattern[str]] = re.compile(r'"IOPlatformSerialNumber"\s*=\s*"([^"]*)"')
_OWNER_LINE: Final[re.Pattern[str]] = re.compile(r"^\s*pid \d+\(")


class VersionProbe(Protocol):
    def installed_version(self) -> str: ...


class AssertionProbe(Protocol):
    def is_active(self) -> bool: ...


class UserInfoProbe(Protocol):
    def user_info(self) -> UserInfo: ...


class UpdateLauncher(Protocol):
    def open_software_update(self) -> bool: ...


class SwVersProbe:
    """Installed macOS version via ``sw_vers``."""

    def installed_version(self) -> str:
        return run_command(["/usr/bin/sw_vers", "-productVersion"])


class PmsetAssertionProbe:
    """Display-sleep assertions via ``pmset -g assertions``."""

    def is_active(self) -> bool:
        return has_display_assertion(run_command(["/usr/bin/pmset", "-g", "assertions"]))


class ConsoleUserProbe:
    """Console user identity plus computer name and serial number."""

    def user_info(self) -> UserInfo:
        user_name = run_command(["/usr/bin/stat", "-f%Su", "/dev/console"])
        full_name = ""
        if user_name and user_name != "loginwindow":
            full_name = run_command(["/usr/bin/id", "-F", user_name])
        return UserInfo(
            user_name=user_name,
            full_name=full_name,
            first_name=first_name_from_full_name(full_name or user_name),
            computer_name=run_command(["/usr/sbin/scutil", "--get", "ComputerName"]),
            serial_number=parse_serial_number(
                run_command(["/usr/sbin/ioreg", "-c", "IOPlatformExpertDevice", "-d", "2"])
            ),
        )


class OpenSoftwareUpdateLauncher:
    """Opens the Software Update pane in System Settings."""

    def open_software_update(self) -> bool:
        try:
            subprocess.Popen(["/usr/bin/open", SOFTWARE_UPDATE_URL])  # noqa: S603
        except OSError:
            return False
        return True


def run_command(argv: Sequence[str], *, timeout: float = _COMMAND_TIMEOUT_SECONDS) -> str:
    """Run ``argv`` and return stripped stdout.

    Returns an empty string on any failure (missing binary, timeout, OS error).
    """
    try:
        result = subprocess.run(  # noqa: S603
            list(argv),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return ""
    return result.stdout.strip()


def has_display_assertion(pmset_output: str) -> bool:
    """Return ``True`` when ``pmset -g assertions`` output shows a display assertion.

    Only per-process lines (``pid 123(owner): ...``) count; the system-wide summary lists
    every assertion type with a count, held or not.
    """
    for line in pmset_output.splitlines():
        if not _OWNER_LINE.match(line):
            continue
        if not any(name in line for name in DISPLAY_ASSERTION_NAMES):
            continue
        if any(owner in line for owner in IGNORED_ASSERTION_OWNERS):
            continue
        return True
    return False


def first_name_from_full_name(full_name: str) -> str:
    """Derive a capitalized first name from ``Last, First`` or ``First Last`` forms."""

    name = full_name.strip()
    if "," in name:
        name = name.rsplit(",", 1)[-1].strip()
    elif " " in name:
        name = name.split()[0]
    if not name:
        return ""
    return name[:1].upper() + name[1:].lower()


def parse_serial_number(ioreg_output: str) -> str:
    match = _SERIAL_PATTERN.search(ioreg_output)
    return match.group(1) if match else ""


__all__ = [
    "AssertionProbe",
    "ConsoleUserProbe",
    "DISPLAY_ASSERTION_NAMES",
    "IGNORED_ASSERTION_OWNERS",
    "OpenSoftwareUpdateLauncher",
    "PmsetAssertionProbe",
    "SwVersProbe",
    "UpdateLauncher",
    "UserInfoProbe",
    "VersionProbe",
    "first_name_from_full_name",
    "has_display_assertion",
    "parse_serial_number",
    "run_command",
]
