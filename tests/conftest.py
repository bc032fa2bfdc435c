"""Shared fakes and fixtures for the reminder engine tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from ddm_reminder.config import ReminderConfig, build_config, default_config, merge_config
from ddm_reminder.domain.models import PromptResult, UserInfo
from ddm_reminder.prompt import PromptRequest

NOW = datetime(2025, 11, 20, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class FakeVersionProbe:
    def __init__(self, version: str = "15.1") -> None:
        self.version = version

    def installed_version(self) -> str:
        return self.version


class FakeAssertionProbe:
    """Replays ``states`` in order, then repeats the last one."""

    def __init__(self, states: Iterable[bool] = (False,)) -> None:
        self._states = list(states) or [False]
        self.calls = 0

    def is_active(self) -> bool:
        index = min(self.calls, len(self._states) - 1)
        self.calls += 1
        return self._states[index]


class FakeUserProbe:
    def __init__(self, user: UserInfo | None = None) -> None:
        self.user = user or UserInfo(
            user_name="jappleseed",
            full_name="Johnny Appleseed",
            first_name="Johnny",
            computer_name="Johnny's MacBook",
            serial_number="C02XYZ",
        )

    def user_info(self) -> UserInfo:
        return self.user


class FakeLauncher:
    def __init__(self, succeeds: bool = True) -> None:
        self.succeeds = succeeds
        self.opened = 0

    def open_software_update(self) -> bool:
        self.opened += 1
        return self.succeeds


class FakePrompt:
    def __init__(self, result: PromptResult) -> None:
        self.result = result
        self.requests: list[PromptRequest] = []

    def present(self, request: PromptRequest) -> PromptResult:
        self.requests.append(request)
        return self.result


class RecordingSleeper:
    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds=seconds)


def make_config(**sections: dict[str, object]) -> ReminderConfig:
    """Typed config from defaults with per-section overrides."""

    payload = merge_config(default_config(), sections)
    return build_config(payload, config_version="1.0").config


def enforcement_line(
    deadline: str = "2025-11-25T12:00:00Z", version: str = "15.2", build: str = "24C101"
) -> str:
    return (
        "2025-11-18 09:12:44-08 mac softwareupdated[412]: SUOSUManagedGlobalUpdateController: "
        f"Enforcement |EnforcedInstallDate:{deadline}|VersionString:{version}"
        f"|BuildVersionString:{build}|"
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reminder_config() -> ReminderConfig:
    return make_config()


@pytest.fixture
def install_log(tmp_path: Path) -> Callable[..., Path]:
    def _write(*lines: str) -> Path:
        path = tmp_path / "install.log"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
