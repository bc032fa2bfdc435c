"""Dataclass domain models with strict validation and canonical serialization."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import NoReturn

from ddm_reminder.constants import LEDGER_SCHEMA_VERSION

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_SECONDS_PER_DAY = 86_400
_SECONDS_PER_HOUR = 3_600


class ExhaustedBehavior(StrEnum):
    NO_REMIND_BUTTON = "NoRemindButton"
    AUTO_OPEN_UPDATE = "AutoOpenUpdate"


class PromptOutcome(StrEnum):
    OPEN_UPDATE = "open_update"
    DEFERRED = "deferred"
    SNOOZED = "snoozed"
    INFO = "info"
    TIMEOUT = "timeout"
    ERROR = "error"


class DecisionStatus(StrEnum):
    NOT_IN_SCOPE = "not_in_scope"
    UP_TO_DATE = "up_to_date"
    OUTSIDE_WINDOW = "outside_window"
    SNOOZED = "snoozed"
    MEETING_TIMEOUT = "meeting_timeout"
    SHOW_PROMPT = "show_prompt"

    @property
    def user_action(self) -> str:
        return _DECISION_USER_ACTIONS[self]


_DECISION_USER_ACTIONS: dict[DecisionStatus, str] = {
    DecisionStatus.NOT_IN_SCOPE: "No enforcement",
    DecisionStatus.UP_TO_DATE: "Up to date",
    DecisionStatus.OUTSIDE_WINDOW: "Outside window",
    DecisionStatus.SNOOZED: "Snoozed",
    DecisionStatus.MEETING_TIMEOUT: "Meeting timeout - will retry later",
    DecisionStatus.SHOW_PROMPT: "Prompted",
}


def time_remaining(deadline: datetime, now: datetime) -> tuple[int, int]:
    """Return ``(days, hours)`` until ``deadline``, floor-divided and never clamped."""

    seconds = (deadline - now).total_seconds()
    return (
        math.floor(seconds / _SECONDS_PER_DAY),
        math.floor(seconds / _SECONDS_PER_HOUR),
    )


@dataclass(frozen=True, slots=True)
class DeferralScheduleEntry:
    """One ``days remaining -> max deferrals`` threshold."""

    days_remaining: int
    max_deferrals: int


@dataclass(frozen=True, slots=True)
class EnforcementRecord:
    """Enforcement deadline and target derived from the install log."""

    target_version: str
    target_build: str
    deadline: datetime
    days_remaining: int
    hours_remaining: int
    is_upgrade: bool
    deadline_padded: bool = False

    @classmethod
    def at(
        cls,
        *,
        target_version: str,
        target_build: str,
        deadline: datetime,
        now: datetime,
        is_upgrade: bool,
        deadline_padded: bool = False,
    ) -> EnforcementRecord:
        days, hours = time_remaining(deadline, now)
        return cls(
            target_version=target_version,
            target_build=target_build,
            deadline=deadline,
            days_remaining=days,
            hours_remaining=hours,
            is_upgrade=is_upgrade,
            deadline_padded=deadline_padded,
        )

    def is_due(self, now: datetime) -> bool:
        return self.deadline <= now


@dataclass(frozen=True, slots=True)
class DeferralLedgerState:
    """Persisted deferral and snooze accounting for one device."""

    deferral_count: int = 0
    last_deadline: datetime | None = None
    last_deferral_date: datetime | None = None
    snooze_until: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.deferral_count, bool) or not isinstance(self.deferral_count, int):
            _fail("DeferralLedgerState.deferral_count", "expected integer")
        if self.deferral_count < 0:
            _fail("DeferralLedgerState.deferral_count", "must be >= 0")
        for name in ("last_deadline", "last_deferral_date", "snooze_until"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, datetime) or value.tzinfo is None):
                _fail(f"DeferralLedgerState.{name}", "expected timezone-aware datetime")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "schemaVersion": LEDGER_SCHEMA_VERSION,
            "deferralCount": self.deferral_count,
            "lastDeadline": _format_timestamp(self.last_deadline),
            "lastDeferralDate": _format_timestamp(self.last_deferral_date),
            "snoozeUntil": _format_timestamp(self.snooze_until),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DeferralLedgerState:
        path = cls.__name__
        if not isinstance(data, Mapping):
            _fail(path, f"expected object, got {type(data).__name__}")

        version = data.get("schemaVersion", LEDGER_SCHEMA_VERSION)
        if version != LEDGER_SCHEMA_VERSION:
            _fail(f"{path}.schemaVersion", f"unsupported schema version {version!r}")

        count = data.get("deferralCount", 0)
        if isinstance(count, bool) or not isinstance(count, int):
            _fail(f"{path}.deferralCount", "expected integer")

        return cls(
            deferral_count=count,
            last_deadline=_parse_timestamp(data.get("lastDeadline"), f"{path}.lastDeadline"),
            last_deferral_date=_parse_timestamp(
                data.get("lastDeferralDate"), f"{path}.lastDeferralDate"
            ),
            snooze_until=_parse_timestamp(data.get("snoozeUntil"), f"{path}.snoozeUntil"),
        )

    @classmethod
    def from_json(cls, raw: str) -> DeferralLedgerState:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)


@dataclass(frozen=True, slots=True)
class PromptResult:
    """Decoded response from the prompt collaborator."""

    outcome: PromptOutcome
    detail: str | None = None
    selected_option: str | None = None

    @classmethod
    def error(cls, detail: str) -> PromptResult:
        return cls(outcome=PromptOutcome.ERROR, detail=detail)


@dataclass(frozen=True, slots=True)
class UserInfo:
    """Identity of the logged-in console user and the machine."""

    user_name: str
    full_name: str = ""
    first_name: str = ""
    computer_name: str = ""
    serial_number: str = ""

    @property
    def is_logged_in(self) -> bool:
        return bool(self.user_name) and self.user_name != "loginwindow"


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _parse_timestamp(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        _fail(path, f"expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        _fail(path, f"invalid timestamp {value!r}: {exc}")
    if parsed.tzinfo is None:
        _fail(path, "timestamp must include a timezone")
    return parsed


__all__ = [
    "DecisionStatus",
    "DeferralLedgerState",
    "DeferralScheduleEntry",
    "EnforcementRecord",
    "ExhaustedBehavior",
    "JSONScalar",
    "JSONValue",
    "PromptOutcome",
    "PromptResult",
    "UserInfo",
    "time_remaining",
]
