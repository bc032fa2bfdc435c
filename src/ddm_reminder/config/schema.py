"""
ddm-reminder — configuration schema and validation.

File: src/ddm_reminder/config/schema.py

Purpose
- Define authoritative configuration defaults and the typed settings tree the engine consumes.
- Validate once at load time: clamp out-of-range numbers, fall back on bad types or enum
  values, and report every adjustment as a structured issue.

Functional requirements
- Never fail on a recoverable value; managed preference payloads are pushed fleet-wide and
  a single bad key must not stop reminders.
- Only structural problems (non-object root/section) raise ``ConfigValidationError``.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Final

from ddm_reminder.domain.models import DeferralScheduleEntry, ExhaustedBehavior

_DEFAULT_MESSAGE_TEMPLATE: Final[str] = """\
**A required macOS {actionLower} is now available**
---
Happy {dayOfWeek}, {userFirstName}!

Please {actionLower} to macOS **{targetVersion}** to ensure your Mac remains secure and \
compliant with organizational policies.

To perform the {actionLower} now, click **{button1Text}**, review the on-screen instructions, \
then click **{softwareUpdateButtonText}**.

If you are unable to perform this {actionLower} now, click **{button2Text}** to be reminded \
again later.

However, your device **will automatically restart and {actionLower}** on \
**{deadlineFormatted}** if you have not completed the {actionLower} before the deadline.

**Deferrals Remaining:** {deferralsRemaining} of {maxDeferrals}

For assistance, please contact **{supportTeamName}**."""

_DEFAULT_EXHAUSTED_TEMPLATE: Final[str] = """\
**Immediate Action Required**
---
{userFirstName}, you have used all available deferrals.

Your Mac **must** be updated to macOS **{targetVersion}** immediately.

Click **{button1Text}** to begin the update process now.

If you do not update, your device will automatically restart and update on \
**{deadlineFormatted}**.

For assistance, contact **{supportTeamName}**."""

_DEFAULT_INFOBOX_TEMPLATE: Final[str] = """\
**Current:** {installedVersion}

**Required:** {targetVersion}

**Deadline:** {deadlineFormatted}

**Days Remaining:** {daysRemaining}"""

_DEFAULT_HELP_TEMPLATE: Final[str] = """\
For assistance, please contact: **{supportTeamName}**
- **Phone:** {supportPhone}
- **Email:** {supportEmail}
- **Website:** {supportWebsite}
- **KB Article:** {supportKBArticleID}

**User Information:**
- **Name:** {userFullName}
- **Username:** {userName}

**Computer Information:**
- **Name:** {computerName}
- **Serial:** {serialNumber}
- **macOS:** {installedVersion}"""

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "organization": {
        "reverse_domain_name": "com.yourorg",
        "organization_name": "Your Organization",
        "management_directory": "/Library/Application Support",
    },
    "behavior": {
        "days_before_deadline_display_reminder": 14,
        "days_before_deadline_blurscreen": 3,
        "meeting_delay_minutes": 75,
        "meeting_check_interval_seconds": 300,
        "ignore_assertions_within_hours": 24,
        "random_delay_max_seconds": 1200,
    },
    "deferral": {
        "max_deferrals": 10,
        "deferral_schedule": [
            {"days_remaining": 14, "max_deferrals": 10},
            {"days_remaining": 7, "max_deferrals": 5},
            {"days_remaining": 3, "max_deferrals": 2},
            {"days_remaining": 1, "max_deferrals": 0},
        ],
        "reset_on_new_deadline": True,
        "snooze_enabled": True,
        "snooze_minutes": 120,
        "exhausted_behavior": ExhaustedBehavior.NO_REMIND_BUTTON.value,
        "auto_open_delay_seconds": 60,
    },
    "schedule": {
        "launch_daemon_times": [
            {"hour": 9, "minute": 0},
            {"hour": 14, "minute": 0},
        ],
        "login_delay_seconds": 60,
        "jitter_tolerance_minutes": 5,
    },
    "dialog_content": {
        "title_update": "macOS Update Required",
        "title_upgrade": "macOS Upgrade Required",
        "button1_text": "Open Software Update",
        "button2_text": "Remind Me Later",
        "button2_text_exhausted": "No Deferrals Remaining",
        "snooze_button_text": "Snooze {snoozeMinutes} Minutes",
        "info_button_text": "Help",
        "message_template": _DEFAULT_MESSAGE_TEMPLATE,
        "message_template_exhausted": _DEFAULT_EXHAUSTED_TEMPLATE,
        "infobox_template": _DEFAULT_INFOBOX_TEMPLATE,
        "help_message_template": _DEFAULT_HELP_TEMPLATE,
    },
    "support": {
        "team_name": "IT Support",
        "phone": "",
        "email": "",
        "website": "",
        "kb_article_id": "",
        "kb_article_url": "",
    },
    "health": {
        "enable_health_reporting": True,
        "health_state_path": "health.json",
        "max_error_log_entries": 50,
    },
    "advanced": {
        "dialog_binary": "/usr/local/bin/dialog",
        "dialog_min_version": "2.4.0",
        "dialog_timeout_seconds": 300,
        "install_log_path": "/var/log/install.log",
        "verbose_logging": False,
        "test_mode": False,
        "test_days_remaining": 5,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": "/var/log/ddm-reminder",
        "log_to_stdout": False,
    },
}

SECTION_NAMES: Final[tuple[str, ...]] = tuple(DEFAULT_CONFIG)

# (minimum, maximum) clamp bounds per integer field.
INT_BOUNDS: Final[dict[tuple[str, str], tuple[int, int]]] = {
    ("behavior", "days_before_deadline_display_reminder"): (1, 30),
    ("behavior", "days_before_deadline_blurscreen"): (0, 14),
    ("behavior", "meeting_delay_minutes"): (0, 240),
    ("behavior", "meeting_check_interval_seconds"): (60, 600),
    ("behavior", "ignore_assertions_within_hours"): (0, 72),
    ("behavior", "random_delay_max_seconds"): (0, 3600),
    ("deferral", "max_deferrals"): (0, 50),
    ("deferral", "snooze_minutes"): (15, 480),
    ("deferral", "auto_open_delay_seconds"): (10, 300),
    ("schedule", "login_delay_seconds"): (0, 300),
    ("schedule", "jitter_tolerance_minutes"): (0, 30),
    ("health", "max_error_log_entries"): (10, 200),
    ("advanced", "dialog_timeout_seconds"): (60, 3600),
    ("advanced", "test_days_remaining"): (0, 30),
}

ENUM_VALUES: Final[dict[tuple[str, str], tuple[str, ...]]] = {
    ("deferral", "exhausted_behavior"): tuple(item.value for item in ExhaustedBehavior),
    ("observability", "log_level"): ("DEBUG", "INFO", "WARNING", "ERROR"),
    ("observability", "log_format"): ("json", "text"),
}

_SCHEDULE_DAYS_BOUNDS: Final[tuple[int, int]] = (0, 365)
_SCHEDULE_MAX_BOUNDS: Final[tuple[int, int]] = (0, 50)


@dataclass(frozen=True, slots=True)
class OrganizationSettings:
    reverse_domain_name: str
    organization_name: str
    management_directory: str


@dataclass(frozen=True, slots=True)
class BehaviorSettings:
    days_before_deadline_display_reminder: int
    days_before_deadline_blurscreen: int
    meeting_delay_minutes: int
    meeting_check_interval_seconds: int
    ignore_assertions_within_hours: int
    random_delay_max_seconds: int


@dataclass(frozen=True, slots=True)
class DeferralSettings:
    max_deferrals: int
    deferral_schedule: tuple[DeferralScheduleEntry, ...]
    reset_on_new_deadline: bool
    snooze_enabled: bool
    snooze_minutes: int
    exhausted_behavior: ExhaustedBehavior
    auto_open_delay_seconds: int


@dataclass(frozen=True, slots=True)
class ScheduledTime:
    hour: int
    minute: int

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute


@dataclass(frozen=True, slots=True)
class ScheduleSettings:
    launch_daemon_times: tuple[ScheduledTime, ...]
    login_delay_seconds: int
    jitter_tolerance_minutes: int


@dataclass(frozen=True, slots=True)
class DialogContent:
    title_update: str
    title_upgrade: str
    button1_text: str
    button2_text: str
    button2_text_exhausted: str
    snooze_button_text: str
    info_button_text: str
    message_template: str
    message_template_exhausted: str
    infobox_template: str
    help_message_template: str


@dataclass(frozen=True, slots=True)
class SupportSettings:
    team_name: str
    phone: str
    email: str
    website: str
    kb_article_id: str
    kb_article_url: str


@dataclass(frozen=True, slots=True)
class HealthSettings:
    enable_health_reporting: bool
    health_state_path: str
    max_error_log_entries: int


@dataclass(frozen=True, slots=True)
class AdvancedSettings:
    dialog_binary: str
    dialog_min_version: str
    dialog_timeout_seconds: int
    install_log_path: str
    verbose_logging: bool
    test_mode: bool
    test_days_remaining: int


@dataclass(frozen=True, slots=True)
class ObservabilitySettings:
    log_level: str
    log_format: str
    log_dir: str
    log_to_stdout: bool


@dataclass(frozen=True, slots=True)
class ReminderConfig:
    """Validated, clamped configuration for one preference domain."""

    config_version: str
    organization: OrganizationSettings
    behavior: BehaviorSettings
    deferral: DeferralSettings
    schedule: ScheduleSettings
    dialog_content: DialogContent
    support: SupportSettings
    health: HealthSettings
    advanced: AdvancedSettings
    observability: ObservabilitySettings


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation adjustment."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Typed config plus every adjustment made while building it."""

    config: ReminderConfig
    issues: tuple[ConfigValidationIssue, ...]


class ConfigValidationError(ValueError):
    """Raised when the payload is structurally unusable."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)


def default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``; lists are replaced."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key in sorted(overlay):
        value = overlay[key]
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_config(payload: Mapping[str, object], *, config_version: str) -> ConfigValidationResult:
    """Validate ``payload`` (defaults already merged in) into a :class:`ReminderConfig`."""

    if not isinstance(payload, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("<root>", f"expected object, got {type(payload).__name__}"),)
        )

    issues = _IssueCollector()
    for key in sorted(payload):
        if key not in SECTION_NAMES:
            issues.add(str(key), "unknown section ignored")

    sections: dict[str, dict[str, object]] = {}
    structural = _IssueCollector()
    for name in SECTION_NAMES:
        raw = payload.get(name, {})
        if not isinstance(raw, Mapping):
            structural.add(name, f"expected object, got {type(raw).__name__}")
            continue
        section = dict(raw)
        for key in sorted(section):
            if key not in DEFAULT_CONFIG[name]:
                issues.add(f"{name}.{key}", "unknown key ignored")
        sections[name] = section
    if structural.items():
        raise ConfigValidationError(structural.items())

    reader = _SectionReader(sections, issues)
    deferral_defaults = DEFAULT_CONFIG["deferral"]

    config = ReminderConfig(
        config_version=config_version,
        organization=OrganizationSettings(
            reverse_domain_name=reader.text("organization", "reverse_domain_name"),
            organization_name=reader.text("organization", "organization_name"),
            management_directory=reader.text("organization", "management_directory"),
        ),
        behavior=BehaviorSettings(
            days_before_deadline_display_reminder=reader.integer(
                "behavior", "days_before_deadline_display_reminder"
            ),
            days_before_deadline_blurscreen=reader.integer(
                "behavior", "days_before_deadline_blurscreen"
            ),
            meeting_delay_minutes=reader.integer("behavior", "meeting_delay_minutes"),
            meeting_check_interval_seconds=reader.integer(
                "behavior", "meeting_check_interval_seconds"
            ),
            ignore_assertions_within_hours=reader.integer(
                "behavior", "ignore_assertions_within_hours"
            ),
            random_delay_max_seconds=reader.integer("behavior", "random_delay_max_seconds"),
        ),
        deferral=DeferralSettings(
            max_deferrals=reader.integer("deferral", "max_deferrals"),
            deferral_schedule=_deferral_schedule(
                sections["deferral"].get(
                    "deferral_schedule", deferral_defaults["deferral_schedule"]
                ),
                "deferral.deferral_schedule",
                issues,
            ),
            reset_on_new_deadline=reader.boolean("deferral", "reset_on_new_deadline"),
            snooze_enabled=reader.boolean("deferral", "snooze_enabled"),
            snooze_minutes=reader.integer("deferral", "snooze_minutes"),
            exhausted_behavior=ExhaustedBehavior(reader.choice("deferral", "exhausted_behavior")),
            auto_open_delay_seconds=reader.integer("deferral", "auto_open_delay_seconds"),
        ),
        schedule=ScheduleSettings(
            launch_daemon_times=_launch_daemon_times(
                sections["schedule"].get(
                    "launch_daemon_times", DEFAULT_CONFIG["schedule"]["launch_daemon_times"]
                ),
                "schedule.launch_daemon_times",
                issues,
            ),
            login_delay_seconds=reader.integer("schedule", "login_delay_seconds"),
            jitter_tolerance_minutes=reader.integer("schedule", "jitter_tolerance_minutes"),
        ),
        dialog_content=DialogContent(
            **{key: reader.text("dialog_content", key) for key in DEFAULT_CONFIG["dialog_content"]}
        ),
        support=SupportSettings(
            **{key: reader.text("support", key) for key in DEFAULT_CONFIG["support"]}
        ),
        health=HealthSettings(
            enable_health_reporting=reader.boolean("health", "enable_health_reporting"),
            health_state_path=reader.text("health", "health_state_path"),
            max_error_log_entries=reader.integer("health", "max_error_log_entries"),
        ),
        advanced=AdvancedSettings(
            dialog_binary=reader.text("advanced", "dialog_binary"),
            dialog_min_version=reader.text("advanced", "dialog_min_version"),
            dialog_timeout_seconds=reader.integer("advanced", "dialog_timeout_seconds"),
            install_log_path=reader.text("advanced", "install_log_path"),
            verbose_logging=reader.boolean("advanced", "verbose_logging"),
            test_mode=reader.boolean("advanced", "test_mode"),
            test_days_remaining=reader.integer("advanced", "test_days_remaining"),
        ),
        observability=ObservabilitySettings(
            log_level=reader.choice("observability", "log_level", normalize=str.upper),
            log_format=reader.choice("observability", "log_format", normalize=str.lower),
            log_dir=reader.text("observability", "log_dir"),
            log_to_stdout=reader.boolean("observability", "log_to_stdout"),
        ),
    )
    return ConfigValidationResult(config=config, issues=issues.items())


def config_to_dict(config: ReminderConfig) -> dict[str, Any]:
    """Return a JSON-ready representation of ``config``."""

    return _jsonable(asdict(config))


class _SectionReader:
    """Typed field access with fallback-and-warn semantics."""

    __slots__ = ("_issues", "_sections")

    def __init__(self, sections: Mapping[str, Mapping[str, object]], issues: _IssueCollector):
        self._sections = sections
        self._issues = issues

    def _raw(self, section: str, key: str) -> tuple[object, object]:
        default = DEFAULT_CONFIG[section][key]
        return self._sections[section].get(key, default), default

    def integer(self, section: str, key: str) -> int:
        value, default = self._raw(section, key)
        path = f"{section}.{key}"
        parsed = _coerce_int(value)
        if parsed is None:
            self._issues.add(path, f"expected integer, got {value!r}; using {default}")
            parsed = int(default)  # type: ignore[call-overload]
        minimum, maximum = INT_BOUNDS.get((section, key), (-math.inf, math.inf))
        if parsed < minimum:
            self._issues.add(path, f"value {parsed} below minimum {minimum}, using {minimum}")
            return int(minimum)
        if parsed > maximum:
            self._issues.add(path, f"value {parsed} above maximum {maximum}, using {maximum}")
            return int(maximum)
        return parsed

    def boolean(self, section: str, key: str) -> bool:
        value, default = self._raw(section, key)
        if isinstance(value, bool):
            return value
        self._issues.add(f"{section}.{key}", f"expected boolean, got {value!r}; using {default}")
        return bool(default)

    def text(self, section: str, key: str) -> str:
        value, default = self._raw(section, key)
        if isinstance(value, str):
            return value
        self._issues.add(f"{section}.{key}", f"expected string, got {value!r}; using default")
        return str(default)

    def choice(self, section: str, key: str, *, normalize: Any = None) -> str:
        value, default = self._raw(section, key)
        allowed = ENUM_VALUES[(section, key)]
        candidate = value
        if isinstance(value, str) and normalize is not None:
            candidate = normalize(value.strip())
        if isinstance(candidate, str) and candidate in allowed:
            return candidate
        self._issues.add(f"{section}.{key}", f"invalid value {value!r}, using {default!r}")
        return str(default)


def _coerce_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _deferral_schedule(
    raw: object, path: str, issues: _IssueCollector
) -> tuple[DeferralScheduleEntry, ...]:
    entries: list[DeferralScheduleEntry] = []
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        if not raw:
            return ()
        for index, item in enumerate(raw):
            item_path = f"{path}[{index}]"
            if not isinstance(item, Mapping):
                issues.add(item_path, "expected object with days_remaining and max_deferrals")
                continue
            days = _coerce_int(item.get("days_remaining"))
            maximum = _coerce_int(item.get("max_deferrals"))
            if days is None or maximum is None:
                issues.add(item_path, "days_remaining and max_deferrals must be integers")
                continue
            entries.append(
                DeferralScheduleEntry(
                    days_remaining=_clamp(days, _SCHEDULE_DAYS_BOUNDS, item_path, issues),
                    max_deferrals=_clamp(maximum, _SCHEDULE_MAX_BOUNDS, item_path, issues),
                )
            )
    else:
        issues.add(path, "expected a list of schedule entries")

    if not entries:
        issues.add(path, "no usable entries, using default schedule")
        return tuple(
            DeferralScheduleEntry(**item) for item in DEFAULT_CONFIG["deferral"]["deferral_schedule"]
        )
    return tuple(entries)


def _launch_daemon_times(
    raw: object, path: str, issues: _IssueCollector
) -> tuple[ScheduledTime, ...]:
    times: list[ScheduledTime] = []
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        for index, item in enumerate(raw):
            item_path = f"{path}[{index}]"
            if not isinstance(item, Mapping):
                issues.add(item_path, "expected object with hour and minute")
                continue
            hour = _coerce_int(item.get("hour"))
            minute = _coerce_int(item.get("minute"))
            if hour is None or minute is None:
                issues.add(item_path, "hour and minute must be integers")
                continue
            valid_hour = min(max(hour, 0), 23)
            valid_minute = min(max(minute, 0), 59)
            if (valid_hour, valid_minute) != (hour, minute):
                issues.add(
                    item_path,
                    f"adjusted invalid time {hour}:{minute} to {valid_hour}:{valid_minute:02d}",
                )
            times.append(ScheduledTime(hour=valid_hour, minute=valid_minute))
    else:
        issues.add(path, "expected a list of {hour, minute} entries")

    if not times:
        return tuple(ScheduledTime(**item) for item in DEFAULT_CONFIG["schedule"]["launch_daemon_times"])
    return tuple(times)


def _clamp(value: int, bounds: tuple[int, int], path: str, issues: _IssueCollector) -> int:
    minimum, maximum = bounds
    if value < minimum:
        issues.add(path, f"value {value} below minimum {minimum}, using {minimum}")
        return minimum
    if value > maximum:
        issues.add(path, f"value {value} above maximum {maximum}, using {maximum}")
        return maximum
    return value


def _jsonable(value: object) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


__all__ = [
    "DEFAULT_CONFIG",
    "ENUM_VALUES",
    "INT_BOUNDS",
    "SECTION_NAMES",
    "AdvancedSettings",
    "BehaviorSettings",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DeferralSettings",
    "DialogContent",
    "HealthSettings",
    "ObservabilitySettings",
    "OrganizationSettings",
    "ReminderConfig",
    "ScheduleSettings",
    "ScheduledTime",
    "SupportSettings",
    "build_config",
    "config_to_dict",
    "default_config",
    "merge_config",
]
