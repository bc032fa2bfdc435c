"""
ddm-reminder — health snapshot for inventory collection.

File: src/ddm_reminder/health/reporter.py

Purpose
- Persist a small JSON document after every invocation describing what happened, so a
  device management inventory script can report fleet health without parsing logs.

Functional requirements
- The previous snapshot is loaded and updated; an unreadable or corrupt snapshot is
  replaced with a fresh one.
- Ledger corruption counts accumulate across invocations.
- The structured error log is bounded to the configured number of entries.
- Writes are atomic and never raise.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from pathlib import Path
from typing import Any

from ddm_reminder import __version__
from ddm_reminder.config.schema import HealthSettings
from ddm_reminder.constants import HEALTH_SCHEMA_VERSION
from ddm_reminder.domain.models import EnforcementRecord, PromptOutcome
from ddm_reminder.prompt.templates import DeferralSummary
from ddm_reminder.utils.clock import Clock, utc_now
from ddm_reminder.utils.fs import atomic_write


class ErrorCode(IntEnum):
    SUCCESS = 0

    CONFIG_MISSING = 100
    CONFIG_INVALID = 101
    CONFIG_KEY_MISSING = 102
    CONFIG_VERSION_MISMATCH = 103

    DIALOG_NOT_INSTALLED = 200
    DIALOG_VERSION_TOO_LOW = 201
    DIALOG_EXEC_FAILED = 202
    DIALOG_TIMEOUT = 203
    DIALOG_DND_ENABLED = 204

    NETWORK_TIMEOUT = 302

    NO_LOGGED_IN_USER = 400
    LOG_PARSE_ERROR = 401
    NOT_RUNNING_AS_ROOT = 402

    USER_OPENED_UPDATE = 500
    USER_DEFERRED = 501
    USER_SNOOZED = 502
    USER_VIEWED_HELP = 503
    USER_TIMEOUT = 504

    @property
    def category(self) -> str:
        return _CATEGORIES.get(self.value // 100, "Unknown")

    @property
    def severity(self) -> str:
        return "Info" if self.value // 100 in (0, 5) else "Error"


_CATEGORIES: dict[int, str] = {
    0: "Success",
    1: "Configuration",
    2: "Dialog",
    3: "Network",
    4: "System",
    5: "UserAction",
}


class HealthStatus(StrEnum):
    SUCCESS = "Success"
    CONFIG_MISSING = "ConfigMissing"
    CONFIG_ERROR = "ConfigError"
    DIALOG_ERROR = "DialogError"
    UNKNOWN = "Unknown"

    @property
    def error_code(self) -> ErrorCode:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[HealthStatus, ErrorCode] = {
    HealthStatus.SUCCESS: ErrorCode.SUCCESS,
    HealthStatus.CONFIG_MISSING: ErrorCode.CONFIG_MISSING,
    HealthStatus.CONFIG_ERROR: ErrorCode.CONFIG_INVALID,
    HealthStatus.DIALOG_ERROR: ErrorCode.DIALOG_EXEC_FAILED,
    HealthStatus.UNKNOWN: ErrorCode.SUCCESS,
}

_OUTCOME_CODES: dict[PromptOutcome, ErrorCode] = {
    PromptOutcome.OPEN_UPDATE: ErrorCode.USER_OPENED_UPDATE,
    PromptOutcome.DEFERRED: ErrorCode.USER_DEFERRED,
    PromptOutcome.SNOOZED: ErrorCode.USER_SNOOZED,
    PromptOutcome.INFO: ErrorCode.USER_VIEWED_HELP,
    PromptOutcome.TIMEOUT: ErrorCode.USER_TIMEOUT,
}


def error_code_for_outcome(outcome: PromptOutcome, detail: str | None = None) -> ErrorCode:
    """Health code for a prompt outcome; dialog failures are classified by detail."""

    if outcome is not PromptOutcome.ERROR:
        return _OUTCOME_CODES[outcome]
    text = (detail or "").lower()
    if "not found" in text:
        return ErrorCode.DIALOG_NOT_INSTALLED
    if "below minimum" in text:
        return ErrorCode.DIALOG_VERSION_TOO_LOW
    return ErrorCode.DIALOG_EXEC_FAILED


class HealthReporter:
    """Loads, updates, and atomically rewrites the health snapshot."""

    def __init__(
        self,
        path: Path | str,
        settings: HealthSettings,
        *,
        config_version: str = "",
        clock: Clock = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._path = Path(path)
        self._settings = settings
        self._config_version = config_version
        self._clock = clock
        self._logger = logger or logging.getLogger("ddm_reminder.health")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._settings.enable_health_reporting

    def update(
        self,
        status: HealthStatus,
        *,
        user_action: str = "None",
        error: str | None = None,
        error_code: ErrorCode | None = None,
        enforcement: EnforcementRecord | None = None,
        deferrals: DeferralSummary | None = None,
        ledger_corruptions: int = 0,
    ) -> dict[str, Any] | None:
        """Record one invocation; returns the written snapshot, or ``None`` when disabled."""

        if not self.enabled:
            return None

        now = self._clock()
        code = error_code if error_code is not None else status.error_code
        state = self.load() or self._empty_state()

        state.update(
            {
                "schemaVersion": HEALTH_SCHEMA_VERSION,
                "lastRunDate": _timestamp(now),
                "lastRunStatus": status.value,
                "lastErrorCode": int(code),
                "lastErrorCategory": code.category,
                "configProfileDetected": bool(self._config_version),
                "configProfileVersion": self._config_version,
                "binaryVersion": __version__,
                "lastUserAction": user_action,
                "ledgerCorruptionCount": _as_int(state.get("ledgerCorruptionCount"))
                + ledger_corruptions,
            }
        )
        if enforcement is not None:
            state["currentEnforcementDeadline"] = _timestamp(enforcement.deadline)
            state["targetVersion"] = enforcement.target_version
            state["deadlinePadded"] = enforcement.deadline_padded
        if deferrals is not None:
            state["deferralsRemaining"] = deferrals.remaining
            state["maxDeferralsAtThreshold"] = deferrals.max_at_threshold
            state["deferralsUsed"] = deferrals.used

        if error is not None:
            entries = list(state.get("errorLog") or [])
            entries.append(
                {
                    "timestamp": _timestamp(now),
                    "code": int(code),
                    "category": code.category,
                    "severity": code.severity,
                    "message": error,
                }
            )
            state["errorLog"] = entries[-self._settings.max_error_log_entries :]

        try:
            payload = json.dumps(state, sort_keys=True, indent=2, ensure_ascii=False) + "\n"
            atomic_write(self._path, payload, create_parents=True, mode=0o644)
        except OSError as exc:
            self._logger.error("failed to save health state %s: %s", self._path, exc)
            return state

        self._logger.info(
            "updated health state",
            extra={"status": status.value, "error_code": int(code)},
        )
        return state

    def load(self) -> dict[str, Any] | None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.error("failed to load health state: %s", exc)
            return None
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.error("health state is corrupt, starting fresh: %s", exc)
            return None
        if not isinstance(parsed, dict):
            self._logger.error("health state root is not an object, starting fresh")
            return None
        if not isinstance(parsed.get("errorLog", []), list):
            parsed["errorLog"] = []
        return parsed

    def _empty_state(self) -> dict[str, Any]:
        return {
            "schemaVersion": HEALTH_SCHEMA_VERSION,
            "lastRunStatus": HealthStatus.UNKNOWN.value,
            "lastErrorCode": int(ErrorCode.SUCCESS),
            "lastErrorCategory": ErrorCode.SUCCESS.category,
            "configProfileDetected": False,
            "configProfileVersion": "",
            "binaryVersion": __version__,
            "currentEnforcementDeadline": None,
            "deadlinePadded": False,
            "targetVersion": None,
            "deferralsRemaining": -1,
            "maxDeferralsAtThreshold": 0,
            "deferralsUsed": 0,
            "ledgerCorruptionCount": 0,
            "lastUserAction": "None",
            "errorLog": [],
        }


def _timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def _as_int(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def summarize(snapshot: Mapping[str, Any]) -> str:
    """One-line human summary of a snapshot."""

    return (
        f"{snapshot.get('lastRunStatus', 'Unknown')} "
        f"(code {snapshot.get('lastErrorCode', 0)}, {snapshot.get('lastUserAction', 'None')})"
    )


__all__ = [
    "ErrorCode",
    "HealthReporter",
    "HealthStatus",
    "error_code_for_outcome",
    "summarize",
]
