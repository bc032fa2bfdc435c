"""Health snapshot contents, error log bounds, and corrupt-file recovery."""

from __future__ import annotations

import json
import stat
from datetime import timedelta
from pathlib import Path

import pytest
from conftest import NOW, FakeClock, make_config

from ddm_reminder import __version__
from ddm_reminder.domain.models import EnforcementRecord, PromptOutcome
from ddm_reminder.health import (
    ErrorCode,
    HealthReporter,
    HealthStatus,
    error_code_for_outcome,
    summarize,
)
from ddm_reminder.prompt import DeferralSummary


def _reporter(tmp_path: Path, clock: FakeClock | None = None, **health: object) -> HealthReporter:
    settings = make_config(health=dict(health)).health
    return HealthReporter(
        tmp_path / "health" / "health.json",
        settings,
        config_version="1.2",
        clock=clock or FakeClock(),
    )


def test_successful_prompt_snapshot(tmp_path: Path) -> None:
    reporter = _reporter(tmp_path)
    record = EnforcementRecord.at(
        target_version="15.2",
        target_build="24C101",
        deadline=NOW + timedelta(days=5),
        now=NOW,
        is_upgrade=False,
    )

    snapshot = reporter.update(
        HealthStatus.SUCCESS,
        user_action="Deferred",
        error_code=ErrorCode.USER_DEFERRED,
        enforcement=record,
        deferrals=DeferralSummary(remaining=1, max_at_threshold=2, used=1),
    )

    on_disk = json.loads(reporter.path.read_text(encoding="utf-8"))
    assert snapshot == on_disk
    assert on_disk["lastRunStatus"] == "Success"
    assert on_disk["lastRunDate"] == "2025-11-20T12:00:00Z"
    assert on_disk["lastErrorCode"] == 501
    assert on_disk["lastErrorCategory"] == "UserAction"
    assert on_disk["lastUserAction"] == "Deferred"
    assert on_disk["configProfileDetected"] is True
    assert on_disk["configProfileVersion"] == "1.2"
    assert on_disk["binaryVersion"] == __version__
    assert on_disk["currentEnforcementDeadline"] == "2025-11-25T12:00:00Z"
    assert on_disk["targetVersion"] == "15.2"
    assert on_disk["deadlinePadded"] is False
    assert on_disk["deferralsRemaining"] == 1
    assert on_disk["maxDeferralsAtThreshold"] == 2
    assert on_disk["deferralsUsed"] == 1
    assert on_disk["errorLog"] == []
    assert stat.S_IMODE(reporter.path.stat().st_mode) == 0o644


def test_no_enforcement_keeps_defaults(tmp_path: Path) -> None:
    snapshot = _reporter(tmp_path).update(HealthStatus.SUCCESS, user_action="No enforcement")

    assert snapshot is not None
    assert snapshot["currentEnforcementDeadline"] is None
    assert snapshot["deadlinePadded"] is False
    assert snapshot["deferralsRemaining"] == -1
    assert snapshot["lastErrorCode"] == 0


def test_padded_deadline_is_flagged(tmp_path: Path) -> None:
    record = EnforcementRecord.at(
        target_version="15.2",
        target_build="",
        deadline=NOW + timedelta(days=2),
        now=NOW,
        is_upgrade=False,
        deadline_padded=True,
    )

    snapshot = _reporter(tmp_path).update(HealthStatus.SUCCESS, enforcement=record)

    assert snapshot is not None
    assert snapshot["deadlinePadded"] is True
    assert snapshot["currentEnforcementDeadline"] == "2025-11-22T12:00:00Z"


def test_error_log_is_bounded_and_structured(tmp_path: Path) -> None:
    clock = FakeClock()
    reporter = _reporter(tmp_path, clock, max_error_log_entries=10)

    for index in range(12):
        clock.advance(minutes=1)
        reporter.update(HealthStatus.DIALOG_ERROR, error=f"failure {index}")

    snapshot = reporter.load()
    assert snapshot is not None
    entries = snapshot["errorLog"]
    assert len(entries) == 10
    assert entries[0]["message"] == "failure 2"
    assert entries[-1] == {
        "timestamp": "2025-11-20T12:12:00Z",
        "code": 202,
        "category": "Dialog",
        "severity": "Error",
        "message": "failure 11",
    }


def test_ledger_corruptions_accumulate(tmp_path: Path) -> None:
    reporter = _reporter(tmp_path)
    reporter.update(HealthStatus.SUCCESS, ledger_corruptions=1)
    reporter.update(HealthStatus.SUCCESS)
    snapshot = reporter.update(HealthStatus.SUCCESS, ledger_corruptions=2)

    assert snapshot is not None
    assert snapshot["ledgerCorruptionCount"] == 3


@pytest.mark.parametrize("content", ["{broken", "[1, 2]", '{"errorLog": "nope"}'])
def test_corrupt_snapshot_is_replaced(tmp_path: Path, content: str) -> None:
    reporter = _reporter(tmp_path)
    reporter.path.parent.mkdir(parents=True)
    reporter.path.write_text(content, encoding="utf-8")

    snapshot = reporter.update(HealthStatus.CONFIG_ERROR, error="bad key")

    assert snapshot is not None
    assert snapshot["lastRunStatus"] == "ConfigError"
    assert snapshot["lastErrorCode"] == 101
    assert len(snapshot["errorLog"]) == 1


def test_disabled_reporting_writes_nothing(tmp_path: Path) -> None:
    reporter = _reporter(tmp_path, enable_health_reporting=False)

    assert reporter.update(HealthStatus.SUCCESS) is None
    assert not reporter.path.exists()


@pytest.mark.parametrize(
    ("outcome", "detail", "expected"),
    [
        (PromptOutcome.OPEN_UPDATE, None, ErrorCode.USER_OPENED_UPDATE),
        (PromptOutcome.SNOOZED, None, ErrorCode.USER_SNOOZED),
        (PromptOutcome.TIMEOUT, None, ErrorCode.USER_TIMEOUT),
        (PromptOutcome.ERROR, "swiftDialog not found at /x", ErrorCode.DIALOG_NOT_INSTALLED),
        (PromptOutcome.ERROR, "version 2.3 below minimum 2.4", ErrorCode.DIALOG_VERSION_TOO_LOW),
        (PromptOutcome.ERROR, "unknown exit code: 9", ErrorCode.DIALOG_EXEC_FAILED),
    ],
)
def test_error_code_for_outcome(
    outcome: PromptOutcome, detail: str | None, expected: ErrorCode
) -> None:
    assert error_code_for_outcome(outcome, detail) is expected


def test_error_code_categories() -> None:
    assert ErrorCode.CONFIG_MISSING.category == "Configuration"
    assert ErrorCode.NETWORK_TIMEOUT.category == "Network"
    assert ErrorCode.NOT_RUNNING_AS_ROOT.severity == "Error"
    assert ErrorCode.USER_DEFERRED.severity == "Info"
    assert HealthStatus.CONFIG_MISSING.error_code is ErrorCode.CONFIG_MISSING


def test_summarize() -> None:
    assert (
        summarize({"lastRunStatus": "Success", "lastErrorCode": 501, "lastUserAction": "Deferred"})
        == "Success (code 501, Deferred)"
    )
