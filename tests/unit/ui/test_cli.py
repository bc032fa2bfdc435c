"""
ddm-reminder — unit tests for CLI command routing

File: tests/unit/ui/test_cli.py

Purpose
- Validate preflight checks, exit codes, health/ledger side effects, and JSON output of
  each CLI command with system probes replaced by fakes.

What this test file should cover
- run: root and console-user preflight, config failures, prompt success and error paths.
- status/config: deterministic JSON payloads.
- reset/clear-snooze: work with or without an installed profile.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from conftest import (
    FakeAssertionProbe,
    FakeLauncher,
    FakePrompt,
    FakeUserProbe,
    FakeVersionProbe,
    enforcement_line,
)

from ddm_reminder.config import ReminderConfig
from ddm_reminder.domain.models import (
    DeferralLedgerState,
    PromptOutcome,
    PromptResult,
    UserInfo,
)
from ddm_reminder.main import ExitCode, cli_entrypoint
from ddm_reminder.ui import cli

DOMAIN = "com.example.reminder"


@dataclass
class _Probes:
    result: PromptResult = field(default_factory=lambda: PromptResult(PromptOutcome.DEFERRED))
    version: FakeVersionProbe = field(default_factory=FakeVersionProbe)
    assertions: FakeAssertionProbe = field(default_factory=FakeAssertionProbe)
    user: FakeUserProbe = field(default_factory=FakeUserProbe)
    launcher: FakeLauncher = field(default_factory=FakeLauncher)
    presented: FakePrompt | None = None

    def prompt(self, config: ReminderConfig) -> FakePrompt:
        self.presented = FakePrompt(self.result)
        return self.presented


class _ExplodingVersionProbe:
    def installed_version(self) -> str:
        raise RuntimeError("sw_vers exploded")


@pytest.fixture
def probes(monkeypatch: pytest.MonkeyPatch) -> _Probes:
    fakes = _Probes()
    monkeypatch.setattr(cli, "system_probes", lambda: fakes)
    monkeypatch.setattr(cli, "is_root", lambda: True)
    return fakes


def _deadline_in(days: int) -> str:
    return (datetime.now(UTC) + timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _config_file(tmp_path: Path, *log_lines: str, extra: str = "") -> Path:
    install_log = tmp_path / "install.log"
    install_log.write_text("\n".join(log_lines) + "\n", encoding="utf-8")
    path = tmp_path / f"{DOMAIN}.toml"
    path.write_text(
        f"""
config_version = "1.0"

[behavior]
random_delay_max_seconds = 0

[schedule]
login_delay_seconds = 0

[advanced]
install_log_path = {json.dumps(str(install_log))}

[observability]
log_dir = {json.dumps(str(tmp_path / "logs"))}
{extra}
""".lstrip(),
        encoding="utf-8",
    )
    return path


def _run(tmp_path: Path, config: Path, *extra: str) -> int:
    return cli.run_cli(
        [
            "run",
            "--domain",
            DOMAIN,
            "--config",
            str(config),
            "--state-dir",
            str(tmp_path / "state"),
            *extra,
        ]
    )


def _health(tmp_path: Path) -> dict[str, object]:
    return json.loads((tmp_path / "state" / "health.json").read_text(encoding="utf-8"))


def _ledger(tmp_path: Path) -> DeferralLedgerState:
    raw = (tmp_path / "state" / "deferral.json").read_text(encoding="utf-8")
    return DeferralLedgerState.from_json(raw)


def test_run_requires_root(tmp_path: Path, probes: _Probes, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "is_root", lambda: False)
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    assert _run(tmp_path, config) == ExitCode.PREFLIGHT_FAILED
    assert not (tmp_path / "state").exists()


def test_run_requires_console_user(tmp_path: Path, probes: _Probes) -> None:
    probes.user = FakeUserProbe(UserInfo(user_name="loginwindow"))
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    assert _run(tmp_path, config) == ExitCode.PREFLIGHT_FAILED


def test_run_rejects_invalid_domain(probes: _Probes) -> None:
    assert cli.run_cli(["run", "--domain", "not a domain"]) == ExitCode.CONFIG_ERROR


def test_run_without_profile_reports_config_missing(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _run(tmp_path, tmp_path / "absent.plist")

    assert code == ExitCode.CONFIG_ERROR
    assert "configuration profile not found" in capsys.readouterr().err
    health = _health(tmp_path)
    assert health["lastRunStatus"] == "ConfigMissing"
    assert health["lastErrorCode"] == 100
    assert health["configProfileDetected"] is False


def test_run_defers_and_writes_health(tmp_path: Path, probes: _Probes) -> None:
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    assert _run(tmp_path, config) == ExitCode.SUCCESS

    assert probes.presented is not None
    (request,) = probes.presented.requests
    assert request.button2_text == "Remind Me Later"
    assert _ledger(tmp_path).deferral_count == 1
    health = _health(tmp_path)
    assert health["lastRunStatus"] == "Success"
    assert health["lastUserAction"] == "Deferred"
    assert health["lastErrorCode"] == 501
    assert health["targetVersion"] == "15.2"
    assert health["deferralsUsed"] == 1
    log_text = (tmp_path / "logs" / "reminder.jsonl").read_text(encoding="utf-8")
    assert "reminder run finished" in log_text
    assert DOMAIN in log_text


def test_run_outside_window_is_success_without_prompt(tmp_path: Path, probes: _Probes) -> None:
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(25)))

    assert _run(tmp_path, config) == ExitCode.SUCCESS

    assert probes.presented is not None
    assert probes.presented.requests == []
    assert _health(tmp_path)["lastUserAction"] == "Outside window"


def test_run_without_enforcement_records_health(tmp_path: Path, probes: _Probes) -> None:
    config = _config_file(tmp_path, "no enforcement here")

    assert _run(tmp_path, config) == ExitCode.SUCCESS
    assert _health(tmp_path)["lastUserAction"] == "No enforcement"


def test_run_test_mode_prompts_when_up_to_date(tmp_path: Path, probes: _Probes) -> None:
    probes.version = FakeVersionProbe("15.2")
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(40)))

    assert _run(tmp_path, config, "--test", "--debug") == ExitCode.SUCCESS

    assert probes.presented is not None
    assert len(probes.presented.requests) == 1
    assert _health(tmp_path)["lastUserAction"] == "Deferred"


def test_run_prompt_error_exits_nonzero(tmp_path: Path, probes: _Probes) -> None:
    probes.result = PromptResult.error("swiftDialog not found at /usr/local/bin/dialog")
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    assert _run(tmp_path, config, "--debug") == ExitCode.PROMPT_ERROR

    health = _health(tmp_path)
    assert health["lastRunStatus"] == "DialogError"
    assert health["lastErrorCode"] == 200
    assert health["errorLog"][-1]["message"] == "swiftDialog not found at /usr/local/bin/dialog"


def test_run_internal_error_writes_health_and_exits_internal(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    probes.version = _ExplodingVersionProbe()  # type: ignore[assignment]
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    code = cli_entrypoint(
        ["run", "--domain", DOMAIN, "--config", str(config), "--state-dir", str(tmp_path / "state")]
    )

    assert code == ExitCode.INTERNAL_ERROR
    assert "sw_vers exploded" in capsys.readouterr().err
    health = _health(tmp_path)
    assert health["lastRunStatus"] == "Unknown"
    assert health["errorLog"][-1]["message"] == "sw_vers exploded"


def test_run_applies_set_overrides(tmp_path: Path, probes: _Probes) -> None:
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))

    code = _run(
        tmp_path, config, "--debug", "--set", 'dialog_content.button2_text="Later Please"'
    )

    assert code == ExitCode.SUCCESS
    assert probes.presented is not None
    assert probes.presented.requests[0].button2_text == "Later Please"


def test_invalid_set_override_is_config_error(tmp_path: Path, probes: _Probes) -> None:
    config = _config_file(tmp_path, enforcement_line())
    assert _run(tmp_path, config, "--set", "no-equals-sign") == ExitCode.CONFIG_ERROR


def test_status_json_reports_ledger_and_enforcement(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _config_file(tmp_path, enforcement_line(deadline=_deadline_in(5)))
    assert _run(tmp_path, config, "--debug") == ExitCode.SUCCESS
    capsys.readouterr()

    code = cli.run_cli(
        [
            "status",
            "--domain",
            DOMAIN,
            "--config",
            str(config),
            "--state-dir",
            str(tmp_path / "state"),
            "--json",
        ]
    )

    assert code == ExitCode.SUCCESS
    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == "status"
    assert payload["domain"] == DOMAIN
    assert payload["ledger"]["deferralCount"] == 1
    assert payload["snooze_active"] is False
    assert payload["enforcement"]["target_version"] == "15.2"
    assert payload["health"]["lastUserAction"] == "Deferred"


def test_status_text_without_state(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _config_file(tmp_path, "nothing")

    code = cli.run_cli(
        ["status", "--domain", DOMAIN, "--config", str(config), "--state-dir", str(tmp_path / "s")]
    )

    assert code == ExitCode.SUCCESS
    out = capsys.readouterr().out
    assert "Deferrals used: 0" in out
    assert "Enforcement: none found" in out


def test_status_reports_padded_deadline(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    padded = (datetime.now() + timedelta(days=3)).strftime("%a %b %d %H:%M:%S %Y")
    config = _config_file(
        tmp_path,
        enforcement_line(deadline=_deadline_in(-2)),
        f"softwareupdated: setPastDuePaddedEnforcementDate is set: {padded}",
    )
    common = ["--domain", DOMAIN, "--config", str(config), "--state-dir", str(tmp_path / "s")]

    assert cli.run_cli(["status", *common, "--json"]) == ExitCode.SUCCESS
    payload = json.loads(capsys.readouterr().out)
    assert payload["enforcement"]["deadline_padded"] is True

    assert cli.run_cli(["status", *common]) == ExitCode.SUCCESS
    assert "Deadline padded: yes" in capsys.readouterr().out


def test_reset_and_clear_snooze_without_profile(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    (state_dir / "deferral.json").write_text(
        DeferralLedgerState(
            deferral_count=3, snooze_until=datetime.now(UTC) + timedelta(hours=1)
        ).to_json(),
        encoding="utf-8",
    )
    common = ["--domain", DOMAIN, "--config", str(tmp_path / "absent.plist"), "--state-dir", str(state_dir)]

    assert cli.run_cli(["clear-snooze", *common]) == ExitCode.SUCCESS
    assert _ledger(tmp_path).snooze_until is None
    assert _ledger(tmp_path).deferral_count == 3

    assert cli.run_cli(["reset", *common]) == ExitCode.SUCCESS
    assert _ledger(tmp_path) == DeferralLedgerState()
    assert "Deferral ledger reset" in capsys.readouterr().out


def test_config_json_lists_warnings(
    tmp_path: Path, probes: _Probes, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _config_file(tmp_path, "nothing", extra="\n[deferral]\nsnooze_minutes = 1\n")

    code = cli.run_cli(["config", "--domain", DOMAIN, "--config", str(config), "--json"])

    assert code == ExitCode.SUCCESS
    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == "config"
    assert payload["source"] == str(config)
    assert payload["config"]["deferral"]["snooze_minutes"] == 15
    assert any(line.startswith("deferral.snooze_minutes") for line in payload["warnings"])


def test_config_missing_profile_is_config_error(tmp_path: Path, probes: _Probes) -> None:
    code = cli.run_cli(["config", "--domain", DOMAIN, "--config", str(tmp_path / "absent.plist")])
    assert code == ExitCode.CONFIG_ERROR
