"""Command-line interface router for ddm-reminder."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from ddm_reminder import __version__
from ddm_reminder.config import (
    ConfigLoadError,
    LoadedConfig,
    ReminderConfig,
    build_config,
    default_config,
    default_config_path,
    effective_config,
    load_config,
)
from ddm_reminder.constants import DEFAULT_PREFERENCE_DOMAIN, LEDGER_FILENAME
from ddm_reminder.decision import PromptOutcomeHandler, ReminderDecisionProcedure
from ddm_reminder.deferral import DeferralLedger
from ddm_reminder.enforcement import LogEnforcementExtractor
from ddm_reminder.health import HealthReporter, HealthStatus, error_code_for_outcome, summarize
from ddm_reminder.health.reporter import ErrorCode
from ddm_reminder.main import ExitCode
from ddm_reminder.observability import (
    LoggingConfig,
    correlation_scope,
    setup_structured_logging,
    shutdown_logging,
)
from ddm_reminder.probes import (
    AssertionProbe,
    ConsoleUserProbe,
    OpenSoftwareUpdateLauncher,
    PmsetAssertionProbe,
    SwVersProbe,
    UpdateLauncher,
    UserInfoProbe,
    VersionProbe,
)
from ddm_reminder.prompt import DialogPrompt, PromptCollaborator
from ddm_reminder.utils.clock import utc_now

DOMAIN_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9]+(\.[A-Za-z0-9]+)+$")

_logger = logging.getLogger("ddm_reminder.cli")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = ExitCode.PROMPT_ERROR

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class SystemProbes:
    """System collaborators used by ``run``; replaced wholesale in tests."""

    version: VersionProbe
    assertions: AssertionProbe
    user: UserInfoProbe
    launcher: UpdateLauncher

    def prompt(self, config: ReminderConfig) -> PromptCollaborator:
        return DialogPrompt(
            config.advanced.dialog_binary,
            config.advanced.dialog_min_version,
            logger=logging.getLogger("ddm_reminder.dialog"),
        )


def system_probes() -> SystemProbes:
    return SystemProbes(
        version=SwVersProbe(),
        assertions=PmsetAssertionProbe(),
        user=ConsoleUserProbe(),
        launcher=OpenSoftwareUpdateLauncher(),
    )


def is_root() -> bool:
    return os.geteuid() == 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="ddm-reminder",
        description=(
            "ddm-reminder — macOS update reminders for declarative device management "
            "enforcement deadlines.\n\n"
            "Common workflows:\n"
            "  ddm-reminder run --domain com.example.ddm       Evaluate and prompt\n"
            "  ddm-reminder status --domain com.example.ddm    Show deferral state\n"
            "  ddm-reminder config --domain com.example.ddm    Show effective config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--domain",
        default=DEFAULT_PREFERENCE_DOMAIN,
        help=f"Preference domain in reverse-domain notation (default: {DEFAULT_PREFERENCE_DOMAIN}).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a .plist or .toml config (default: managed preferences for the domain).",
    )
    common.add_argument(
        "--state-dir",
        default=None,
        help="Directory for the deferral ledger and health file "
        "(default: <management_directory>/<domain>).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="SECTION.FIELD=VALUE",
        help="Override a config value; VALUE is parsed as JSON when possible.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Check enforcement and show the reminder when due",
    )
    run_parser.add_argument(
        "--test",
        action="store_true",
        default=False,
        help="Always prompt, using advanced.test_days_remaining as the day count.",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Skip the root check and all delays; log at DEBUG to stdout.",
    )
    run_parser.set_defaults(handler=_cmd_run)

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Show enforcement, deferral, and snooze state"
    )
    status_parser.add_argument("--json", action="store_true", default=False)
    status_parser.set_defaults(handler=_cmd_status)

    reset_parser = subparsers.add_parser(
        "reset", parents=[common], help="Clear all deferral and snooze accounting"
    )
    reset_parser.set_defaults(handler=_cmd_reset)

    clear_parser = subparsers.add_parser(
        "clear-snooze", parents=[common], help="Cancel an active snooze"
    )
    clear_parser.set_defaults(handler=_cmd_clear_snooze)

    config_parser = subparsers.add_parser(
        "config", parents=[common], help="Show effective configuration and warnings"
    )
    config_parser.add_argument("--json", action="store_true", default=False)
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return ExitCode.CONFIG_ERROR

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    domain = _domain(args)
    debug = bool(args.debug)

    if not debug and not is_root():
        raise CLIError("must be run as root", exit_code=ExitCode.PREFLIGHT_FAILED)
    probes = system_probes()
    user = probes.user.user_info()
    if not user.is_logged_in:
        raise CLIError("no user logged in at the console", exit_code=ExitCode.PREFLIGHT_FAILED)

    try:
        loaded = _load(args, domain)
    except ConfigLoadError as exc:
        _report_config_failure(args, domain, exc)
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc

    config = loaded.config
    test_mode = bool(args.test) or config.advanced.test_mode
    handle = setup_structured_logging(_logging_config(config, debug=debug))
    try:
        with correlation_scope(domain=domain, user=user.user_name):
            _log_config_issues(loaded)
            state_dir = _state_dir(args, config, domain)
            return _execute_run(config, state_dir, probes, test_mode=test_mode, debug=debug)
    finally:
        shutdown_logging(handle)


def _execute_run(
    config: ReminderConfig,
    state_dir: Path,
    probes: SystemProbes,
    *,
    test_mode: bool,
    debug: bool,
) -> int:
    _logger.info(
        "starting reminder run",
        extra={"version": __version__, "test_mode": test_mode, "debug": debug},
    )
    health = _health_reporter(config, state_dir)
    ledger = DeferralLedger(
        state_dir / LEDGER_FILENAME,
        config.deferral,
        logger=logging.getLogger("ddm_reminder.deferral"),
    )
    extractor = LogEnforcementExtractor(
        config.advanced.install_log_path,
        probes.version,
        logger=logging.getLogger("ddm_reminder.enforcement"),
    )
    procedure = ReminderDecisionProcedure(
        config,
        extractor,
        ledger,
        probes.version,
        probes.assertions,
        test_mode=test_mode,
        debug_mode=debug,
        logger=logging.getLogger("ddm_reminder.decision"),
    )
    handler = PromptOutcomeHandler(
        ledger,
        config.deferral,
        probes.launcher,
        logger=logging.getLogger("ddm_reminder.decision"),
    )

    try:
        result = procedure.run(probes.prompt(config), handler, probes.user)
    except Exception as exc:
        _logger.exception("reminder run failed")
        health.update(
            HealthStatus.UNKNOWN,
            user_action="Internal error",
            error=str(exc),
            ledger_corruptions=ledger.corruption_count,
        )
        raise

    enforcement = result.decision.enforcement
    if result.handled is None:
        health.update(
            HealthStatus.SUCCESS,
            user_action=result.user_action,
            enforcement=enforcement,
            ledger_corruptions=ledger.corruption_count,
        )
        _logger.info("reminder run finished", extra={"user_action": result.user_action})
        return ExitCode.SUCCESS

    handled = result.handled
    code = error_code_for_outcome(handled.outcome, handled.error)
    health.update(
        HealthStatus.SUCCESS if handled.ok else HealthStatus.DIALOG_ERROR,
        user_action=handled.user_action,
        error=handled.error,
        error_code=code,
        enforcement=enforcement,
        deferrals=(
            procedure.deferral_summary(enforcement.days_remaining)
            if enforcement is not None
            else result.deferrals
        ),
        ledger_corruptions=ledger.corruption_count,
    )
    _logger.info(
        "reminder run finished",
        extra={"user_action": handled.user_action, "error_code": int(code)},
    )
    return ExitCode.SUCCESS if handled.ok else ExitCode.PROMPT_ERROR


def _cmd_status(args: argparse.Namespace) -> int:
    domain = _domain(args)
    loaded = _load_or_raise(args, domain)
    config = loaded.config
    state_dir = _state_dir(args, config, domain)
    ledger = DeferralLedger(state_dir / LEDGER_FILENAME, config.deferral)
    state = ledger.state
    now = utc_now()

    record = LogEnforcementExtractor(
        config.advanced.install_log_path, system_probes().version
    ).extract()
    enforcement: dict[str, object] | None = None
    if record is not None:
        enforcement = {
            "target_version": record.target_version,
            "target_build": record.target_build,
            "deadline": record.deadline.isoformat(),
            "deadline_padded": record.deadline_padded,
            "days_remaining": record.days_remaining,
            "deferrals_remaining": ledger.remaining(record.days_remaining),
            "max_deferrals_at_threshold": ledger.max_allowed(record.days_remaining),
        }

    health = _health_reporter(config, state_dir).load()
    payload: dict[str, object] = {
        "command": "status",
        "domain": domain,
        "state_dir": str(state_dir),
        "ledger": state.to_dict(),
        "snooze_active": ledger.is_snooze_active(),
        "snooze_minutes_remaining": ledger.snooze_minutes_remaining(),
        "enforcement": enforcement,
        "health": health,
        "checked_at": now.isoformat(),
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return ExitCode.SUCCESS

    print(f"Domain: {domain}")
    print(f"State directory: {state_dir}")
    print(f"Deferrals used: {state.deferral_count}")
    print(f"Last deadline: {_or_none(state.last_deadline)}")
    print(f"Last deferral: {_or_none(state.last_deferral_date)}")
    if ledger.is_snooze_active():
        print(f"Snoozed: {ledger.snooze_minutes_remaining()} minutes remaining")
    else:
        print("Snoozed: no")
    if enforcement is None:
        print("Enforcement: none found")
    else:
        print(f"Target version: {enforcement['target_version']}")
        print(f"Deadline: {enforcement['deadline']}")
        if enforcement["deadline_padded"]:
            print("Deadline padded: yes (original deadline has passed)")
        print(f"Days remaining: {enforcement['days_remaining']}")
        print(
            "Deferrals remaining: "
            f"{enforcement['deferrals_remaining']} of {enforcement['max_deferrals_at_threshold']}"
        )
    if health is not None:
        print(f"Last run: {health.get('lastRunDate', 'unknown')} {summarize(health)}")
    return ExitCode.SUCCESS


def _cmd_reset(args: argparse.Namespace) -> int:
    ledger = _admin_ledger(args)
    ledger.reset()
    print(f"Deferral ledger reset: {ledger.path}")
    return ExitCode.SUCCESS


def _cmd_clear_snooze(args: argparse.Namespace) -> int:
    ledger = _admin_ledger(args)
    ledger.clear_snooze()
    print(f"Snooze cleared: {ledger.path}")
    return ExitCode.SUCCESS


def _cmd_config(args: argparse.Namespace) -> int:
    domain = _domain(args)
    loaded = _load_or_raise(args, domain)
    rendered = effective_config(loaded.config)
    warnings = [f"{issue.path}: {issue.message}" for issue in loaded.issues]

    payload: dict[str, object] = {
        "command": "config",
        "domain": domain,
        "source": str(loaded.source),
        "config": rendered,
        "warnings": warnings,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return ExitCode.SUCCESS

    print(f"Source: {loaded.source}")
    print(json.dumps(rendered, indent=2, sort_keys=True, ensure_ascii=False))
    if warnings:
        print("\nWarnings:")
        for line in warnings:
            print(f"  - {line}")
    return ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _domain(args: argparse.Namespace) -> str:
    raw = str(getattr(args, "domain", "") or "").strip()
    if not DOMAIN_PATTERN.match(raw):
        raise CLIError(
            f"invalid preference domain {raw!r}: expected reverse-domain notation",
            exit_code=ExitCode.CONFIG_ERROR,
        )
    return raw


def _load(args: argparse.Namespace, domain: str) -> LoadedConfig:
    path = getattr(args, "config_path", None) or default_config_path(domain)
    return load_config(path, cli_overrides=_parse_overrides(getattr(args, "overrides", [])))


def _load_or_raise(args: argparse.Namespace, domain: str) -> LoadedConfig:
    try:
        return _load(args, domain)
    except ConfigLoadError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc


def _parse_overrides(raw_items: Sequence[str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for item in raw_items:
        key, sep, raw_value = item.partition("=")
        if not sep or not key.strip():
            raise CLIError(
                f"invalid override {item!r}: expected SECTION.FIELD=VALUE",
                exit_code=ExitCode.CONFIG_ERROR,
            )
        try:
            value: Any = json.loads(raw_value)
        except json.JSONDecodeError:
            value = raw_value
        overrides[key.strip()] = value
    return overrides


def _default_reminder_config() -> ReminderConfig:
    return build_config(default_config(), config_version="").config


def _state_dir(args: argparse.Namespace, config: ReminderConfig, domain: str) -> Path:
    explicit = getattr(args, "state_dir", None)
    if explicit:
        return Path(explicit).expanduser()
    return Path(config.organization.management_directory) / domain


def _health_reporter(config: ReminderConfig, state_dir: Path) -> HealthReporter:
    return HealthReporter(
        state_dir / config.health.health_state_path,
        config.health,
        config_version=config.config_version,
        logger=logging.getLogger("ddm_reminder.health"),
    )


def _admin_ledger(args: argparse.Namespace) -> DeferralLedger:
    domain = _domain(args)
    try:
        config = _load(args, domain).config
    except ConfigLoadError:
        config = _default_reminder_config()
    return DeferralLedger(_state_dir(args, config, domain) / LEDGER_FILENAME, config.deferral)


def _report_config_failure(args: argparse.Namespace, domain: str, exc: ConfigLoadError) -> None:
    config = _default_reminder_config()
    missing = "not found" in str(exc)
    _health_reporter(config, _state_dir(args, config, domain)).update(
        HealthStatus.CONFIG_MISSING if missing else HealthStatus.CONFIG_ERROR,
        user_action="None",
        error=str(exc),
        error_code=ErrorCode.CONFIG_MISSING if missing else ErrorCode.CONFIG_INVALID,
    )


def _logging_config(config: ReminderConfig, *, debug: bool) -> LoggingConfig:
    observability = config.observability
    verbose = debug or config.advanced.verbose_logging
    return LoggingConfig(
        invocation_id=uuid.uuid4().hex,
        log_dir=observability.log_dir,
        level="DEBUG" if verbose else observability.log_level,
        log_format="text" if observability.log_format == "text" else "json",
        log_to_stdout=observability.log_to_stdout or debug,
    )


def _log_config_issues(loaded: LoadedConfig) -> None:
    config_logger = logging.getLogger("ddm_reminder.config")
    config_logger.info(
        "configuration loaded",
        extra={"source": loaded.source, "config_version": loaded.config.config_version},
    )
    for issue in loaded.issues:
        config_logger.warning("%s: %s", issue.path, issue.message)


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


def _or_none(value: object) -> str:
    return "none" if value is None else str(value)


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str))


__all__ = ["CLIError", "DOMAIN_PATTERN", "SystemProbes", "build_parser", "run_cli", "system_probes"]
