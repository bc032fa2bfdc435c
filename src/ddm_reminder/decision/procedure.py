"""
ddm-reminder — per-invocation reminder decision procedure.

File: src/ddm_reminder/decision/procedure.py

Purpose
- Decide whether this invocation should prompt the user, then run the prompt and apply
  the response.

Decision order
1. No enforcement in the install log: not in scope.
2. Installed version already meets the target: up to date (skipped in test mode).
3. Further out than the reminder window: outside window (skipped in test mode).
4. Record the observed deadline, resetting deferrals when it moved.
5. Active snooze: snoozed.
6. Display assertion held longer than the meeting wait budget: meeting timeout.
7. Startup delay, then prompt.

Functional requirements
- Every terminal state before the prompt is a successful no-action; nothing raises.
- The deadline is recorded before any budget query or mutation.
"""

from __future__ import annotations

import dataclasses
import logging
import random
from dataclasses import dataclass
from datetime import tzinfo

from ddm_reminder.config.schema import ReminderConfig
from ddm_reminder.decision.outcomes import HandledOutcome, PromptOutcomeHandler
from ddm_reminder.decision.timing import (
    MeetingWaitResult,
    startup_delay_seconds,
    wait_for_meeting_to_end,
)
from ddm_reminder.deferral.ledger import DeferralLedger
from ddm_reminder.domain.models import DecisionStatus, EnforcementRecord
from ddm_reminder.enforcement.extractor import LogEnforcementExtractor
from ddm_reminder.enforcement.versions import is_update_required
from ddm_reminder.probes import AssertionProbe, UserInfoProbe, VersionProbe
from ddm_reminder.prompt.dialog import PromptCollaborator
from ddm_reminder.prompt.templates import DeferralSummary, build_prompt_request
from ddm_reminder.utils.clock import Clock, Sleeper, real_sleep, utc_now


@dataclass(frozen=True, slots=True)
class Decision:
    """Result of the pre-prompt checks."""

    status: DecisionStatus
    enforcement: EnforcementRecord | None = None
    installed_version: str = ""
    deadline_reset: bool = False

    @property
    def should_prompt(self) -> bool:
        return self.status is DecisionStatus.SHOW_PROMPT


@dataclass(frozen=True, slots=True)
class InvocationResult:
    """Everything one ``run`` did, for health reporting and exit status."""

    decision: Decision
    handled: HandledOutcome | None = None
    deferrals: DeferralSummary | None = None

    @property
    def user_action(self) -> str:
        if self.handled is not None:
            return self.handled.user_action
        return self.decision.status.user_action

    @property
    def error(self) -> str | None:
        return None if self.handled is None else self.handled.error

    @property
    def ok(self) -> bool:
        return self.error is None


class ReminderDecisionProcedure:
    def __init__(
        self,
        config: ReminderConfig,
        extractor: LogEnforcementExtractor,
        ledger: DeferralLedger,
        version_probe: VersionProbe,
        assertion_probe: AssertionProbe,
        *,
        test_mode: bool = False,
        debug_mode: bool = False,
        clock: Clock = utc_now,
        sleep: Sleeper = real_sleep,
        rng: random.Random | None = None,
        tz: tzinfo | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._extractor = extractor
        self._ledger = ledger
        self._version_probe = version_probe
        self._assertion_probe = assertion_probe
        self._test_mode = test_mode
        self._debug_mode = debug_mode
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._tz = tz
        self._logger = logger or logging.getLogger("ddm_reminder.decision")

    def evaluate(self) -> Decision:
        """Run the pre-prompt checks and return where the procedure stopped."""

        record = self._extractor.extract()
        if record is None:
            self._logger.info("no enforcement found, device may be up to date or not in scope")
            return Decision(DecisionStatus.NOT_IN_SCOPE)

        self._logger.info(
            "enforcement found",
            extra={"target_version": record.target_version, "deadline": record.deadline},
        )

        installed = self._version_probe.installed_version()
        if not self._test_mode and not is_update_required(installed, record.target_version):
            self._logger.info(
                "installed version %s meets target %s", installed, record.target_version
            )
            return Decision(DecisionStatus.UP_TO_DATE, record, installed)

        if self._test_mode:
            days = self._config.advanced.test_days_remaining
            record = dataclasses.replace(record, days_remaining=days, hours_remaining=days * 24)
            self._logger.info("test mode: using %d days remaining", days)

        window = self._config.behavior.days_before_deadline_display_reminder
        if not self._test_mode and record.days_remaining > window:
            self._logger.info(
                "outside reminder window (%d days > %d)", record.days_remaining, window
            )
            return Decision(DecisionStatus.OUTSIDE_WINDOW, record, installed)

        reset = self._ledger.on_deadline_observed(record.deadline)

        if self._ledger.is_snooze_active():
            self._logger.info(
                "snooze is active, skipping reminder",
                extra={"snooze_minutes_remaining": self._ledger.snooze_minutes_remaining()},
            )
            return Decision(DecisionStatus.SNOOZED, record, installed, reset)

        if self._meeting_blocks(record):
            self._logger.info("meeting still active after maximum wait")
            return Decision(DecisionStatus.MEETING_TIMEOUT, record, installed, reset)

        return Decision(DecisionStatus.SHOW_PROMPT, record, installed, reset)

    def run(
        self,
        prompt: PromptCollaborator,
        handler: PromptOutcomeHandler,
        user_probe: UserInfoProbe,
    ) -> InvocationResult:
        decision = self.evaluate()
        if not decision.should_prompt or decision.enforcement is None:
            return InvocationResult(decision)

        self._apply_startup_delay()

        record = decision.enforcement
        summary = self.deferral_summary(record.days_remaining)
        request = build_prompt_request(
            self._config,
            record,
            summary,
            user_probe.user_info(),
            decision.installed_version,
            self._clock(),
            tz=self._tz,
        )
        result = prompt.present(request)
        handled = handler.handle(
            result, days_remaining=record.days_remaining, exhausted=summary.exhausted
        )
        return InvocationResult(decision, handled, summary)

    def deferral_summary(self, days_remaining: int) -> DeferralSummary:
        return DeferralSummary(
            remaining=self._ledger.remaining(days_remaining),
            max_at_threshold=self._ledger.max_allowed(days_remaining),
            used=self._ledger.state.deferral_count,
        )

    def _meeting_blocks(self, record: EnforcementRecord) -> bool:
        behavior = self._config.behavior
        if self._test_mode or self._debug_mode:
            return False
        if record.hours_remaining <= behavior.ignore_assertions_within_hours:
            self._logger.info(
                "within %d hours of deadline, ignoring display assertions",
                behavior.ignore_assertions_within_hours,
            )
            return False
        result = wait_for_meeting_to_end(
            self._assertion_probe,
            max_wait_minutes=behavior.meeting_delay_minutes,
            interval_seconds=behavior.meeting_check_interval_seconds,
            sleep=self._sleep,
            logger=self._logger,
        )
        return result is MeetingWaitResult.TIMEOUT

    def _apply_startup_delay(self) -> None:
        if self._test_mode or self._debug_mode:
            return
        schedule = self._config.schedule
        seconds, reason = startup_delay_seconds(
            self._clock().astimezone(self._tz),
            times=schedule.launch_daemon_times,
            tolerance_minutes=schedule.jitter_tolerance_minutes,
            random_delay_max_seconds=self._config.behavior.random_delay_max_seconds,
            login_delay_seconds=schedule.login_delay_seconds,
            rng=self._rng,
        )
        if seconds > 0:
            self._logger.info("applying %s delay of %d seconds", reason, seconds)
            self._sleep(seconds)


__all__ = ["Decision", "InvocationResult", "ReminderDecisionProcedure"]
