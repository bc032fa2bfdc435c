"""Apply the user's prompt response to the ledger and the OS."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ddm_reminder.config.schema import DeferralSettings
from ddm_reminder.deferral.ledger import DeferralLedger
from ddm_reminder.domain.models import ExhaustedBehavior, PromptOutcome, PromptResult
from ddm_reminder.probes import UpdateLauncher


@dataclass(frozen=True, slots=True)
class HandledOutcome:
    outcome: PromptOutcome
    user_action: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PromptOutcomeHandler:
    """Maps each :class:`PromptOutcome` to its ledger effect."""

    def __init__(
        self,
        ledger: DeferralLedger,
        policy: DeferralSettings,
        launcher: UpdateLauncher,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._ledger = ledger
        self._policy = policy
        self._launcher = launcher
        self._logger = logger or logging.getLogger("ddm_reminder.decision")

    def handle(
        self, result: PromptResult, *, days_remaining: int, exhausted: bool
    ) -> HandledOutcome:
        outcome = result.outcome

        if outcome is PromptOutcome.OPEN_UPDATE:
            self._logger.info("user chose to open Software Update")
            return self._open_update(outcome, "Opened Software Update")

        if outcome is PromptOutcome.DEFERRED:
            if not self._ledger.can_defer(days_remaining):
                self._logger.warning(
                    "deferral refused, none remaining", extra={"days_remaining": days_remaining}
                )
                return HandledOutcome(outcome, "Deferral refused - none remaining")
            self._logger.info("user deferred the reminder")
            self._ledger.record_deferral()
            return HandledOutcome(outcome, "Deferred")

        if outcome is PromptOutcome.SNOOZED:
            self._logger.info("user snoozed the reminder")
            self._ledger.record_snooze(self._policy.snooze_minutes)
            return HandledOutcome(outcome, "Snoozed")

        if outcome is PromptOutcome.INFO:
            self._logger.info("user viewed help")
            return HandledOutcome(outcome, "Viewed help")

        if outcome is PromptOutcome.TIMEOUT:
            if exhausted and self._policy.exhausted_behavior is ExhaustedBehavior.AUTO_OPEN_UPDATE:
                self._logger.info("auto-open delay elapsed, opening Software Update")
                return self._open_update(outcome, "Opened Software Update (auto)")
            if self._policy.snooze_enabled:
                self._logger.info("dialog timed out, treating as snooze")
                self._ledger.record_snooze(self._policy.snooze_minutes)
                return HandledOutcome(outcome, "Snoozed (timeout)")
            self._logger.info("dialog timed out")
            return HandledOutcome(outcome, "Timeout")

        detail = result.detail or "unknown prompt failure"
        self._logger.error("dialog error: %s", detail)
        return HandledOutcome(PromptOutcome.ERROR, "Dialog error", error=detail)

    def _open_update(self, outcome: PromptOutcome, user_action: str) -> HandledOutcome:
        if not self._launcher.open_software_update():
            self._logger.error("failed to open Software Update")
        return HandledOutcome(outcome, user_action)


__all__ = ["HandledOutcome", "PromptOutcomeHandler"]
