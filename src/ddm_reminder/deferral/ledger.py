"""
ddm-reminder — persisted deferral ledger.

File: src/ddm_reminder/deferral/ledger.py

Purpose
- Track how many times the user postponed the current enforcement deadline, when they
  last did so, and whether a snooze is in effect.
- Scale the deferral budget by days remaining using the configured schedule.

Functional requirements
- Every operation reloads the on-disk state; mutations persist before returning.
- A missing file is an empty ledger. A corrupt file is quarantined and treated as empty
  so the user is never locked out of deferring by a bad write.
- Write failures are logged and never raised.

Persistence
- JSON document written with ``atomic_write`` (temp file + fsync + ``os.replace``).
"""

from __future__ import annotations

import dataclasses
import logging
import math
from datetime import datetime, timedelta
from pathlib import Path

from ddm_reminder.config.schema import DeferralSettings
from ddm_reminder.constants import DEADLINE_CHANGE_TOLERANCE_SECONDS
from ddm_reminder.domain.models import DeferralLedgerState
from ddm_reminder.utils.clock import Clock, utc_now
from ddm_reminder.utils.fs import atomic_write, quarantine


class DeferralLedger:
    """Read-modify-write access to the deferral ledger file."""

    def __init__(
        self,
        path: Path | str,
        policy: DeferralSettings,
        *,
        clock: Clock = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._path = Path(path)
        self._policy = policy
        self._clock = clock
        self._logger = logger or logging.getLogger("ddm_reminder.deferral")
        self._corruption_count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def corruption_count(self) -> int:
        """Corrupt ledger files quarantined by this instance."""

        return self._corruption_count

    @property
    def state(self) -> DeferralLedgerState:
        return self._load()

    # ------------------------------------------------------------------
    # Deadline tracking
    # ------------------------------------------------------------------

    def on_deadline_observed(self, deadline: datetime) -> bool:
        """Record ``deadline``; reset the count when it moved past tolerance.

        Returns ``True`` when the deferral count was reset.
        """
        state = self._load()
        reset = False
        if state.last_deadline is not None and self._policy.reset_on_new_deadline:
            delta = abs((deadline - state.last_deadline).total_seconds())
            if delta > DEADLINE_CHANGE_TOLERANCE_SECONDS:
                self._logger.info(
                    "enforcement deadline changed, resetting deferrals",
                    extra={"previous_deadline": state.last_deadline, "deadline": deadline},
                )
                state = dataclasses.replace(state, deferral_count=0)
                reset = True
        self._save(dataclasses.replace(state, last_deadline=deadline))
        return reset

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    def max_allowed(self, days_remaining: int) -> int:
        """Budget for ``days_remaining``: first threshold at or above it, ascending."""

        for entry in sorted(self._policy.deferral_schedule, key=lambda item: item.days_remaining):
            if days_remaining <= entry.days_remaining:
                return entry.max_deferrals
        return self._policy.max_deferrals

    def remaining(self, days_remaining: int) -> int:
        return max(0, self.max_allowed(days_remaining) - self._load().deferral_count)

    def can_defer(self, days_remaining: int) -> bool:
        return self.remaining(days_remaining) > 0

    def record_deferral(self) -> DeferralLedgerState:
        state = self._load()
        updated = dataclasses.replace(
            state,
            deferral_count=state.deferral_count + 1,
            last_deferral_date=self._clock(),
        )
        self._save(updated)
        self._logger.info(
            "deferral recorded", extra={"deferral_count": updated.deferral_count}
        )
        return updated

    # ------------------------------------------------------------------
    # Snooze
    # ------------------------------------------------------------------

    def is_snooze_active(self) -> bool:
        snooze_until = self._load().snooze_until
        return snooze_until is not None and snooze_until > self._clock()

    def snooze_minutes_remaining(self) -> int:
        snooze_until = self._load().snooze_until
        if snooze_until is None:
            return 0
        seconds = (snooze_until - self._clock()).total_seconds()
        return max(0, math.floor(seconds / 60))

    def record_snooze(self, minutes: int) -> DeferralLedgerState:
        state = self._load()
        updated = dataclasses.replace(
            state, snooze_until=self._clock() + timedelta(minutes=minutes)
        )
        self._save(updated)
        self._logger.info(
            "snooze recorded",
            extra={"snooze_minutes": minutes, "snooze_until": updated.snooze_until},
        )
        return updated

    def clear_snooze(self) -> DeferralLedgerState:
        updated = dataclasses.replace(self._load(), snooze_until=None)
        self._save(updated)
        self._logger.info("snooze cleared")
        return updated

    def reset(self) -> DeferralLedgerState:
        """Drop all deferral and snooze accounting."""

        updated = DeferralLedgerState()
        self._save(updated)
        self._logger.info("deferral ledger reset")
        return updated

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> DeferralLedgerState:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return DeferralLedgerState()
        except OSError as exc:
            self._logger.error("unable to read deferral ledger %s: %s", self._path, exc)
            return DeferralLedgerState()

        try:
            return DeferralLedgerState.from_json(raw.decode("utf-8"))
        except ValueError as exc:
            self._corruption_count += 1
            moved_to = quarantine(self._path)
            self._logger.error(
                "deferral ledger is corrupt, starting fresh: %s",
                exc,
                extra={"path": self._path, "quarantined_to": moved_to},
            )
            return DeferralLedgerState()

    def _save(self, state: DeferralLedgerState) -> None:
        try:
            atomic_write(self._path, state.to_json(), create_parents=True)
        except OSError as exc:
            self._logger.error("failed to persist deferral ledger %s: %s", self._path, exc)


__all__ = ["DeferralLedger"]
