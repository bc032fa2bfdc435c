"""Meeting suppression and startup delay helpers."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum

from ddm_reminder.config.schema import ScheduledTime
from ddm_reminder.probes import AssertionProbe
from ddm_reminder.utils.clock import Sleeper

_MINUTES_PER_DAY = 24 * 60


class MeetingWaitResult(StrEnum):
    PROCEED = "proceed"
    TIMEOUT = "timeout"


def wait_for_meeting_to_end(
    probe: AssertionProbe,
    *,
    max_wait_minutes: int,
    interval_seconds: int,
    sleep: Sleeper,
    logger: logging.Logger,
) -> MeetingWaitResult:
    """Poll ``probe`` until no display assertion is held or the wait budget runs out."""

    if not probe.is_active():
        return MeetingWaitResult.PROCEED

    max_wait_seconds = max_wait_minutes * 60
    logger.info(
        "display assertion detected, waiting up to %d minutes (checking every %d seconds)",
        max_wait_minutes,
        interval_seconds,
    )

    waited = 0
    while waited < max_wait_seconds:
        sleep(interval_seconds)
        waited += interval_seconds
        if not probe.is_active():
            logger.info("display assertion cleared after %d minutes", waited // 60)
            return MeetingWaitResult.PROCEED
        logger.info(
            "display assertion still active, %d minutes before timeout",
            max(0, max_wait_seconds - waited) // 60,
        )

    logger.info("maximum meeting wait of %d minutes exceeded", max_wait_minutes)
    return MeetingWaitResult.TIMEOUT


def is_near_scheduled_time(
    now_local: datetime, times: Sequence[ScheduledTime], tolerance_minutes: int
) -> bool:
    """True when ``now_local`` falls within ``tolerance_minutes`` of any run time."""

    minute_of_day = now_local.hour * 60 + now_local.minute
    for scheduled in times:
        distance = abs(minute_of_day - scheduled.minute_of_day)
        distance = min(distance, _MINUTES_PER_DAY - distance)
        if distance <= tolerance_minutes:
            return True
    return False


def startup_delay_seconds(
    now_local: datetime,
    *,
    times: Sequence[ScheduledTime],
    tolerance_minutes: int,
    random_delay_max_seconds: int,
    login_delay_seconds: int,
    rng: random.Random,
) -> tuple[int, str]:
    """Return ``(seconds, reason)`` to wait before prompting.

    Scheduled runs are spread across ``0..random_delay_max_seconds`` so a fleet does not
    prompt in lockstep; any other launch is treated as a login and waits a fixed delay.
    """
    if is_near_scheduled_time(now_local, times, tolerance_minutes):
        return rng.randint(0, max(0, random_delay_max_seconds)), "scheduled"
    return max(0, login_delay_seconds), "login"


__all__ = [
    "MeetingWaitResult",
    "is_near_scheduled_time",
    "startup_delay_seconds",
    "wait_for_meeting_to_end",
]
