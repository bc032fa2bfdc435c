"""Reminder decision procedure and prompt outcome handling."""

from ddm_reminder.decision.outcomes import HandledOutcome, PromptOutcomeHandler
from ddm_reminder.decision.procedure import (
    Decision,
    InvocationResult,
    ReminderDecisionProcedure,
)
from ddm_reminder.decision.timing import (
    MeetingWaitResult,
    is_near_scheduled_time,
    startup_delay_seconds,
    wait_for_meeting_to_end,
)

__all__ = [
    "Decision",
    "HandledOutcome",
    "InvocationResult",
    "MeetingWaitResult",
    "PromptOutcomeHandler",
    "ReminderDecisionProcedure",
    "is_near_scheduled_time",
    "startup_delay_seconds",
    "wait_for_meeting_to_end",
]
