"""Domain records shared by the enforcement, deferral, and decision layers."""

from ddm_reminder.domain.models import (
    DecisionStatus,
    DeferralLedgerState,
    DeferralScheduleEntry,
    EnforcementRecord,
    ExhaustedBehavior,
    PromptOutcome,
    PromptResult,
    UserInfo,
    time_remaining,
)

__all__ = [
    "DecisionStatus",
    "DeferralLedgerState",
    "DeferralScheduleEntry",
    "EnforcementRecord",
    "ExhaustedBehavior",
    "PromptOutcome",
    "PromptResult",
    "UserInfo",
    "time_remaining",
]
