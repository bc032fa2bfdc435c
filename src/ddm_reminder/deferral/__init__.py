"""Deferral and snooze accounting."""

from ddm_reminder.deferral.ledger import DeferralLedger

__all__ = ["DeferralLedger"]
