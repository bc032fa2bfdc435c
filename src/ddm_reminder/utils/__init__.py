"""Utility exports for crash-safe filesystem helpers and clock seams."""

from ddm_reminder.utils.clock import Clock, Sleeper, real_sleep, utc_now
from ddm_reminder.utils.fs import atomic_write, quarantine

__all__ = [
    "Clock",
    "Sleeper",
    "atomic_write",
    "quarantine",
    "real_sleep",
    "utc_now",
]
