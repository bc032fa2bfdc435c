"""Injectable wall clock and sleep seams."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]
Sleeper = Callable[[float], None]


def utc_now() -> datetime:
    return datetime.now(UTC)


def real_sleep(seconds: float) -> None:
    if seconds > 0:
        time.sleep(seconds)


__all__ = ["Clock", "Sleeper", "real_sleep", "utc_now"]
