"""Health snapshot reporting."""

from ddm_reminder.health.reporter import (
    ErrorCode,
    HealthReporter,
    HealthStatus,
    error_code_for_outcome,
    summarize,
)

__all__ = [
    "ErrorCode",
    "HealthReporter",
    "HealthStatus",
    "error_code_for_outcome",
    "summarize",
]
