"""Stable constants shared across the reminder engine."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

APP_NAME: Final[str] = "ddm-reminder"
DEFAULT_PREFERENCE_DOMAIN: Final[str] = "com.yourorg.ddmreminder"

# Schema versions for persisted contracts.
LEDGER_SCHEMA_VERSION: Final[int] = 1
HEALTH_SCHEMA_VERSION: Final[int] = 1

# Install log markers.
ENFORCED_INSTALL_DATE_MARKER: Final[str] = "EnforcedInstallDate"
VERSION_STRING_KEY: Final[str] = "VersionString"
BUILD_VERSION_STRING_KEY: Final[str] = "BuildVersionString"
PADDED_ENFORCEMENT_MARKER: Final[str] = "setPastDuePaddedEnforcementDate is set:"
PADDED_ENFORCEMENT_DATE_FORMAT: Final[str] = "%a %b %d %H:%M:%S %Y"

# Deadlines closer than this are treated as the same deadline.
DEADLINE_CHANGE_TOLERANCE_SECONDS: Final[int] = 60

# Default runtime paths.
DEFAULT_INSTALL_LOG: Final[PurePosixPath] = PurePosixPath("/var/log/install.log")
MANAGED_PREFERENCES_DIR: Final[PurePosixPath] = PurePosixPath("/Library/Managed Preferences")
LEDGER_FILENAME: Final[str] = "deferral.json"
SOFTWARE_UPDATE_URL: Final[str] = "x-apple.systempreferences:com.apple.preferences.softwareupdate"

__all__ = [
    "APP_NAME",
    "BUILD_VERSION_STRING_KEY",
    "DEADLINE_CHANGE_TOLERANCE_SECONDS",
    "DEFAULT_INSTALL_LOG",
    "DEFAULT_PREFERENCE_DOMAIN",
    "ENFORCED_INSTALL_DATE_MARKER",
    "HEALTH_SCHEMA_VERSION",
    "LEDGER_FILENAME",
    "LEDGER_SCHEMA_VERSION",
    "MANAGED_PREFERENCES_DIR",
    "PADDED_ENFORCEMENT_DATE_FORMAT",
    "PADDED_ENFORCEMENT_MARKER",
    "SOFTWARE_UPDATE_URL",
    "VERSION_STRING_KEY",
]
