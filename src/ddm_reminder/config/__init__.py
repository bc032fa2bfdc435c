"""
ddm-reminder config package public API.

File: src/ddm_reminder/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from a managed-preferences plist or TOML file + ``DDM_`` env overrides.
- Clamp and report recoverable problems; fail only when no profile is installed.
"""

from ddm_reminder.config.loader import (
    ENV_PREFIX,
    ConfigLoadError,
    LoadedConfig,
    default_config_path,
    dump_effective_config,
    effective_config,
    load_config,
    normalize_keys,
    snake_case,
)
from ddm_reminder.config.schema import (
    DEFAULT_CONFIG,
    AdvancedSettings,
    BehaviorSettings,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    DeferralSettings,
    DialogContent,
    HealthSettings,
    ObservabilitySettings,
    OrganizationSettings,
    ReminderConfig,
    ScheduledTime,
    ScheduleSettings,
    SupportSettings,
    build_config,
    config_to_dict,
    default_config,
    merge_config,
)

__all__ = [
    "AdvancedSettings",
    "BehaviorSettings",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DeferralSettings",
    "DialogContent",
    "ENV_PREFIX",
    "HealthSettings",
    "LoadedConfig",
    "ObservabilitySettings",
    "OrganizationSettings",
    "ReminderConfig",
    "ScheduleSettings",
    "ScheduledTime",
    "SupportSettings",
    "build_config",
    "config_to_dict",
    "default_config",
    "default_config_path",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "merge_config",
    "normalize_keys",
    "snake_case",
]
