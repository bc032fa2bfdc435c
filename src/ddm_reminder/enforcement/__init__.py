"""Enforcement deadline extraction and version comparison."""

from ddm_reminder.enforcement.extractor import (
    LogEnforcementExtractor,
    find_padded_enforcement_date,
    parse_enforced_install_date,
    parse_enforcement_fields,
)
from ddm_reminder.enforcement.versions import (
    compare_versions,
    is_major_upgrade,
    is_update_required,
    is_version_sufficient,
    major_component,
)

__all__ = [
    "LogEnforcementExtractor",
    "compare_versions",
    "find_padded_enforcement_date",
    "is_major_upgrade",
    "is_update_required",
    "is_version_sufficient",
    "major_component",
    "parse_enforced_install_date",
    "parse_enforcement_fields",
]
