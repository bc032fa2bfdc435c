"""
ddm-reminder — install log enforcement extraction.

File: src/ddm_reminder/enforcement/extractor.py

Purpose
- Find the enforcement deadline, target version, and build that declarative device
  management wrote to the install log.
- Apply the past-due rule: once the enforced date has lapsed, the OS may log a padded
  enforcement date that supersedes it.

Functional requirements
- The most recent marker line is authoritative; older ones are ignored.
- Missing markers, unreadable logs, and unparsable dates yield ``None`` rather than raising.

Log line shapes
- ``...|EnforcedInstallDate:2025-11-25T12:00:00Z|VersionString:15.1|BuildVersionString:24B83|...``
- ``... setPastDuePaddedEnforcementDate is set: Thu Nov 13 08:59:56 2025``
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ddm_reminder.constants import (
    BUILD_VERSION_STRING_KEY,
    ENFORCED_INSTALL_DATE_MARKER,
    PADDED_ENFORCEMENT_DATE_FORMAT,
    PADDED_ENFORCEMENT_MARKER,
    VERSION_STRING_KEY,
)
from ddm_reminder.domain.models import EnforcementRecord
from ddm_reminder.enforcement.versions import is_major_upgrade
from ddm_reminder.probes import VersionProbe
from ddm_reminder.utils.clock import Clock, utc_now

_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True, slots=True)
class EnforcementFields:
    """Raw key/value fields pulled from one marker line."""

    deadline: str
    version: str
    build: str


class LogEnforcementExtractor:
    """Reads the install log and derives the current :class:`EnforcementRecord`."""

    def __init__(
        self,
        log_path: Path | str,
        version_probe: VersionProbe,
        *,
        clock: Clock = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._log_path = Path(log_path)
        self._version_probe = version_probe
        self._clock = clock
        self._logger = logger or logging.getLogger("ddm_reminder.enforcement")

    @property
    def log_path(self) -> Path:
        return self._log_path

    def extract(self) -> EnforcementRecord | None:
        self._logger.info("parsing install log for enforcement", extra={"path": self._log_path})
        lines = self._read_lines()
        if lines is None:
            return None

        entry = latest_line_containing(lines, ENFORCED_INSTALL_DATE_MARKER)
        if entry is None:
            self._logger.info("no %s entry found", ENFORCED_INSTALL_DATE_MARKER)
            return None

        fields = parse_enforcement_fields(entry)
        if fields is None:
            self._logger.warning("enforcement entry is missing required fields")
            return None

        deadline = parse_enforced_install_date(fields.deadline)
        if deadline is None:
            self._logger.warning("failed to parse deadline date %r", fields.deadline)
            return None

        now = self._clock()
        installed = self._version_probe.installed_version()
        record = EnforcementRecord.at(
            target_version=fields.version,
            target_build=fields.build,
            deadline=deadline,
            now=now,
            is_upgrade=is_major_upgrade(installed, fields.version),
        )

        if record.is_due(now):
            self._logger.info("deadline has passed, checking for padded enforcement date")
            padded = find_padded_enforcement_date(lines)
            if padded is not None:
                self._logger.info("found padded enforcement date", extra={"deadline": padded})
                return EnforcementRecord.at(
                    target_version=record.target_version,
                    target_build=record.target_build,
                    deadline=padded,
                    now=now,
                    is_upgrade=record.is_upgrade,
                    deadline_padded=True,
                )

        return record

    def _read_lines(self) -> list[str] | None:
        try:
            content = self._log_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            self._logger.info("could not read install log: %s", exc)
            return None
        return content.splitlines()


def latest_line_containing(lines: Sequence[str], marker: str) -> str | None:
    for line in reversed(lines):
        if marker in line:
            return line
    return None


def extract_field(entry: str, key: str) -> str | None:
    """Return the value of a ``|Key:Value`` token, or ``None`` when absent."""

    match = re.search(rf"\|{re.escape(key)}:([^|]+)", entry)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def parse_enforcement_fields(entry: str) -> EnforcementFields | None:
    deadline = extract_field(entry, ENFORCED_INSTALL_DATE_MARKER)
    version = extract_field(entry, VERSION_STRING_KEY)
    if deadline is None or version is None:
        return None
    return EnforcementFields(
        deadline=deadline,
        version=version,
        build=extract_field(entry, BUILD_VERSION_STRING_KEY) or "",
    )


def parse_enforced_install_date(raw: str) -> datetime | None:
    """Parse ``YYYY-MM-DDTHH:MM:SS`` with a ``Z``, an explicit offset, or local time."""

    text = raw.strip()
    try:
        return datetime.strptime(text, _UTC_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def parse_padded_date(raw: str) -> datetime | None:
    try:
        parsed = datetime.strptime(raw.strip(), PADDED_ENFORCEMENT_DATE_FORMAT)
    except ValueError:
        return None
    return parsed.astimezone()


def find_padded_enforcement_date(lines: Sequence[str]) -> datetime | None:
    """Most recent parseable padded enforcement date, scanning newest first."""

    for line in reversed(lines):
        _, marker, tail = line.partition(PADDED_ENFORCEMENT_MARKER)
        if not marker:
            continue
        parsed = parse_padded_date(tail)
        if parsed is not None:
            return parsed
    return None


__all__ = [
    "EnforcementFields",
    "LogEnforcementExtractor",
    "extract_field",
    "find_padded_enforcement_date",
    "latest_line_containing",
    "parse_enforced_install_date",
    "parse_enforcement_fields",
    "parse_padded_date",
]
