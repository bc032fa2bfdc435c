"""
ddm-reminder — runtime config loader.

File: src/ddm_reminder/config/loader.py

Purpose
- Load effective runtime config from defaults, a TOML or managed-preferences plist file,
  env vars, and CLI overrides.

What should be included in this file
- Precedence logic: CLI > env (DDM_) > file > defaults.
- TOML loading via ``tomllib``; plist loading via ``plistlib`` with PascalCase key
  normalization.
- Deterministic environment variable mapping and coercion.

Functional requirements
- A missing ``config_version`` means no configuration profile is installed and is fatal.
- Recoverable value problems are reported as validation issues, never raised.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import json
import os
import plistlib
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from ddm_reminder.config.schema import (
    ConfigValidationIssue,
    ReminderConfig,
    build_config,
    config_to_dict,
    default_config,
    merge_config,
)
from ddm_reminder.constants import MANAGED_PREFERENCES_DIR

ENV_PREFIX: Final[str] = "DDM_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

_ACRONYM_BOUNDARY: Final[re.Pattern[str]] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY: Final[re.Pattern[str]] = re.compile(r"([a-z0-9])([A-Z])")

# Managed preference section names that differ from the TOML section names.
_SECTION_ALIASES: Final[dict[str, str]] = {
    "organization_settings": "organization",
    "behavior_settings": "behavior",
    "deferral_settings": "deferral",
    "schedule_settings": "schedule",
    "support_settings": "support",
    "health_settings": "health",
    "advanced_settings": "advanced",
    "observability_settings": "observability",
}
_FIELD_ALIASES: Final[dict[str, str]] = {
    "swift_dialog_min_version": "dialog_min_version",
    "support_team_name": "team_name",
    "support_phone": "phone",
    "support_email": "email",
    "support_website": "website",
    "support_kb_article_id": "kb_article_id",
    "support_kb_article_url": "kb_article_url",
}


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: Literal["str", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class LoadedConfig:
    """Effective typed config plus the file it came from and all validation issues."""

    config: ReminderConfig
    source: Path
    issues: tuple[ConfigValidationIssue, ...]


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def default_config_path(domain: str) -> Path:
    """Managed preferences location for ``domain``."""

    return Path(MANAGED_PREFERENCES_DIR) / f"{domain}.plist"


def load_config(
    config_path: str | Path,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> LoadedConfig:
    """Load effective config with deterministic precedence: CLI > env > file > defaults."""

    resolved_path = Path(config_path).expanduser()
    env_map = dict(os.environ if environ is None else environ)

    file_payload = normalize_keys(_load_file(resolved_path))
    config_version = file_payload.pop("config_version", None)
    if config_version is None or not str(config_version).strip():
        raise ConfigLoadError(f"configuration profile not found: {resolved_path} has no ConfigVersion")

    merged = merge_config(default_config(), file_payload)
    merged = merge_config(merged, _collect_env_overrides(merged, env_map))
    merged = merge_config(merged, _materialize_cli_overrides(dict(cli_overrides or {})))

    result = build_config(merged, config_version=str(config_version).strip())
    return LoadedConfig(config=result.config, source=resolved_path, issues=result.issues)


def effective_config(config: ReminderConfig) -> dict[str, Any]:
    """Return a JSON-ready effective config representation."""

    return config_to_dict(config)


def dump_effective_config(config: ReminderConfig) -> str:
    return json.dumps(effective_config(config), sort_keys=True, indent=2, ensure_ascii=False)


def snake_case(key: str) -> str:
    """``DaysBeforeDeadlineDisplayReminder`` -> ``days_before_deadline_display_reminder``."""

    if key.islower() or "_" in key:
        return key.lower()
    spaced = _ACRONYM_BOUNDARY.sub(r"\1_\2", key)
    spaced = _CAMEL_BOUNDARY.sub(r"\1_\2", spaced)
    return spaced.lower()


def normalize_keys(payload: Mapping[str, object], *, top_level: bool = True) -> dict[str, Any]:
    """Recursively snake_case keys and map managed-preference aliases."""

    normalized: dict[str, Any] = {}
    for key in sorted(payload):
        name = snake_case(str(key))
        if top_level:
            name = _SECTION_ALIASES.get(name, name)
        else:
            name = _FIELD_ALIASES.get(name, name)
        normalized[name] = _normalize_value(payload[key])
    return normalized


def _normalize_value(value: object) -> object:
    if isinstance(value, Mapping):
        return normalize_keys(value, top_level=False)
    if isinstance(value, list):
        return [_normalize_value(item) for item in value]
    return value


def _load_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigLoadError(f"configuration profile not found: {path}")

    if path.suffix.lower() == ".toml":
        return _load_toml_file(path)
    return _load_plist_file(path)


def _load_toml_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc
    return parsed


def _load_plist_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            parsed = plistlib.load(handle)
    except (plistlib.InvalidFileException, ValueError) as exc:
        raise ConfigLoadError(f"invalid property list in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be a dictionary: {path}")
    return parsed


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    bindings = _build_bindings(config)
    overrides: dict[str, Any] = {}
    for env_name in sorted(bindings):
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = bindings[env_name]
        value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        _set_nested(overrides, binding.path, value)
    return overrides


def _build_bindings(config: Mapping[str, object]) -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}
    for path, value in _iter_scalar_paths(config):
        kind = _kind_for_value(value)
        if kind is None:
            continue
        bindings[_env_name_for_path(path)] = _Binding(path=path, value_type=kind)
    return bindings


def _iter_scalar_paths(
    payload: Mapping[str, object],
    prefix: tuple[str, ...] = (),
) -> list[tuple[tuple[str, ...], object]]:
    pairs: list[tuple[tuple[str, ...], object]] = []
    for key in sorted(payload):
        value = payload[key]
        path = (*prefix, key)
        if isinstance(value, Mapping):
            pairs.extend(_iter_scalar_paths(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _kind_for_value(value: object) -> Literal["str", "int", "float", "bool"] | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _coerce_env(
    raw: str,
    value_type: Literal["str", "int", "float", "bool"],
    env_name: str,
    path: tuple[str, ...],
) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(cli_overrides):
        path = tuple(part for part in key.split(".") if part)
        if len(path) < 2:
            raise ConfigLoadError(f"invalid CLI override key {key!r}, expected section.field")
        _set_nested(payload, path, cli_overrides[key])
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


__all__ = [
    "ConfigLoadError",
    "ENV_PREFIX",
    "LoadedConfig",
    "default_config_path",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "normalize_keys",
    "snake_case",
]
